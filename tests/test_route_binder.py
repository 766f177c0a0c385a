"""
Tests for the Route Binder.

Covers:
- Route shape (2N entries, step/router alternating)
- Trigger channels between adjacent entries (2N-1)
- Trigger URLs on channels leaving a router
- Send, response and activated route variants
"""

import pytest

from biztalk_analyzer import constants
from biztalk_analyzer.errors import MissingTargetReference, StructuralMismatch
from biztalk_analyzer.target.models import (
    AdapterEndpoint,
    ContentPromoter,
    GenericFilter,
    MessagePublisher,
    MessageSubscriber,
    RoutingSlipRouter,
    TriggerChannel,
)

from builders import system_channel_key


PREFIX = "MessageBus:App1:RP1:RL1"


# =============================================================================
# Fixtures
# =============================================================================

def _step(cls, name, scenario_step, **kwargs):
    step = cls(name=name, key=f"{PREFIX}:{name.replace(' ', '')}", **kwargs)
    step.properties[constants.SCENARIO_STEP_NAME] = scenario_step
    return step


@pytest.fixture
def steps():
    """Endpoint, filter, promoter and publisher, the shape of a receive route."""
    return [
        _step(AdapterEndpoint, "RL1", "fileReceiveAdapter", adapter_name="FILE", activator=True),
        _step(GenericFilter, "Decoder", "mimeDecoder"),
        _step(ContentPromoter, "Content Promoter", "contentPromoter"),
        _step(MessagePublisher, "Message Publisher", "topicPublisher"),
    ]


# =============================================================================
# Route shape
# =============================================================================

class TestBindRoute:
    """Tests for bind_route."""

    @pytest.mark.parametrize("count", [1, 2, 4])
    def test_route_has_two_entries_per_step(self, route_binder, target_application, steps, count):
        """N steps become 2N entries alternating step and router."""
        bound = route_binder.bind_route(PREFIX, target_application, steps[:count])

        assert len(bound) == 2 * count
        for index in range(count):
            assert bound[2 * index] is steps[index]
            assert isinstance(bound[2 * index + 1], RoutingSlipRouter)

    def test_routers_route_to_next_step(self, route_binder, target_application, steps, config):
        """Each router routes to the next step; the last one to the end of the route."""
        bound = route_binder.bind_route(PREFIX, target_application, steps)

        routers = bound[1::2]
        assert [r.route_to for r in routers] == [
            "Decoder", "Content Promoter", "Message Publisher", config.end_route,
        ]
        assert routers[0].key == f"{PREFIX}:RoutingSlipRouter:RL1-Decoder"

    def test_steps_added_to_application(self, route_binder, target_application, steps):
        """Endpoints and intermediaries land in their application collections."""
        route_binder.bind_route(PREFIX, target_application, steps)

        assert steps[0] in target_application.endpoints
        assert len(target_application.intermediaries) == 3 + 4


class TestBindChannels:
    """Tests for bind_channels."""

    def test_one_channel_between_each_pair(self, route_binder, target_application, steps):
        """2N entries are linked by 2N-1 trigger channels, in order."""
        bound = route_binder.bind_route(PREFIX, target_application, steps)
        channels = route_binder.bind_channels(PREFIX, target_application, bound)

        assert len(channels) == 2 * len(steps) - 1
        for index, channel in enumerate(channels):
            from_step, to_step = bound[index], bound[index + 1]
            assert channel.key == f"{PREFIX}:TriggerChannel:{from_step.name.replace(' ', '')}-{to_step.name.replace(' ', '')}"
            assert channel in target_application.channels

    def test_trigger_url_only_after_router(self, route_binder, target_application, steps):
        """Channels leaving a router carry the next step's URL; others carry none."""
        bound = route_binder.bind_route(PREFIX, target_application, steps)
        channels = route_binder.bind_channels(PREFIX, target_application, bound)

        for index, channel in enumerate(channels):
            if isinstance(bound[index], RoutingSlipRouter):
                assert channel.trigger_url == f"/routingManager/route/{bound[index + 1].scenario_step}"
                assert channel.properties[constants.ROUTE_LABEL] == constants.ROUTE_TO_LABEL
            else:
                assert channel.trigger_url is None
                assert channel.properties[constants.ROUTE_LABEL] == constants.ROUTE_FROM_LABEL

    def test_first_router_channel_url(self, route_binder, target_application, steps):
        """The router after the endpoint triggers the decoder step."""
        bound = route_binder.bind_route(PREFIX, target_application, steps)
        channels = route_binder.bind_channels(PREFIX, target_application, bound)

        assert channels[1].trigger_url == "/routingManager/route/mimeDecoder"

    def test_endpoints_get_single_references(self, route_binder, target_application, steps):
        """The endpoint's output is the first channel; intermediaries accumulate keys."""
        bound = route_binder.bind_route(PREFIX, target_application, steps)
        channels = route_binder.bind_channels(PREFIX, target_application, bound)

        endpoint = steps[0]
        assert endpoint.output_channel_key_ref == channels[0].key
        assert endpoint.input_channel_key_ref is None
        assert bound[1].input_channel_key_refs == [channels[0].key]
        assert bound[1].output_channel_key_refs == [channels[1].key]

    def test_response_channels_use_response_leaf(self, route_binder, target_application, steps):
        """Response routes name their channels with the response leaf key."""
        bound = route_binder.bind_route(PREFIX, target_application, steps[2:])
        channels = route_binder.bind_channels(PREFIX, target_application, bound, response=True)

        assert all(":TriggerChannelResponse:" in c.key for c in channels)

    def test_missing_scenario_step_is_structural_mismatch(self, route_binder, target_application):
        """A router cannot link to a step without a scenario step name."""
        first = _step(ContentPromoter, "Content Promoter", "contentPromoter")
        second = MessagePublisher(name="Publisher", key=f"{PREFIX}:Publisher")
        bound = route_binder.bind_route(PREFIX, target_application, [first, second])

        with pytest.raises(StructuralMismatch):
            route_binder.bind_channels(PREFIX, target_application, bound)


# =============================================================================
# Variants
# =============================================================================

class TestRouteVariants:
    """Tests for send, response and activated routes."""

    def test_send_route_has_no_trailing_router(self, route_binder, target_application, steps):
        """Send routes place routers only between steps."""
        bound = route_binder.bind_send_route(PREFIX, target_application, steps)

        assert len(bound) == 2 * len(steps) - 1
        assert bound[-1] is steps[-1]

    def test_response_route_leaves_endpoints_out(self, route_binder, target_application, steps):
        """The endpoint of a response route already belongs to the request route."""
        bound = route_binder.bind_response_route(PREFIX, target_application, steps)

        assert len(bound) == 2 * len(steps)
        assert steps[0] not in target_application.endpoints
        assert steps[1] in target_application.intermediaries

    def test_activated_route_hooks_activator_channel(self, route_binder, target_application):
        """The first step of an activated route reads from the activator channel."""
        subscriber = _step(MessageSubscriber, "SP1", "messageSubscriber", activator=True)
        endpoint = _step(AdapterEndpoint, "SP1 Endpoint", "fileSendAdapter", adapter_name="FILE")
        bound = route_binder.bind_send_route(PREFIX, target_application, [subscriber, endpoint])

        channels = route_binder.bind_activated_channels(
            PREFIX, system_channel_key(constants.MESSAGE_BOX_LEAF_KEY), target_application, bound
        )

        assert subscriber.input_channel_key_refs == [system_channel_key(constants.MESSAGE_BOX_LEAF_KEY)]
        assert len(channels) == 2
        assert endpoint.input_channel_key_ref == channels[-1].key

    def test_activated_route_requires_activator(self, route_binder, target_application):
        """A first step that cannot activate is a structural mismatch."""
        promoter = _step(ContentPromoter, "Content Promoter", "contentPromoter")
        bound = route_binder.bind_route(PREFIX, target_application, [promoter])

        with pytest.raises(StructuralMismatch):
            route_binder.bind_activated_channels(
                PREFIX, system_channel_key(constants.MESSAGE_BOX_LEAF_KEY), target_application, bound
            )

    def test_activated_route_requires_channel(self, route_binder, target_application):
        """A missing activator channel is a missing target reference."""
        subscriber = _step(MessageSubscriber, "SP1", "messageSubscriber", activator=True)

        with pytest.raises(MissingTargetReference):
            route_binder.bind_activated_channels(PREFIX, "MessageBus:Nowhere", target_application, [subscriber])

    def test_link_creates_trigger_channel(self, route_binder, target_application):
        """link() wires a single trigger channel between two steps."""
        first = _step(ContentPromoter, "Content Promoter", "contentPromoter")
        second = _step(MessagePublisher, "Message Publisher", "topicPublisher")

        channel = route_binder.link(PREFIX, target_application, first, second)

        assert isinstance(channel, TriggerChannel)
        assert first.output_channel_key_refs == [channel.key]
        assert second.input_channel_key_refs == [channel.key]
