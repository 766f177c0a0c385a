"""
Tests for the Receive Port Analyzer.

Covers:
- One-way receive routes
- Locations skipped for a missing receive pipeline
- Two-way ports and their response routes
- Interchange routes for batching pipelines
"""

import pytest

from biztalk_analyzer import constants
from biztalk_analyzer.constants import ResourceType
from biztalk_analyzer.errors import ErrorKind
from biztalk_analyzer.scenarios import ReceivePortAnalyzer
from biztalk_analyzer.source.models import PipelineRef, ReceiveLocation, ReceivePort
from biztalk_analyzer.target.models import (
    AdapterEndpoint,
    Aggregator,
    MessageExchangePattern,
    MessageSubscriber,
    RoutingSlipRouter,
)

from builders import add_map, add_resource, add_schema, system_channel_key


PREFIX = "MessageBus:App1:RP1:RL1"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def analyzer(registry, target_registry, context):
    return ReceivePortAnalyzer(registry, target_registry, context)


@pytest.fixture
def add_port(registry, source_application):
    """Register a receive port with its locations under App1."""

    def _add(port: ReceivePort, *locations: ReceiveLocation):
        port_resource = add_resource(
            registry, source_application, f"rp:{port.name}", port.name, ResourceType.RECEIVE_PORT, port
        )
        for location in locations:
            add_resource(
                registry, port_resource, f"rl:{location.name}", location.name,
                ResourceType.RECEIVE_LOCATION, location,
            )
        return port_resource

    return _add


def _location(name: str = "RL1", pipeline: str = constants.PASS_THRU_RECEIVE_PIPELINE, **kwargs) -> ReceiveLocation:
    return ReceiveLocation(
        name=name,
        address=f"C:\\in\\{name}\\*.xml",
        transport_type="FILE",
        receive_pipeline=PipelineRef(name=pipeline) if pipeline else None,
        **kwargs,
    )


def _keys_under(application, prefix):
    return [o.key for o in application.messaging_objects() if o.key.startswith(prefix + ":")]


# =============================================================================
# One-way routes
# =============================================================================

class TestOneWayReceive:
    """Tests for one-way receive locations."""

    def test_pass_through_route(self, analyzer, add_port, target_application):
        """Endpoint, promoter and publisher become six entries linked by five channels."""
        add_port(ReceivePort(name="RP1"), _location())

        assert analyzer.analyze() == 1

        assert len(target_application.endpoints) == 1
        assert len(target_application.intermediaries) == 2 + 3
        assert len(target_application.channels) == 5
        routers = [i for i in target_application.intermediaries if isinstance(i, RoutingSlipRouter)]
        assert [r.route_to for r in routers] == ["Content Promoter", "Message Publisher", "EndRoute"]

    def test_endpoint_properties(self, analyzer, add_port, target_application):
        """The endpoint activates the route and carries the receive port context."""
        add_port(ReceivePort(name="RP1"), _location())
        analyzer.analyze()

        endpoint = target_application.endpoints[0]
        assert isinstance(endpoint, AdapterEndpoint)
        assert endpoint.key == f"{PREFIX}:AdapterEndpoint"
        assert endpoint.activator is True
        assert endpoint.adapter_name == "FILE"
        assert endpoint.message_exchange_pattern == MessageExchangePattern.RECEIVE
        assert endpoint.resource_map_key == "receiveAdapterApp1RP1RL1"
        assert endpoint.properties[constants.SCENARIO_NAME] == "App1.RP1.RL1"
        assert endpoint.scenario_step == "fileReceiveAdapter"

        configuration = endpoint.properties[constants.CONFIGURATION_ENTRY]
        assert configuration[constants.BTS_RECEIVE_PORT_ID] == "App1.RP1"
        assert configuration[constants.IS_TWO_WAY] is False
        assert constants.RESPONSE_TIMEOUT not in configuration
        assert constants.BTS_INBOUND_TRANSPORT_LOCATION in endpoint.properties[constants.ROUTING_PROPERTIES]

    def test_publisher_outputs_to_message_box(self, analyzer, add_port, target_application, message_box):
        add_port(ReceivePort(name="RP1"), _location())
        analyzer.analyze()

        publisher = next(i for i in target_application.intermediaries if i.key == f"{PREFIX}:MessagePublisher")
        assert message_box.key in publisher.output_channel_key_refs

    def test_map_translator_added_for_transforms(self, analyzer, add_port, registry, target_application):
        """Inbound transforms add a map translator before the message agents."""
        port_resource = add_port(ReceivePort(name="RP1", transforms=["Maps.In"]), _location())
        add_map(registry, port_resource, "Maps.In", add_schema(registry, "Schemas.In", "http://ns#In"))
        add_map(registry, port_resource, "Maps.Unused", None)

        analyzer.analyze()

        translator = next(
            i for i in target_application.intermediaries if i.key == f"{PREFIX}:XmlMessageTranslator"
        )
        assert translator.map_key_refs == ["map:Maps.In"]

    def test_missing_pipeline_skips_location(self, analyzer, add_port, context, target_application):
        """A location without a receive pipeline is recorded and produces nothing; its sibling still builds."""
        add_port(ReceivePort(name="RP1"), _location("RL1"), _location("RL2", pipeline=None))

        assert analyzer.analyze() == 1

        assert len(context.errors) == 1
        assert context.errors[0].kind == ErrorKind.MISSING_SOURCE_CONSTRUCT
        assert context.errors[0].object_key == "rp:RP1:RL2"
        assert _keys_under(target_application, "MessageBus:App1:RP1:RL2") == []
        assert len(_keys_under(target_application, PREFIX)) == 1 + 5 + 5

    def test_port_without_definition_is_recorded(self, analyzer, registry, source_application, context):
        add_resource(registry, source_application, "rp:Broken", "Broken", ResourceType.RECEIVE_PORT)

        assert analyzer.analyze() == 0
        assert context.errors_of_kind(ErrorKind.MISSING_SOURCE_CONSTRUCT)[0].object_key == "rp:Broken"

    def test_missing_target_application(self, registry, empty_target_registry, context, source_application):
        """A source application with no target counterpart is a missing target reference."""
        analyzer = ReceivePortAnalyzer(registry, empty_target_registry, context)

        assert analyzer.analyze() == 0
        assert context.errors_of_kind(ErrorKind.MISSING_TARGET_REFERENCE)[0].object_key == "app:App1"

    def test_missing_message_box_is_recorded(self, registry, empty_target_registry, context, add_port, target_application):
        """Without the message box the location fails and the error is recorded."""
        empty_target_registry.add_application(target_application)
        add_port(ReceivePort(name="RP1"), _location())

        analyzer = ReceivePortAnalyzer(registry, empty_target_registry, context)

        assert analyzer.analyze() == 0
        assert len(context.errors_of_kind(ErrorKind.MISSING_TARGET_REFERENCE)) == 1


# =============================================================================
# Two-way routes
# =============================================================================

class TestTwoWayReceive:
    """Tests for request-response receive ports."""

    @pytest.fixture
    def two_way(self, analyzer, add_port):
        add_port(ReceivePort(name="RP1", is_two_way=True), _location())
        analyzer.analyze()

    def test_endpoint_waits_for_response(self, two_way, target_application, config):
        endpoint = target_application.endpoints[0]

        assert endpoint.message_exchange_pattern == MessageExchangePattern.RECEIVE_RESPONSE
        configuration = endpoint.properties[constants.CONFIGURATION_ENTRY]
        assert configuration[constants.RESPONSE_TIMEOUT] == config.response_timeout_minutes
        assert endpoint.properties[constants.RESPONSE_SUBSCRIPTION] == "RP1"

    def test_response_topic_subscription(self, two_way, response_topic):
        """The endpoint subscribes, ordered, to acknowledgements for its port."""
        subscription = response_topic.find_subscription("RP1")

        assert subscription is not None
        assert subscription.is_ordered is True
        assert subscription.filters[0].group.expressions() == ["btsAckReceivePortId = 'App1.RP1'"]

    def test_response_route(self, two_way, target_application, message_box, response_topic):
        """Subscriber on the message box publishes to the response topic with sessions."""
        prefix = f"{PREFIX}:Response"
        subscriber = next(i for i in target_application.intermediaries if i.key == f"{prefix}:MessageSubscriber")

        assert isinstance(subscriber, MessageSubscriber)
        assert subscriber.activator is True
        assert subscriber.input_channel_key_refs[0] == message_box.key
        assert subscriber.topic_subscriptions == {"messagebox": "RP1"}
        assert subscriber.properties[constants.SCENARIO_NAME] == "App1.RP1.RL1.Response"

        publisher = next(i for i in target_application.intermediaries if i.key == f"{prefix}:MessagePublisher")
        configuration = publisher.properties[constants.CONFIGURATION_ENTRY]
        assert publisher.output_channel_key_refs == [response_topic.key]
        assert configuration[constants.USE_SESSIONS] is True
        assert configuration[constants.SESSION_PROPERTY_NAME] == constants.CORRELATION_ID

    def test_response_channels(self, two_way, target_application):
        """Request and response routes have five channels each; response keys use the response leaf."""
        response_channels = [c for c in target_application.channels if ":TriggerChannelResponse:" in c.key]

        assert len(target_application.channels) == 10
        assert len(response_channels) == 5

    def test_subscriptions_shared_between_locations(self, analyzer, add_port, message_box):
        """Two locations on one port reuse the port's subscription and filter."""
        add_port(ReceivePort(name="RP1", is_two_way=True), _location("RL1"), _location("RL2"))

        assert analyzer.analyze() == 2

        subscriptions = [s for s in message_box.subscriptions if s.name == "RP1"]
        assert len(subscriptions) == 1
        assert len(subscriptions[0].filters) == 1


# =============================================================================
# Interchanges
# =============================================================================

class TestInterchangeReceive:
    """Tests for receive pipelines handling batches."""

    @pytest.fixture
    def batched(self, analyzer, add_port):
        location = _location(
            pipeline=constants.XML_RECEIVE_PIPELINE,
            receive_pipeline_configuration={"XmlDasmComp": {"EnvelopeSpecNames": "Schemas.Envelope"}},
        )
        add_port(ReceivePort(name="RP1"), location)
        analyzer.analyze()

    def test_router_before_message_agents(self, batched, target_application):
        """The content based router follows the XML processor and diverts to the interchange queue."""
        router = next(i for i in target_application.intermediaries if i.key == f"{PREFIX}:ContentBasedRouter")

        assert system_channel_key(constants.INTERCHANGE_QUEUE_LEAF_KEY) in router.output_channel_key_refs

    def test_interchange_route(self, batched, target_application):
        """Aggregator, splitter and message agents read from the interchange queue."""
        prefix = f"{PREFIX}:Interchange"
        aggregator = next(i for i in target_application.intermediaries if i.key == f"{prefix}:InterchangeAggregator")

        assert isinstance(aggregator, Aggregator)
        assert aggregator.properties[constants.SCENARIO_NAME] == "App1.RP1.RL1.InterchangeAggregator"
        # 4 steps, 4 routers
        assert len([k for k in _keys_under(target_application, prefix) if ":TriggerChannel:" in k]) == 7
