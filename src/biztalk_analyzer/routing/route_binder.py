"""
Route Binder — turns an ordered list of steps into a wired route.

Binding a route inserts a routing slip router after each step. Binding the
channels then links each adjacent pair with a trigger channel: a channel
leaving a router carries the trigger URL of the next step, any other
channel is a plain forward channel. All links are channel keys.

Variants:
- bind_route: 2N entries, the last router routes to the end of the route
- bind_send_route: 2N-1 entries, routers only between steps
- bind_response_route: like bind_route, endpoints are not added to the
  application (they already belong to the request route)
- bind_activated_channels: also hooks the first step to an activator channel
"""

import logging
from typing import List, Optional, Sequence

from .. import constants
from ..context import MigrationContext
from ..errors import StructuralMismatch
from ..target.models import (
    Application,
    ConversionRating,
    Endpoint,
    Intermediary,
    MessagingObject,
    RoutingSlipRouter,
    TriggerChannel,
    format_key,
)
from .intermediaries import IntermediaryFactory


logger = logging.getLogger(__name__)


class RouteBinder:
    """Inserts routing slip routers and trigger channels into routes."""

    def __init__(self, factory: IntermediaryFactory, context: MigrationContext):
        self.factory = factory
        self.context = context
        self.config = context.config

    # =========================================================================
    # Routes
    # =========================================================================

    def bind_route(
        self,
        key_prefix: str,
        application: Application,
        route: Sequence[MessagingObject],
    ) -> List[MessagingObject]:
        """
        Follow every step with a routing slip router.

        Args:
            key_prefix: Key prefix of the scenario owning the route.
            application: Application the steps and routers are added to.
            route: Ordered steps.

        Returns:
            [step0, router0, ..., stepN-1, routerN-1]; the last router
            routes to the end of the route.
        """
        bound = self._interleave(key_prefix, route, terminate=True)
        for step in bound:
            application.add_step(step)
        logger.debug(f"Bound route of {len(route)} step(s) into {len(bound)} entries")
        return bound

    def bind_send_route(
        self,
        key_prefix: str,
        application: Application,
        route: Sequence[MessagingObject],
    ) -> List[MessagingObject]:
        """Routers only between steps: 2N-1 entries ending on the last step."""
        bound = self._interleave(key_prefix, route, terminate=False)
        for step in bound:
            application.add_step(step)
        logger.debug(f"Bound send route of {len(route)} step(s) into {len(bound)} entries")
        return bound

    def bind_response_route(
        self,
        key_prefix: str,
        application: Application,
        route: Sequence[MessagingObject],
    ) -> List[MessagingObject]:
        """As bind_route, leaving endpoints out of the application."""
        bound = self._interleave(key_prefix, route, terminate=True)
        for step in bound:
            if not isinstance(step, Endpoint):
                application.add_step(step)
        logger.debug(f"Bound response route of {len(route)} step(s) into {len(bound)} entries")
        return bound

    def _interleave(
        self,
        key_prefix: str,
        route: Sequence[MessagingObject],
        terminate: bool,
    ) -> List[MessagingObject]:
        bound: List[MessagingObject] = []
        for index, step in enumerate(route):
            bound.append(step)
            last = index == len(route) - 1
            if last and not terminate:
                break
            to_step = self.config.end_route if last else route[index + 1].name
            bound.append(self.factory.routing_slip_router(key_prefix, step.name, to_step))
        return bound

    # =========================================================================
    # Channels
    # =========================================================================

    def bind_channels(
        self,
        key_prefix: str,
        application: Application,
        bound_route: Sequence[MessagingObject],
        response: bool = False,
    ) -> List[TriggerChannel]:
        """
        Link every adjacent pair of a bound route with a trigger channel.

        Returns:
            The 2N-1 channels created for a route of 2N entries, in order.
        """
        leaf = constants.TRIGGER_CHANNEL_RESPONSE_LEAF_KEY if response else constants.TRIGGER_CHANNEL_LEAF_KEY
        channels = [
            self.link(key_prefix, application, from_step, to_step, leaf=leaf)
            for from_step, to_step in zip(bound_route, bound_route[1:])
        ]
        logger.debug(f"Bound {len(channels)} trigger channel(s) under '{key_prefix}'")
        return channels

    def bind_activated_channels(
        self,
        key_prefix: str,
        activator_channel_key: str,
        application: Application,
        bound_route: Sequence[MessagingObject],
    ) -> List[TriggerChannel]:
        """
        Hook the first step to the activator channel, then bind the channels.

        Raises:
            MissingTargetReference: The activator channel does not exist.
            StructuralMismatch: The first step cannot activate a route.
        """
        activator_channel = self.factory.require_channel(activator_channel_key)
        first = bound_route[0] if bound_route else None
        if not isinstance(first, Intermediary) or not first.activator:
            raise StructuralMismatch(
                f"Route starting from channel '{activator_channel.name}' does not start with an activator",
                object_key=first.key if first is not None else None,
            )

        first.add_input_channel(activator_channel.key)
        return self.bind_channels(key_prefix, application, bound_route)

    def link(
        self,
        key_prefix: str,
        application: Application,
        from_step: MessagingObject,
        to_step: MessagingObject,
        leaf: str = constants.TRIGGER_CHANNEL_LEAF_KEY,
    ) -> TriggerChannel:
        """Create the trigger channel from one step to the next and wire both ends."""
        channel = TriggerChannel(
            name=constants.TRIGGER_CHANNEL_NAME,
            description=f"Triggers the '{to_step.name}' step",
            key=f"{key_prefix}:{leaf}:{format_key(from_step.name)}-{format_key(to_step.name)}",
            rating=ConversionRating.FULL_CONVERSION,
        )

        if isinstance(from_step, RoutingSlipRouter):
            scenario_step = self._scenario_step(to_step)
            channel.trigger_url = self.config.route_url(scenario_step)
            channel.properties[constants.ROUTE_LABEL] = constants.ROUTE_TO_LABEL
        else:
            channel.properties[constants.ROUTE_LABEL] = constants.ROUTE_FROM_LABEL

        application.add_channel(channel)
        self._connect_output(from_step, channel.key)
        self._connect_input(to_step, channel.key)
        return channel

    @staticmethod
    def _scenario_step(step: MessagingObject) -> str:
        scenario_step: Optional[str] = step.scenario_step
        if not scenario_step:
            raise StructuralMismatch(f"Step '{step.key}' has no scenario step name", object_key=step.key)
        return scenario_step

    @staticmethod
    def _connect_output(step: MessagingObject, key: str) -> None:
        if isinstance(step, Endpoint):
            step.output_channel_key_ref = key
        elif isinstance(step, Intermediary):
            step.add_output_channel(key)

    @staticmethod
    def _connect_input(step: MessagingObject, key: str) -> None:
        if isinstance(step, Endpoint):
            step.input_channel_key_ref = key
        elif isinstance(step, Intermediary):
            step.add_input_channel(key)
