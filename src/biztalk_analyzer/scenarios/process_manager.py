"""
Process Manager — wires bound workflows into routes.

Each orchestration becomes a ProcessManager intermediary. Wiring runs two
passes in a fixed order across the whole bus:

1. BIND_INVOKED_WORKFLOWS: every InvokeWorkflow activity adds an activator
   trigger channel to the invoked workflow definition.
2. BUILD_ROUTES: every activator process manager gets a route starting at
   the message box. Its channels are attached to the message box or the
   suspend queue, and each invocation adds a routing slip router hop to
   the invoked process manager, whose channels are walked in turn.

Pass 2 needs the channels pass 1 creates on other definitions.
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .. import constants
from ..config import AnalyzerConfig
from ..context import MigrationContext
from ..errors import AnalysisError, MissingTargetReference, StructuralMismatch
from ..routing.intermediaries import IntermediaryFactory
from ..routing.route_binder import RouteBinder
from ..target.models import (
    Application,
    ConversionRating,
    MessageExchangePattern,
    MessagingObject,
    format_key,
    format_resource_map_key,
)
from ..target.target_registry import TargetModelRegistry
from ..workflow.models import (
    ActivityType,
    ProcessManager,
    PropertyKey,
    WorkflowActivity,
    WorkflowChannel,
    WorkflowChannelKind,
    WorkflowDefinition,
)


logger = logging.getLogger(__name__)

Route = List[MessagingObject]

RECEIVING_DIRECTIONS = frozenset({
    MessageExchangePattern.ACCEPT,
    MessageExchangePattern.RECEIVE,
    MessageExchangePattern.RECEIVE_RESPONSE,
})

SENDING_DIRECTIONS = frozenset({
    MessageExchangePattern.FIRE_FORGET,
    MessageExchangePattern.SEND,
})


class WiringPass(str, Enum):
    """Global wiring passes."""
    BIND_INVOKED_WORKFLOWS = "bind_invoked_workflows"
    BUILD_ROUTES = "build_routes"


# Declared order: routes can only be built once invoked workflows have their trigger channels
WIRING_ORDER: Tuple[WiringPass, ...] = (
    WiringPass.BIND_INVOKED_WORKFLOWS,
    WiringPass.BUILD_ROUTES,
)


def create_process_manager(
    config: AnalyzerConfig,
    application: Application,
    definition: WorkflowDefinition,
) -> ProcessManager:
    """
    Create the process manager running a bound workflow definition.

    The process manager activates when any channel of the definition is an
    activator. Orchestration conversion is always rated partial.
    """
    activator = definition.is_activatable
    kind = "activatableProcessManager" if activator else "invokableProcessManager"

    process_manager = ProcessManager(
        name=definition.name,
        description=definition.name,
        key=f"{config.message_bus_key}:{format_key(application.name)}:{format_key(definition.name)}",
        rating=ConversionRating.PARTIAL_CONVERSION,
        resource_map_key=f"{kind}{format_resource_map_key(application.name, definition.name)}",
        activator=activator,
        workflow_model=definition,
    )
    process_manager.properties[constants.TYPE_NAME] = definition.name
    if activator:
        process_manager.properties[constants.SCENARIO_NAME] = (
            f"{format_key(application.name)}.{format_key(definition.name)}"
        )
    process_manager.properties[constants.SCENARIO_STEP_NAME] = definition.name
    process_manager.properties[constants.CONFIGURATION_ENTRY] = {constants.FAILED_MESSAGE_ROUTING: True}
    process_manager.properties[constants.ROUTING_PROPERTIES] = {}

    logger.debug(f"Created {kind} '{process_manager.key}'")
    return process_manager


class InvocationWirer:
    """
    Runs the wiring passes over every process manager on the bus.

    Routes built in pass 2 are kept per activator process manager key.
    """

    def __init__(
        self,
        target_registry: TargetModelRegistry,
        factory: IntermediaryFactory,
        route_binder: RouteBinder,
        context: MigrationContext,
    ):
        self.target_registry = target_registry
        self.factory = factory
        self.route_binder = route_binder
        self.context = context
        self.config = context.config
        self.routes: Dict[str, Route] = {}

        self._passes: Dict[WiringPass, Callable[[], None]] = {
            WiringPass.BIND_INVOKED_WORKFLOWS: self.bind_invoked_workflows,
            WiringPass.BUILD_ROUTES: self.build_routes,
        }

    def wire(self) -> Dict[str, Route]:
        """Run every pass in declared order and return the routes built."""
        for wiring_pass in WIRING_ORDER:
            logger.debug(f"Running wiring pass '{wiring_pass.value}'")
            self._passes[wiring_pass]()
        return self.routes

    # =========================================================================
    # Lookup
    # =========================================================================

    def process_managers(self) -> List[Tuple[Application, ProcessManager]]:
        return [
            (application, intermediary)
            for application, intermediary in self.target_registry.iter_intermediaries()
            if isinstance(intermediary, ProcessManager)
        ]

    def find_process_manager(self, workflow_name: str) -> Optional[ProcessManager]:
        for _, process_manager in self.process_managers():
            if process_manager.workflow_model.name == workflow_name:
                return process_manager
        return None

    # =========================================================================
    # Pass 1
    # =========================================================================

    def bind_invoked_workflows(self) -> None:
        """Give every invoked workflow an activator trigger channel per invocation."""
        for _, process_manager in self.process_managers():
            definition = process_manager.workflow_model
            for container in definition.containers():
                for activity in container.activities:
                    if activity.activity_type != ActivityType.INVOKE_WORKFLOW:
                        continue
                    try:
                        self._bind_invoked_workflow(process_manager, activity)
                    except AnalysisError as e:
                        self.context.record(e, process_manager)

    def _bind_invoked_workflow(self, process_manager: ProcessManager, activity: WorkflowActivity) -> None:
        definition = process_manager.workflow_model
        invokee = activity.properties.get(PropertyKey.INVOKEE)

        invoking_channel = next((c for c in definition.channels if c.name == invokee), None)
        if invoking_channel is None:
            raise MissingTargetReference(
                f"Invoke activity '{activity.name}' in '{definition.name}' has no bound trigger channel",
                object_key=activity.key,
            )

        invoked = self.find_process_manager(invokee)
        if invoked is None:
            raise MissingTargetReference(
                f"Unable to find process manager for invoked workflow '{invokee}'",
                object_key=activity.key,
            )

        invoked_definition = invoked.workflow_model
        if any(c.name == invokee and c.activator for c in invoked_definition.channels):
            return

        is_async = bool(activity.properties.get(PropertyKey.IS_ASYNC, False))
        channel = WorkflowChannel(
            name=invokee,
            key=format_key(f"{invoked_definition.key}.{invokee}"),
            type=WorkflowChannelKind.TRIGGER.value,
            kind=WorkflowChannelKind.TRIGGER,
            activator=True,
            direction=MessageExchangePattern.ACCEPT if is_async else MessageExchangePattern.RECEIVE_RESPONSE,
        )
        parameters = invoking_channel.properties.get(PropertyKey.WORKFLOW_PARAMETERS)
        if parameters is not None:
            channel.add_property(PropertyKey.WORKFLOW_PARAMETERS, parameters)

        invoked_definition.channels.append(channel)
        logger.debug(f"Added activator trigger channel '{invokee}' to workflow '{invoked_definition.name}'")

    # =========================================================================
    # Pass 2
    # =========================================================================

    def build_routes(self) -> None:
        for application, process_manager in self.process_managers():
            if not process_manager.activator:
                continue
            try:
                self.routes[process_manager.key] = self.build_route(application, process_manager)
            except AnalysisError as e:
                self.context.record(e, process_manager)

    def build_route(self, application: Application, process_manager: ProcessManager) -> Route:
        """
        Route of an activator process manager, starting at the message box.

        Raises:
            MissingTargetReference: The message box or suspend queue is missing.
        """
        message_box = self.factory.require_channel(self.config.message_box_channel_key)
        self.factory.require_channel(self.config.suspend_queue_channel_key)

        key_prefix = ":".join([
            self.config.message_bus_key, format_key(application.name), format_key(process_manager.name)
        ])
        logger.debug(f"Building process manager route '{key_prefix}'")

        route: Route = [message_box, process_manager]
        process_manager.add_input_channel(message_box.key)

        self._bind_channels(key_prefix, application, process_manager, route, None, {process_manager.key})

        last = route[-1]
        router = self.factory.routing_slip_router(key_prefix, last.name, self.config.end_route)
        application.add_intermediary(router)
        to_router = self.route_binder.link(key_prefix, application, last, router)
        route.extend([to_router, router])
        return route

    def _bind_channels(
        self,
        key_prefix: str,
        application: Application,
        process_manager: ProcessManager,
        route: Route,
        invoking_channel_key: Optional[str],
        path: Set[str],
    ) -> None:
        for channel in process_manager.workflow_model.channels:
            if channel.kind == WorkflowChannelKind.TRIGGER:
                if channel.direction in RECEIVING_DIRECTIONS:
                    self._bind_invoked_trigger(process_manager, channel, invoking_channel_key)
                else:
                    self._bind_invocation(key_prefix, application, process_manager, channel, route, path)
            elif channel.kind == WorkflowChannelKind.PUBLISH_SUBSCRIBE:
                suspend_key = self.config.suspend_queue_channel_key
                channel.add_channel_out(suspend_key)
                process_manager.add_output_channel(suspend_key)
            else:
                self._bind_message_box(process_manager, channel)

    def _bind_invoked_trigger(
        self,
        process_manager: ProcessManager,
        channel: WorkflowChannel,
        invoking_channel_key: Optional[str],
    ) -> None:
        if invoking_channel_key is None:
            logger.debug(
                f"Skipping trigger channel '{channel.name}' of '{process_manager.name}': not invoked on this route"
            )
            return
        channel.add_channel_in(invoking_channel_key)
        process_manager.add_input_channel(invoking_channel_key)

    def _bind_message_box(self, process_manager: ProcessManager, channel: WorkflowChannel) -> None:
        message_box_key = self.config.message_box_channel_key
        if channel.direction in (MessageExchangePattern.ACCEPT, MessageExchangePattern.RECEIVE):
            channel.add_channel_in(message_box_key)
            process_manager.add_input_channel(message_box_key)
        elif channel.direction in SENDING_DIRECTIONS:
            channel.add_channel_out(message_box_key)
            process_manager.add_output_channel(message_box_key)
        else:
            channel.add_channel_in(message_box_key)
            channel.add_channel_out(message_box_key)
            process_manager.add_input_channel(message_box_key)
            process_manager.add_output_channel(message_box_key)

    def _bind_invocation(
        self,
        key_prefix: str,
        application: Application,
        process_manager: ProcessManager,
        channel: WorkflowChannel,
        route: Route,
        path: Set[str],
    ) -> None:
        """Hop from a process manager to the one it invokes, then walk the invoked one."""
        invoked = self.find_process_manager(channel.name)
        if invoked is None:
            self.context.record(MissingTargetReference(
                f"Unable to find process manager for invoked workflow '{channel.name}'",
                object_key=channel.key,
            ), process_manager)
            return

        if invoked.key in path:
            self.context.record(StructuralMismatch(
                f"Workflow '{process_manager.name}' invokes '{invoked.name}' which is already on the route; "
                f"route truncated",
                object_key=invoked.key,
            ), process_manager)
            return

        # One prefix per invocation path keeps sibling and diamond hops apart
        hop_prefix = f"{key_prefix}:{format_key(invoked.name)}"
        router = self.factory.routing_slip_router(hop_prefix, process_manager.name, invoked.name)
        application.add_intermediary(router)
        to_router = self.route_binder.link(hop_prefix, application, process_manager, router)
        from_router = self.route_binder.link(hop_prefix, application, router, invoked)
        channel.add_channel_out(to_router.key)

        route.extend([to_router, router, from_router, invoked])
        logger.debug(f"Wired invocation '{process_manager.name}' -> '{invoked.name}'")

        self._bind_channels(hop_prefix, application, invoked, route, from_router.key, path | {invoked.key})
