"""
Channel Binder — gives workflow channels their messaging semantics.

Walks every activity container of a workflow definition and binds the
message-exchange activities (receive, send, invoke, suspend, terminate) to
their channels: direction from the port type operation, messages in/out,
message box subscriptions for activating receives and property promotion
for sends. Binding is idempotent; properties are only added when absent.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ..constants import (
    BTS_ACK_RECEIVE_PORT_ID,
    BTS_MESSAGE_TYPE,
    BTS_OUTBOUND_TRANSPORT_LOCATION,
    BTS_OUTBOUND_TRANSPORT_TYPE,
    BTS_RECEIVE_PORT_NAME,
    BTS_SP_GROUP_ID,
    BTS_SP_ID,
    BTS_SP_TRANSPORT_BACKUP_ID,
    BTS_SP_TRANSPORT_ID,
    CORRELATION_ID,
    MESSAGE_ID,
    ResourceType,
)
from ..context import MigrationContext
from ..errors import (
    AnalysisError,
    MissingSourceConstruct,
    MissingTargetReference,
    PreconditionViolation,
    StructuralMismatch,
)
from ..source.models import ServiceBinding, SendPort
from ..source.resource_registry import ResourceRegistry
from ..target.models import (
    Application,
    FilterGroup,
    FilterGroupOperation,
    MessageExchangePattern,
    Subscription,
    SubscriptionFilter,
    TopicChannel,
    format_key,
)
from ..target.target_registry import TargetModelRegistry
from .models import (
    ActivityType,
    BindingKind,
    PropertyKey,
    WorkflowActivity,
    WorkflowChannel,
    WorkflowChannelKind,
    WorkflowDefinition,
    WorkflowMessage,
    WorkflowMessageType,
)
from .type_resolver import TypeResolver


logger = logging.getLogger(__name__)


OPERATION_DECLARATION = "OperationDeclaration"
OPERATION_TYPE = "OperationType"
OPERATION_MESSAGE_REF = "MessageRef"
ONE_WAY_OPERATION = "OneWay"

REQUEST_MESSAGE_LINK = "OperationDeclaration_RequestMessageRef"
RESPONSE_MESSAGE_LINK = "OperationDeclaration_ResponseMessageRef"
FAULT_MESSAGE_LINK = "OperationDeclaration_FaultMessageRef"

# (message slot, one-way) -> (message classification, channel direction)
Slot = Tuple[str, bool]
Resolution = Tuple[WorkflowMessageType, MessageExchangePattern]

RECEIVE_RESOLUTION: Dict[Slot, Resolution] = {
    (REQUEST_MESSAGE_LINK, True): (WorkflowMessageType.REQUEST, MessageExchangePattern.RECEIVE),
    (REQUEST_MESSAGE_LINK, False): (WorkflowMessageType.REQUEST, MessageExchangePattern.RECEIVE_RESPONSE),
    (RESPONSE_MESSAGE_LINK, False): (WorkflowMessageType.RESPONSE, MessageExchangePattern.REQUEST_REPLY),
    (FAULT_MESSAGE_LINK, False): (WorkflowMessageType.FAULT, MessageExchangePattern.REQUEST_REPLY),
}

SEND_RESOLUTION: Dict[Slot, Resolution] = {
    (REQUEST_MESSAGE_LINK, True): (WorkflowMessageType.REQUEST, MessageExchangePattern.SEND),
    (REQUEST_MESSAGE_LINK, False): (WorkflowMessageType.REQUEST, MessageExchangePattern.REQUEST_REPLY),
    (RESPONSE_MESSAGE_LINK, False): (WorkflowMessageType.RESPONSE, MessageExchangePattern.RECEIVE_RESPONSE),
    (FAULT_MESSAGE_LINK, False): (WorkflowMessageType.FAULT, MessageExchangePattern.RECEIVE_RESPONSE),
}

RECEIVING_DIRECTIONS = (
    MessageExchangePattern.RECEIVE,
    MessageExchangePattern.ACCEPT,
    MessageExchangePattern.RECEIVE_RESPONSE,
)
SENDING_DIRECTIONS = (
    MessageExchangePattern.SEND,
    MessageExchangePattern.FIRE_FORGET,
    MessageExchangePattern.REQUEST_REPLY,
)
BOUND_PORT_KINDS = (BindingKind.LOGICAL.value, BindingKind.PHYSICAL.value)


BindHandler = Callable[[WorkflowDefinition, Application, WorkflowActivity], None]


class ChannelBinder:
    """Binds workflow activities to the channels they exchange messages on."""

    def __init__(
        self,
        registry: ResourceRegistry,
        target_registry: TargetModelRegistry,
        resolver: TypeResolver,
        context: MigrationContext,
    ):
        self.registry = registry
        self.target_registry = target_registry
        self.resolver = resolver
        self.context = context

        self._handlers: Dict[ActivityType, Optional[BindHandler]] = {
            ActivityType.RECEIVE: self._bind_receive,
            ActivityType.SEND: self._bind_send,
            ActivityType.INVOKE_WORKFLOW: self._bind_invoke_workflow,
            ActivityType.SUSPEND: self._bind_suspend,
            ActivityType.TERMINATE: self._bind_suspend,
            # Not message-exchange activities
            ActivityType.ACTIVITY_GROUP: None,
            ActivityType.CODE_EXPRESSION: None,
            ActivityType.DECISION: None,
            ActivityType.DECISION_BRANCH: None,
            ActivityType.MESSAGE_CONSTRUCTION: None,
            ActivityType.MESSAGE_TRANSFORM: None,
            ActivityType.WORKFLOW: None,
            ActivityType.OTHER: None,
        }
        missing = set(ActivityType) - set(self._handlers)
        if missing:
            raise PreconditionViolation(
                f"No binding decision for activity types: {sorted(m.value for m in missing)}"
            )

    def bind_channels(self, definition: WorkflowDefinition, target_application: Application) -> None:
        """Bind every bindable activity in every container of the definition."""
        logger.debug(f"Binding channels of workflow '{definition.name}'")

        for container in definition.containers():
            for activity in container.activities:
                handler = self._handlers[activity.activity_type]
                if handler is None:
                    continue
                try:
                    handler(definition, target_application, activity)
                except AnalysisError as e:
                    self.context.record(e)

    # =========================================================================
    # Receive / Send
    # =========================================================================

    def _find_activity_channel(
        self, definition: WorkflowDefinition, activity: WorkflowActivity
    ) -> Tuple[WorkflowChannel, str]:
        """Channel an activity exchanges on, plus the port type to resolve it against."""
        props = activity.properties
        link_name = props.get(PropertyKey.SERVICE_LINK_NAME)
        if link_name is not None:
            channel_name = f"{link_name}.{props.get(PropertyKey.SERVICE_LINK_ROLE_NAME)}"
            channel = definition.find_channel(channel_name)
        else:
            channel_name = props.get(PropertyKey.PORT_NAME)
            channel = definition.find_channel(channel_name, props.get(PropertyKey.OPERATION_NAME))

        if channel is None:
            raise MissingSourceConstruct(
                f"Unable to find workflow channel '{channel_name}' for activity '{activity.name}'",
                object_key=activity.key,
            )

        port_type_name = channel.type
        if link_name is not None:
            port_type_name = props.get(PropertyKey.SERVICE_LINK_PORT_TYPE_NAME)
        return channel, port_type_name

    def _resolve_slot(self, port_type_name: str, activity: WorkflowActivity) -> Optional[Slot]:
        """
        Find which message slot of the port type operation the activity uses.

        Returns:
            (parent link of the matching message ref, operation is one-way),
            or None when the port type is unknown.

        Raises:
            StructuralMismatch: The operation has no message matching the activity.
        """
        port_type = self.resolver.resolve_element(ResourceType.PORT_TYPE, port_type_name)
        if port_type is None:
            return None

        operation_name = activity.properties.get(PropertyKey.OPERATION_NAME)
        message_name = activity.properties.get(PropertyKey.OPERATION_MESSAGE_NAME)

        operations = port_type.children_of_type(OPERATION_DECLARATION)
        if not operations:
            raise StructuralMismatch(f"Port type '{port_type_name}' must have at least one operation")

        for operation in operations:
            if operation.find_property_value("Name") != operation_name:
                continue
            refs = operation.children_of_type(OPERATION_MESSAGE_REF)
            if not refs:
                raise StructuralMismatch(
                    f"Operation '{operation_name}' on port type '{port_type_name}' has no message references"
                )
            one_way = operation.find_property_value(OPERATION_TYPE) == ONE_WAY_OPERATION
            for ref in refs:
                if ref.find_property_value("Name") == message_name:
                    return ref.parent_link, one_way

        raise StructuralMismatch(
            f"Operation '{operation_name}' on port type '{port_type_name}' has no message "
            f"'{message_name}' matching activity '{activity.name}'",
            object_key=activity.key,
        )

    def _apply_direction(
        self,
        channel: WorkflowChannel,
        activity: WorkflowActivity,
        port_type_name: str,
        table: Dict[Slot, Resolution],
    ) -> WorkflowMessageType:
        message_type = WorkflowMessageType.REQUEST
        try:
            slot = self._resolve_slot(port_type_name, activity)
        except StructuralMismatch as e:
            self.context.record(e)
            return message_type
        if slot is None:
            return message_type

        resolution = table.get(slot)
        if resolution is None:
            self.context.record(StructuralMismatch(
                f"Message slot '{slot[0]}' is not valid for a one-way operation on '{port_type_name}'",
                object_key=activity.key,
            ))
            return message_type

        message_type, direction = resolution
        if not channel.assign_direction(direction):
            self.context.record(StructuralMismatch(
                f"Activity '{activity.name}' binds channel '{channel.name}' as {direction.value} "
                f"but it is already {channel.direction.value}",
                object_key=activity.key,
            ))
        return message_type

    def _find_message(self, definition: WorkflowDefinition, activity: WorkflowActivity) -> WorkflowMessage:
        message_name = activity.properties.get(PropertyKey.MESSAGE_NAME)
        message = definition.find_message(message_name) if message_name else None
        if message is None:
            raise MissingSourceConstruct(
                f"Unable to find message '{message_name}' used by activity '{activity.name}'",
                object_key=activity.key,
            )
        return message

    def _bind_receive(self, definition: WorkflowDefinition, application: Application, activity: WorkflowActivity) -> None:
        channel, port_type_name = self._find_activity_channel(definition, activity)
        logger.debug(f"Binding receive '{activity.name}' to channel '{channel.name}'")

        activatable = bool(activity.properties.get(PropertyKey.ACTIVATE, False))
        if activatable:
            channel.activator = True

        message_type = self._apply_direction(channel, activity, port_type_name, RECEIVE_RESOLUTION)
        activity.properties.add_if_absent(PropertyKey.WORKFLOW_CHANNEL, channel.key)

        message = self._find_message(definition, activity)
        message.set_workflow_message_type(message_type)
        message.properties.add_if_absent(PropertyKey.ACTIVATE, activatable)
        channel.add_message_in(message)

        if activatable:
            self._subscribe(definition, activity, channel, message)

    def _bind_send(self, definition: WorkflowDefinition, application: Application, activity: WorkflowActivity) -> None:
        channel, port_type_name = self._find_activity_channel(definition, activity)
        logger.debug(f"Binding send '{activity.name}' to channel '{channel.name}'")

        message_type = self._apply_direction(channel, activity, port_type_name, SEND_RESOLUTION)
        activity.properties.add_if_absent(PropertyKey.WORKFLOW_CHANNEL, channel.key)

        message = self._find_message(definition, activity)
        message.set_workflow_message_type(message_type)
        channel.add_message_out(message)

        self._promote_properties(definition, application, activity, channel, message)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def _find_service_binding(self, definition: WorkflowDefinition) -> Optional[ServiceBinding]:
        for resource in self.registry.find_resources_by_type(ResourceType.SERVICE_BINDING):
            if resource.name != definition.name:
                continue
            if not isinstance(resource.source_object, ServiceBinding):
                self.context.record(StructuralMismatch(
                    f"Service binding '{resource.key}' has no binding source object",
                    object_key=resource.key,
                ))
                return None
            return resource.source_object

        self.context.record(MissingSourceConstruct(
            f"Workflow '{definition.name}' is missing from the binding file"
        ))
        return None

    def _subscribe(
        self,
        definition: WorkflowDefinition,
        activity: WorkflowActivity,
        channel: WorkflowChannel,
        message: WorkflowMessage,
    ) -> None:
        key = self.context.config.message_box_channel_key
        lookup = self.target_registry.find_messaging_object(key)
        if not isinstance(lookup.messaging_object, TopicChannel):
            raise MissingTargetReference(f"Unable to find message box topic channel '{key}'")
        topic = lookup.messaging_object

        group = FilterGroup(operation=FilterGroupOperation.AND)

        if channel.properties.get(PropertyKey.BINDING) in BOUND_PORT_KINDS:
            binding = self._find_service_binding(definition)
            port = binding.find_port(channel.name) if binding is not None else None
            if port is not None:
                if channel.direction in RECEIVING_DIRECTIONS or channel.direction is None:
                    if port.receive_port_name:
                        group.add_filter(f"{BTS_RECEIVE_PORT_NAME} = '{port.receive_port_name}'")
                        channel.properties.add_if_absent(PropertyKey.LOGICAL_BINDING_PORT, port.receive_port_name)
                elif port.send_port_name:
                    channel.properties.add_if_absent(PropertyKey.LOGICAL_BINDING_PORT, port.send_port_name)

        predicate_groups: Optional[List[List[str]]] = activity.properties.get(PropertyKey.SUBSCRIPTION_FILTER)
        if predicate_groups:
            if len(predicate_groups) == 1:
                for expression in predicate_groups[0]:
                    group.add_filter(expression)
            else:
                group.groups.append(FilterGroup(
                    operation=FilterGroupOperation.OR,
                    groups=[FilterGroup.and_group(*expressions) for expressions in predicate_groups],
                ))
        elif message.message_type:
            group.add_filter(f"{BTS_MESSAGE_TYPE} = '{message.message_type}'")

        if group.is_empty():
            logger.debug(f"No subscription filters for receive '{activity.name}'")
            return

        subscription = channel.subscription or topic.find_subscription(definition.name)
        if subscription is None:
            subscription = Subscription(name=definition.name, topic_name=topic.topic_name, is_durable=True)
            topic.subscriptions.append(subscription)

        subscription_filter = SubscriptionFilter(group=group)
        if subscription_filter not in subscription.filters:
            subscription.filters.append(subscription_filter)
        channel.subscription = subscription

    # =========================================================================
    # Property promotion
    # =========================================================================

    def _find_send_port(self, name: str) -> Optional[SendPort]:
        for resource in self.registry.find_resources_by_type(ResourceType.SEND_PORT):
            if resource.name == name and isinstance(resource.source_object, SendPort):
                return resource.source_object
        return None

    def _promote_properties(
        self,
        definition: WorkflowDefinition,
        application: Application,
        activity: WorkflowActivity,
        channel: WorkflowChannel,
        message: WorkflowMessage,
    ) -> None:
        message_properties: Dict[str, str] = {}
        request_message_properties: Dict[str, str] = {}
        routing_properties: Dict[str, str] = {}

        def promote(name: str, value: str) -> None:
            message_properties[name] = value
            routing_properties[name] = name

        app_name = format_key(application.name)

        if channel.properties.get(PropertyKey.BINDING) in BOUND_PORT_KINDS:
            binding = self._find_service_binding(definition)
            port = binding.find_port(channel.name) if binding is not None else None

            if port is not None and channel.direction in SENDING_DIRECTIONS:
                if port.send_port_name:
                    send_port = self._find_send_port(port.send_port_name)
                    if send_port is None:
                        raise MissingSourceConstruct(
                            f"Unable to find send port '{port.send_port_name}' bound to '{channel.name}'",
                            object_key=activity.key,
                        )
                    port_id = f"{app_name}.{format_key(port.send_port_name)}"
                    if not send_port.is_static:
                        promote(BTS_SP_TRANSPORT_ID, port_id)
                    if send_port.primary_transport is not None and send_port.primary_transport.transport_type:
                        transport = send_port.primary_transport
                        promote(BTS_SP_TRANSPORT_ID, f"{port_id}.{transport.transport_type}")
                        promote(BTS_OUTBOUND_TRANSPORT_LOCATION, transport.address)
                        promote(BTS_OUTBOUND_TRANSPORT_TYPE, transport.transport_type)
                    if send_port.secondary_transport is not None and send_port.secondary_transport.transport_type:
                        promote(
                            BTS_SP_TRANSPORT_BACKUP_ID,
                            f"{port_id}.{send_port.secondary_transport.transport_type}",
                        )
                    promote(BTS_SP_ID, port_id)
                    channel.properties.add_if_absent(PropertyKey.LOGICAL_BINDING_PORT, port.send_port_name)
                elif port.send_port_group_name:
                    promote(BTS_SP_GROUP_ID, f"{app_name}.{format_key(port.send_port_group_name)}")
                    channel.properties.add_if_absent(PropertyKey.LOGICAL_BINDING_PORT, port.send_port_group_name)

            elif port is not None and port.receive_port_name:
                # Response to a two-way receive port
                promote(BTS_ACK_RECEIVE_PORT_ID, f"{app_name}.{format_key(port.receive_port_name)}")
                request_message_properties[CORRELATION_ID] = MESSAGE_ID
                channel.properties.add_if_absent(PropertyKey.LOGICAL_BINDING_PORT, port.receive_port_name)

        if message.message_type:
            promote(BTS_MESSAGE_TYPE, message.message_type)

        activity.properties.add_if_absent(PropertyKey.MESSAGE_PROPERTIES, message_properties)
        activity.properties.add_if_absent(PropertyKey.REQUEST_MESSAGE_PROPERTIES, request_message_properties)
        channel.properties.add_if_absent(PropertyKey.ROUTING_PROPERTIES, routing_properties)

    # =========================================================================
    # Invoke / Suspend / Terminate
    # =========================================================================

    def _bind_invoke_workflow(self, definition: WorkflowDefinition, application: Application, activity: WorkflowActivity) -> None:
        invokee = activity.properties.get(PropertyKey.INVOKEE)
        if not invokee:
            raise MissingSourceConstruct(
                f"Invoke activity '{activity.name}' does not name the invoked workflow",
                object_key=activity.key,
            )

        channel = next((c for c in definition.channels if c.name == invokee), None)
        if channel is None:
            is_async = bool(activity.properties.get(PropertyKey.IS_ASYNC, False))
            channel = WorkflowChannel(
                name=invokee,
                key=format_key(f"{definition.key}.{invokee}"),
                type=WorkflowChannelKind.TRIGGER.value,
                kind=WorkflowChannelKind.TRIGGER,
                direction=MessageExchangePattern.FIRE_FORGET if is_async else MessageExchangePattern.REQUEST_REPLY,
            )
            definition.channels.append(channel)
            logger.debug(f"Created trigger channel '{channel.name}' in workflow '{definition.name}'")

        activity.properties.add_if_absent(PropertyKey.WORKFLOW_CHANNEL, channel.key)
        parameters = activity.properties.get(PropertyKey.WORKFLOW_PARAMETERS)
        if parameters is not None:
            channel.properties.add_if_absent(PropertyKey.WORKFLOW_PARAMETERS, parameters)

    def _bind_suspend(self, definition: WorkflowDefinition, application: Application, activity: WorkflowActivity) -> None:
        name = self.context.config.suspend_queue_leaf
        channel = next((c for c in definition.channels if c.name == name), None)
        if channel is None:
            channel = WorkflowChannel(
                name=name,
                key=format_key(f"{definition.key}.{name}"),
                type=WorkflowChannelKind.PUBLISH_SUBSCRIBE.value,
                kind=WorkflowChannelKind.PUBLISH_SUBSCRIBE,
                direction=MessageExchangePattern.FIRE_FORGET,
            )
            definition.channels.append(channel)
            logger.debug(f"Created suspend channel in workflow '{definition.name}'")

        activity.properties.add_if_absent(PropertyKey.WORKFLOW_CHANNEL, channel.key)
