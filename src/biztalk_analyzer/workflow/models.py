"""
Workflow model built from an orchestration's metamodel tree.

A WorkflowDefinition is the root activity container of one orchestration.
It owns scoped messages and variables, the logical channels of its ports
and service links, and a tree of activities. Every workflow object carries
a PropertyBag whose keys are inserted at most once.
"""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..errors import DuplicatePropertyError
from ..target.models import Intermediary, MessageExchangePattern, Subscription


# =============================================================================
# Enums
# =============================================================================

class PropertyKey(str, Enum):
    """
    Property keys written by the analyzer onto workflow objects.

    Metamodel properties copied verbatim from source elements use their own
    names (e.g. 'PortName', 'OperationName') and share the same bag.
    """
    ACTIVATE = "Activate"
    ACTIVITY_REFERENCES = "ActivityReferences"
    BINDING = "Binding"
    CONSTRUCTED_MESSAGES = "ConstructedMessages"
    CONSUMER_CHANNEL_REFERENCE = "ConsumerChannelReference"
    DIRECT_BINDING_TYPE = "DirectBindingType"
    EXPRESSION_LANGUAGE = "ExpressionLanguage"
    FOLLOWS_CORRELATION = "FollowsCorrelation"
    INITIALIZES_CORRELATION = "InitializesCorrelation"
    INVOKEE = "Invokee"
    IS_ASYNC = "IsAsync"
    IS_MULTI_SOURCE = "IsMultiSource"
    IS_MULTI_TARGET = "IsMultiTarget"
    IS_SERVICE_LINK = "IsServiceLink"
    LOGICAL_BINDING_PORT = "LogicalBindingPort"
    MAP = "Map"
    MESSAGE_NAME = "MessageName"
    MESSAGE_PROPERTIES = "MessageProperties"
    OBJECT_ID = "ObjectId"
    OPERATION_NAME = "OperationName"
    OPERATION_MESSAGE_NAME = "OperationMessageName"
    PORT_NAME = "PortName"
    PROVIDER_CHANNEL_REFERENCE = "ProviderChannelReference"
    REQUEST_MESSAGE_PROPERTIES = "RequestMessageProperties"
    ROLE_NAME = "RoleName"
    ROUTING_PROPERTIES = "RoutingProperties"
    SERVICE_LINK_NAME = "ServiceLinkName"
    SERVICE_LINK_PORT_TYPE_NAME = "ServiceLinkPortTypeName"
    SERVICE_LINK_ROLE_NAME = "ServiceLinkRoleName"
    SOURCE_MESSAGE_REFERENCES = "SourceMessageReferences"
    SUBSCRIPTION_FILTER = "SubscriptionFilter"
    TARGET_MESSAGE_REFERENCES = "TargetMessageReferences"
    USE_DEFAULT_CONSTRUCTOR = "UseDefaultConstructor"
    INITIAL_VALUE = "InitialValue"
    WORKFLOW_CHANNEL = "WorkflowChannel"
    WORKFLOW_PARAMETERS = "WorkflowParameters"


BOOL_PROPERTIES = frozenset({
    PropertyKey.ACTIVATE.value,
    PropertyKey.IS_ASYNC.value,
    PropertyKey.IS_MULTI_SOURCE.value,
    PropertyKey.IS_MULTI_TARGET.value,
    PropertyKey.IS_SERVICE_LINK.value,
    PropertyKey.USE_DEFAULT_CONSTRUCTOR.value,
})


class ActivityType(str, Enum):
    """Closed set of workflow object types."""
    ACTIVITY_GROUP = "ActivityGroup"
    CODE_EXPRESSION = "CodeExpression"
    DECISION = "Decision"
    DECISION_BRANCH = "DecisionBranch"
    INVOKE_WORKFLOW = "InvokeWorkflow"
    MESSAGE_CONSTRUCTION = "MessageConstruction"
    MESSAGE_TRANSFORM = "MessageTransform"
    RECEIVE = "Receive"
    SEND = "Send"
    SUSPEND = "Suspend"
    TERMINATE = "Terminate"
    WORKFLOW = "Workflow"
    OTHER = "Other"

    @classmethod
    def from_tag(cls, tag: str) -> "ActivityType":
        """Map a type tag to its activity type; unknown tags are OTHER."""
        try:
            return cls(tag)
        except ValueError:
            return cls.OTHER


class BindingKind(str, Enum):
    """How an orchestration port is bound."""
    DIRECT = "Direct"
    LOGICAL = "Logical"
    PHYSICAL = "Physical"


class WorkflowMessageType(str, Enum):
    REQUEST = "Request"
    RESPONSE = "Response"
    FAULT = "Fault"


class WorkflowChannelKind(str, Enum):
    PORT = "Port"
    SERVICE_LINK = "ServiceLink"
    TRIGGER = "Trigger"
    PUBLISH_SUBSCRIBE = "PublishSubscribe"


# =============================================================================
# Property bag
# =============================================================================

def _coerce(key: str, value: Any) -> Any:
    if key in BOOL_PROPERTIES and isinstance(value, str):
        return value.strip().lower() == "true"
    return value


class PropertyBag:
    """Insertion-ordered property map where each key is set once."""

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}

    @staticmethod
    def _key(key: Union[PropertyKey, str]) -> str:
        return key.value if isinstance(key, PropertyKey) else key

    def add(self, key: Union[PropertyKey, str], value: Any, owner: str = "") -> None:
        """
        Insert a property.

        Raises:
            DuplicatePropertyError: If the key is already present.
        """
        name = self._key(key)
        if name in self._values:
            raise DuplicatePropertyError(name, owner)
        self._values[name] = _coerce(name, value)

    def add_if_absent(self, key: Union[PropertyKey, str], value: Any) -> bool:
        """Insert a property unless present; returns True when inserted."""
        name = self._key(key)
        if name in self._values:
            return False
        self._values[name] = _coerce(name, value)
        return True

    def get(self, key: Union[PropertyKey, str], default: Any = None) -> Any:
        return self._values.get(self._key(key), default)

    def __getitem__(self, key: Union[PropertyKey, str]) -> Any:
        return self._values[self._key(key)]

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (PropertyKey, str)):
            return self._key(key) in self._values
        return False

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def items(self):
        return self._values.items()

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"PropertyBag({self._values!r})"


# =============================================================================
# Workflow objects
# =============================================================================

class WorkflowObject(BaseModel):
    """Identity shared by every workflow node."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = ""
    key: str = ""
    type: str = Field(default="", description="Type tag, or declared type name for messages and variables")
    properties: PropertyBag = Field(default_factory=PropertyBag, repr=False)

    def add_property(self, key: Union[PropertyKey, str], value: Any) -> None:
        self.properties.add(key, value, owner=self.key or self.name)


class WorkflowMessage(WorkflowObject):
    """Message declared in a workflow scope."""
    message_type: Optional[str] = Field(default=None, description="Resolved routing message type")
    workflow_message_type: Optional[WorkflowMessageType] = None
    correlation_properties: List[str] = Field(default_factory=list)

    def set_workflow_message_type(self, message_type: WorkflowMessageType) -> None:
        self.workflow_message_type = message_type

    def add_correlation_property(self, property_type: str) -> None:
        if property_type not in self.correlation_properties:
            self.correlation_properties.append(property_type)


class WorkflowCompositeMessage(WorkflowMessage):
    """Multipart message; classification propagates to every part."""
    parts: List[WorkflowMessage] = Field(default_factory=list)

    def set_workflow_message_type(self, message_type: WorkflowMessageType) -> None:
        super().set_workflow_message_type(message_type)
        for part in self.parts:
            part.set_workflow_message_type(message_type)


class WorkflowVariable(WorkflowObject):
    pass


class WorkflowActivity(WorkflowObject):
    """Leaf step of a workflow."""

    @property
    def activity_type(self) -> ActivityType:
        return ActivityType.from_tag(self.type)

    @property
    def object_id(self) -> Optional[str]:
        return self.properties.get(PropertyKey.OBJECT_ID)


class WorkflowCorrelationVariable(WorkflowVariable):
    """Correlation set declared on a workflow."""
    correlation_properties: List[WorkflowVariable] = Field(default_factory=list)
    initializing_activity: Optional[WorkflowActivity] = Field(default=None, repr=False)
    following_activities: List[WorkflowActivity] = Field(default_factory=list, repr=False)

    def add_following_activity(self, activity: WorkflowActivity) -> None:
        if not any(a is activity for a in self.following_activities):
            self.following_activities.append(activity)


class WorkflowActivityContainer(WorkflowActivity):
    """Activity owning child activities and a lexical scope."""
    activities: List[WorkflowActivity] = Field(default_factory=list)
    messages: List[WorkflowMessage] = Field(default_factory=list)
    variables: List[WorkflowVariable] = Field(default_factory=list)

    def containers(self) -> Iterator["WorkflowActivityContainer"]:
        """This container and every nested container, depth first."""
        yield self
        for activity in self.activities:
            if isinstance(activity, WorkflowActivityContainer):
                yield from activity.containers()

    def iter_activities(self) -> Iterator[WorkflowActivity]:
        """Every activity below this container, depth first."""
        for activity in self.activities:
            yield activity
            if isinstance(activity, WorkflowActivityContainer):
                yield from activity.iter_activities()

    def find_activity_by_object_id(self, object_id: str) -> Optional[WorkflowActivity]:
        for activity in self.iter_activities():
            if activity.object_id == object_id:
                return activity
        return None

    def find_message(self, name: str) -> Optional[WorkflowMessage]:
        """Message declared in this scope or any nested scope."""
        for container in self.containers():
            for message in container.messages:
                if message.name == name:
                    return message
        return None


class WorkflowChannel(WorkflowObject):
    """Logical port operation, service link role, trigger or suspend channel."""
    operation_name: Optional[str] = None
    kind: WorkflowChannelKind = WorkflowChannelKind.PORT
    activator: bool = False
    direction: Optional[MessageExchangePattern] = None
    messages_in: List[WorkflowMessage] = Field(default_factory=list)
    messages_out: List[WorkflowMessage] = Field(default_factory=list)
    subscription: Optional[Subscription] = None
    channel_key_refs_in: List[str] = Field(default_factory=list)
    channel_key_refs_out: List[str] = Field(default_factory=list)

    def assign_direction(self, direction: MessageExchangePattern) -> bool:
        """Set the direction once; returns False if it conflicts with the existing one."""
        if self.direction is None:
            self.direction = direction
            return True
        return self.direction == direction

    def add_message_in(self, message: WorkflowMessage) -> None:
        if not any(m.name == message.name for m in self.messages_in):
            self.messages_in.append(message)

    def add_message_out(self, message: WorkflowMessage) -> None:
        if not any(m.name == message.name for m in self.messages_out):
            self.messages_out.append(message)

    def add_channel_in(self, key: str) -> None:
        if key not in self.channel_key_refs_in:
            self.channel_key_refs_in.append(key)

    def add_channel_out(self, key: str) -> None:
        if key not in self.channel_key_refs_out:
            self.channel_key_refs_out.append(key)


class WorkflowDefinition(WorkflowActivityContainer):
    """Root container of one orchestration, plus its channels."""
    channels: List[WorkflowChannel] = Field(default_factory=list)

    def find_channel(self, name: str, operation_name: Optional[str] = None) -> Optional[WorkflowChannel]:
        for channel in self.channels:
            if channel.name == name and channel.operation_name == operation_name:
                return channel
        return None

    def correlation_variables(self) -> Iterator[WorkflowCorrelationVariable]:
        for container in self.containers():
            for variable in container.variables:
                if isinstance(variable, WorkflowCorrelationVariable):
                    yield variable

    @property
    def is_activatable(self) -> bool:
        return any(c.activator for c in self.channels)


# =============================================================================
# Process manager
# =============================================================================

class ProcessManager(Intermediary):
    """Intermediary that runs one bound workflow."""
    workflow_model: WorkflowDefinition
