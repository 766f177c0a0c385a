"""
Pydantic models for the target messaging architecture.

Every object produced by the analyzer is a MessagingObject with a globally
unique key of the form <messageBus>:<application>:<scenario>:...:<leaf>.
Objects refer to each other only by key; the target model registry resolves
keys back to objects.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..errors import PreconditionViolation


# =============================================================================
# Enums
# =============================================================================

class ConversionRating(str, Enum):
    """Confidence that an object converts without manual work."""
    FULL_CONVERSION = "FullConversion"
    FULL_CONVERSION_WITH_FIDELITY_LOSS = "FullConversionWithFidelityLoss"
    PARTIAL_CONVERSION = "PartialConversion"
    NO_AUTOMATIC_CONVERSION = "NoAutomaticConversion"
    NO_RATING = "NoRating"


class MessageExchangePattern(str, Enum):
    RECEIVE = "Receive"
    RECEIVE_RESPONSE = "ReceiveResponse"
    SEND = "Send"
    REQUEST_REPLY = "RequestReply"
    FIRE_FORGET = "FireForget"
    ACCEPT = "Accept"


class MessageDeliveryGuarantee(str, Enum):
    AT_MOST_ONCE = "AtMostOnce"
    AT_LEAST_ONCE = "AtLeastOnce"


class MessageSeverity(str, Enum):
    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"


class FilterGroupOperation(str, Enum):
    AND = "And"
    OR = "Or"


# =============================================================================
# Reporting
# =============================================================================

class ReportMessage(BaseModel):
    """Message attached to a messaging object for the migration report."""
    severity: MessageSeverity = MessageSeverity.INFORMATION
    message: str


# =============================================================================
# Messaging objects
# =============================================================================

class MessagingObject(BaseModel):
    """Base for every object in the target model."""
    name: str = Field(..., description="Human readable name")
    key: str = Field(default="", description="Globally unique key")
    description: str = Field(default="")
    rating: ConversionRating = Field(default=ConversionRating.NO_RATING)
    resource_map_key: str = Field(default="", description="Key into the target resource template map")
    properties: Dict[str, Any] = Field(default_factory=dict)
    report_messages: List[ReportMessage] = Field(default_factory=list)
    report_links: List[str] = Field(default_factory=list)

    def downgrade_rating(self) -> None:
        """Cap the rating at partial conversion; never upgrades."""
        if self.rating in (
            ConversionRating.FULL_CONVERSION,
            ConversionRating.FULL_CONVERSION_WITH_FIDELITY_LOSS,
        ):
            self.rating = ConversionRating.PARTIAL_CONVERSION

    @property
    def scenario_step(self) -> Optional[str]:
        return self.properties.get("scenarioStep")


# =============================================================================
# Endpoints
# =============================================================================

class Endpoint(MessagingObject):
    """Adapter boundary of a route; holds single channel references."""
    activator: bool = False
    input_channel_key_ref: Optional[str] = None
    output_channel_key_ref: Optional[str] = None
    message_exchange_pattern: Optional[MessageExchangePattern] = None
    message_delivery_guarantee: MessageDeliveryGuarantee = MessageDeliveryGuarantee.AT_LEAST_ONCE


class AdapterEndpoint(Endpoint):
    adapter_name: str = Field(..., description="Transport adapter, e.g. FILE or HTTP")


# =============================================================================
# Intermediaries
# =============================================================================

class Intermediary(MessagingObject):
    """Processing step; channel references are ordered sets of keys."""
    activator: bool = False
    input_channel_key_refs: List[str] = Field(default_factory=list)
    output_channel_key_refs: List[str] = Field(default_factory=list)

    def add_input_channel(self, key: str) -> None:
        if key not in self.input_channel_key_refs:
            self.input_channel_key_refs.append(key)

    def add_output_channel(self, key: str) -> None:
        if key not in self.output_channel_key_refs:
            self.output_channel_key_refs.append(key)


class RoutingSlipRouter(Intermediary):
    """Inserted between route steps; route_to names the next step."""
    route_to: str = ""


class ContentPromoter(Intermediary):
    pass


class ContentDemoter(Intermediary):
    pass


class ContentBasedRouter(Intermediary):
    pass


class MessagePublisher(Intermediary):
    pass


class MessageSubscriber(Intermediary):
    is_durable: bool = False
    topic_subscriptions: Dict[str, str] = Field(default_factory=dict, description="topic name -> subscription name")


class MessageTranslator(Intermediary):
    map_key_refs: List[str] = Field(default_factory=list)


class GenericFilter(Intermediary):
    component: str = ""
    component_properties: Dict[str, Any] = Field(default_factory=dict)


class EnvelopeWrapper(Intermediary):
    pass


class MessageFilter(Intermediary):
    pass


class Aggregator(Intermediary):
    pass


class Splitter(Intermediary):
    pass


# =============================================================================
# Subscriptions and filters
# =============================================================================

class Filter(BaseModel):
    """Leaf filter holding a literal expression, e.g. btsMessageType = 'x'."""
    filter_expression: str


class FilterGroup(BaseModel):
    """AND/OR group of filters and nested groups."""
    operation: FilterGroupOperation = FilterGroupOperation.AND
    filters: List[Filter] = Field(default_factory=list)
    groups: List["FilterGroup"] = Field(default_factory=list)

    @classmethod
    def and_group(cls, *expressions: str) -> "FilterGroup":
        return cls(
            operation=FilterGroupOperation.AND,
            filters=[Filter(filter_expression=e) for e in expressions],
        )

    @classmethod
    def or_group(cls, *expressions: str) -> "FilterGroup":
        return cls(
            operation=FilterGroupOperation.OR,
            filters=[Filter(filter_expression=e) for e in expressions],
        )

    def add_filter(self, expression: str) -> None:
        self.filters.append(Filter(filter_expression=expression))

    def is_empty(self) -> bool:
        return not self.filters and all(g.is_empty() for g in self.groups)

    def expressions(self) -> List[str]:
        """All leaf expressions, depth first."""
        found = [f.filter_expression for f in self.filters]
        for group in self.groups:
            found.extend(group.expressions())
        return found


class SubscriptionFilter(BaseModel):
    group: FilterGroup


class Subscription(BaseModel):
    """Durable registration on a topic channel."""
    name: str
    topic_name: str
    is_durable: bool = False
    is_ordered: bool = False
    filters: List[SubscriptionFilter] = Field(default_factory=list)


# =============================================================================
# Channels
# =============================================================================

class Channel(MessagingObject):
    """Point-to-point queue between messaging objects."""
    pass


class TriggerChannel(Channel):
    """Channel that triggers the next step; routers set a trigger URL."""
    trigger_url: Optional[str] = None


class TopicChannel(Channel):
    topic_name: str = ""
    subscriptions: List[Subscription] = Field(default_factory=list)

    def find_subscription(self, name: str) -> Optional[Subscription]:
        return next((s for s in self.subscriptions if s.name == name), None)


class CorrelatingQueueChannel(Channel):
    pass


# =============================================================================
# Application and bus
# =============================================================================

class Application(MessagingObject):
    """Target application owning the produced objects of one source application."""
    endpoints: List[Endpoint] = Field(default_factory=list)
    intermediaries: List[Intermediary] = Field(default_factory=list)
    channels: List[Channel] = Field(default_factory=list)
    messages: List[Any] = Field(default_factory=list)

    def add_endpoint(self, endpoint: Endpoint) -> None:
        if not any(e is endpoint for e in self.endpoints):
            self.endpoints.append(endpoint)

    def add_intermediary(self, intermediary: Intermediary) -> None:
        if not any(i is intermediary for i in self.intermediaries):
            self.intermediaries.append(intermediary)

    def add_channel(self, channel: Channel) -> None:
        """
        Add a channel once.

        Raises:
            PreconditionViolation: A different channel already uses the key.
        """
        for existing in self.channels:
            if existing is channel:
                return
            if existing.key == channel.key:
                raise PreconditionViolation(f"Channel key '{channel.key}' already used in application '{self.name}'")
        self.channels.append(channel)

    def add_step(self, step: MessagingObject) -> None:
        """Add a route step to the endpoint or intermediary collection."""
        if isinstance(step, Endpoint):
            self.add_endpoint(step)
        elif isinstance(step, Intermediary):
            self.add_intermediary(step)
        else:
            raise TypeError(f"Route step '{step.key}' is neither endpoint nor intermediary")

    def messaging_objects(self) -> List[MessagingObject]:
        return [*self.endpoints, *self.intermediaries, *self.channels, *self.messages]


class MessageBus(MessagingObject):
    applications: List[Application] = Field(default_factory=list)


# =============================================================================
# Key helpers
# =============================================================================

def format_key(value: str) -> str:
    """Normalise a name for use inside a key (spaces removed, case kept)."""
    return value.replace(" ", "")


def format_resource_map_key(*parts: str) -> str:
    """Join parts into a resource map key using only '-' as separator."""
    joined = "".join(format_key(p) for p in parts)
    for separator in (".", "/", ":"):
        joined = joined.replace(separator, "-")
    return joined
