"""
Target messaging model produced by the analyzer.
"""

from .models import (
    AdapterEndpoint,
    Aggregator,
    Application,
    Channel,
    ContentBasedRouter,
    ContentDemoter,
    ContentPromoter,
    ConversionRating,
    CorrelatingQueueChannel,
    Endpoint,
    EnvelopeWrapper,
    Filter,
    FilterGroup,
    FilterGroupOperation,
    GenericFilter,
    Intermediary,
    MessageBus,
    MessageExchangePattern,
    MessageFilter,
    MessagePublisher,
    MessageSeverity,
    MessageSubscriber,
    MessageTranslator,
    MessagingObject,
    ReportMessage,
    RoutingSlipRouter,
    Splitter,
    Subscription,
    SubscriptionFilter,
    TopicChannel,
    TriggerChannel,
)
from .models import format_key, format_resource_map_key
from .target_registry import NOT_FOUND, MessagingObjectLookup, TargetModelRegistry

__all__ = [
    "AdapterEndpoint",
    "Aggregator",
    "Application",
    "Channel",
    "ContentBasedRouter",
    "ContentDemoter",
    "ContentPromoter",
    "ConversionRating",
    "CorrelatingQueueChannel",
    "Endpoint",
    "EnvelopeWrapper",
    "Filter",
    "FilterGroup",
    "FilterGroupOperation",
    "GenericFilter",
    "Intermediary",
    "MessageBus",
    "MessageExchangePattern",
    "MessageFilter",
    "MessagePublisher",
    "MessageSeverity",
    "MessageSubscriber",
    "MessageTranslator",
    "MessagingObject",
    "ReportMessage",
    "RoutingSlipRouter",
    "Splitter",
    "Subscription",
    "SubscriptionFilter",
    "TopicChannel",
    "TriggerChannel",
    "format_key",
    "format_resource_map_key",
    "NOT_FOUND",
    "MessagingObjectLookup",
    "TargetModelRegistry",
]
