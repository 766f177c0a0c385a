"""
Analyzer Base — abstract base class for the scenario analyzers.

Each analyzer walks the source applications registered in the resource
registry, finds the target application created for each one and builds
its scenarios there.

Subclasses must implement:
- analyze_application(source_application, target_application) -> int
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from .. import constants
from ..constants import ResourceType
from ..context import MigrationContext
from ..errors import MissingTargetReference, StructuralMismatch
from ..routing.intermediaries import IntermediaryFactory
from ..routing.route_binder import RouteBinder
from ..source.models import ResourceItem, ResourceRelationshipType
from ..source.resource_registry import ResourceRegistry
from ..target.models import (
    Application,
    FilterGroup,
    MessagingObject,
    Subscription,
    SubscriptionFilter,
    TopicChannel,
    format_key,
)
from ..target.target_registry import TargetModelRegistry


logger = logging.getLogger(__name__)


class AnalyzerBase(ABC):
    """Runs one scenario analysis across every source application."""

    name: str = "analyzer"

    def __init__(
        self,
        registry: ResourceRegistry,
        target_registry: TargetModelRegistry,
        context: MigrationContext,
        factory: Optional[IntermediaryFactory] = None,
        route_binder: Optional[RouteBinder] = None,
    ):
        self.registry = registry
        self.target_registry = target_registry
        self.context = context
        self.config = context.config
        self.factory = factory or IntermediaryFactory(registry, target_registry, context)
        self.route_binder = route_binder or RouteBinder(self.factory, context)

    def analyze(self) -> int:
        """
        Analyze every source application.

        Returns:
            Number of scenarios built.
        """
        applications = self.registry.find_resources_by_type(ResourceType.APPLICATION)
        if not applications:
            logger.debug(f"Skipping {self.name}: no source applications")
            return 0

        logger.debug(f"Running {self.name}")
        scenarios = 0
        for source_application in applications:
            target_application = self.target_registry.find_application_for_source(source_application.key)
            if target_application is None:
                self.context.record(MissingTargetReference(
                    f"Unable to find target application for source application '{source_application.name}'",
                    object_key=source_application.key,
                ))
                continue
            scenarios += self.analyze_application(source_application, target_application)

        logger.debug(f"Completed {self.name}: {scenarios} scenario(s)")
        return scenarios

    @abstractmethod
    def analyze_application(self, source_application: ResourceItem, target_application: Application) -> int:
        """Build the scenarios of one application; returns how many were built."""
        pass

    # =========================================================================
    # Helpers
    # =========================================================================

    def key_prefix(self, *parts: str) -> str:
        """'<messageBus>:<part>:...' with every part formatted."""
        return ":".join([self.target_registry.message_bus.key, *(format_key(p) for p in parts)])

    def find_maps(self, resource: ResourceItem, full_names: Optional[Sequence[str]] = None) -> List[ResourceItem]:
        """
        Maps referenced by a port resource.

        When full_names is given only maps named there (by name or key) are
        returned, e.g. the inbound transforms of a two-way send port.
        """
        maps = self.registry.find_related_resources_by_type(
            resource, ResourceRelationshipType.REFERENCES_TO, ResourceType.MAP
        )
        if full_names is None:
            return maps
        wanted = set(full_names)
        return [m for m in maps if m.name in wanted or m.key in wanted]

    @staticmethod
    def handles_batches(route: Sequence[MessagingObject]) -> bool:
        return any(step.properties.get(constants.HANDLE_BATCHES) is True for step in route)

    def subscribe(
        self,
        topic_channel_key: str,
        subscription_name: str,
        group: FilterGroup,
        is_ordered: bool = False,
    ) -> Tuple[TopicChannel, Subscription]:
        """
        Add a durable subscription filter on a topic channel.

        A subscription with the same name is reused; an identical filter
        is not added twice.

        Raises:
            MissingTargetReference: The topic channel does not exist.
            StructuralMismatch: The channel is not a topic channel.
        """
        topic_channel = self.factory.require_channel(topic_channel_key)
        if not isinstance(topic_channel, TopicChannel):
            raise StructuralMismatch(f"Channel '{topic_channel_key}' is not a topic channel", object_key=topic_channel_key)

        subscription = topic_channel.find_subscription(subscription_name)
        if subscription is None:
            subscription = Subscription(
                name=subscription_name,
                topic_name=topic_channel.topic_name,
                is_durable=True,
                is_ordered=is_ordered,
            )
            topic_channel.subscriptions.append(subscription)
            logger.debug(f"Created subscription '{subscription_name}' on '{topic_channel.topic_name}'")

        subscription_filter = SubscriptionFilter(group=group)
        if subscription_filter not in subscription.filters:
            subscription.filters.append(subscription_filter)
        return topic_channel, subscription
