"""
Orchestration Analyzer — turns orchestrations into wired process managers.

For each orchestration metamodel of an application the workflow model is
built, its channels and correlation variables are bound, and a process
manager is added to the target application. Once every application has
been analyzed the invocation wirer runs its passes across the bus.
"""

import logging
from typing import Dict, List, Optional

from ..constants import ResourceType
from ..context import MigrationContext
from ..errors import AnalysisError
from ..routing.intermediaries import IntermediaryFactory
from ..routing.route_binder import RouteBinder
from ..source.models import ResourceItem
from ..source.resource_registry import ResourceRegistry
from ..target.models import Application, MessagingObject
from ..target.target_registry import TargetModelRegistry
from ..workflow.channel_binder import ChannelBinder
from ..workflow.correlation_binder import CorrelationBinder
from ..workflow.tree_walker import MetaModelTreeWalker
from ..workflow.type_resolver import TypeResolver
from .base import AnalyzerBase
from .process_manager import InvocationWirer, create_process_manager


logger = logging.getLogger(__name__)


class OrchestrationAnalyzer(AnalyzerBase):
    """One process manager per orchestration, then global invocation wiring."""

    name = "orchestration analyzer"

    def __init__(
        self,
        registry: ResourceRegistry,
        target_registry: TargetModelRegistry,
        context: MigrationContext,
        factory: Optional[IntermediaryFactory] = None,
        route_binder: Optional[RouteBinder] = None,
    ):
        super().__init__(registry, target_registry, context, factory, route_binder)
        self.resolver = TypeResolver(registry, context)
        self.walker = MetaModelTreeWalker(self.resolver, context)
        self.channel_binder = ChannelBinder(registry, target_registry, self.resolver, context)
        self.correlation_binder = CorrelationBinder(context)
        self.wirer = InvocationWirer(target_registry, self.factory, self.route_binder, context)

    def analyze(self) -> int:
        scenarios = super().analyze()
        if scenarios:
            routes = self.wirer.wire()
            logger.debug(f"Wired {len(routes)} process manager route(s)")
        return scenarios

    @property
    def routes(self) -> Dict[str, List[MessagingObject]]:
        """Routes built by the last wiring run, by process manager key."""
        return self.wirer.routes

    def analyze_application(self, source_application: ResourceItem, target_application: Application) -> int:
        logger.debug(f"Analyzing orchestrations in application '{source_application.name}'")

        scenarios = 0
        for orchestration in self.registry.find_children(source_application, ResourceType.METAMODEL):
            try:
                definition = self.walker.build_workflow_model(orchestration)
                self.channel_binder.bind_channels(definition, target_application)
                self.correlation_binder.bind_correlation_variables(definition)

                process_manager = create_process_manager(self.config, target_application, definition)
                target_application.add_intermediary(process_manager)
                scenarios += 1
            except AnalysisError as e:
                self.context.record(e)

        return scenarios
