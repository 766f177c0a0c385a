"""
Analyzer Pipeline — runs the scenario analyzers in dependency order.

The receive and send port analyzers must run before the orchestration
analyzer; all of them need the system application's message box channel
to exist before they start.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Tuple, Type

from .config import AnalyzerConfig
from .context import MigrationContext
from .errors import PreconditionViolation
from .scenarios.base import AnalyzerBase
from .scenarios.orchestration import OrchestrationAnalyzer
from .scenarios.receive_port import ReceivePortAnalyzer
from .scenarios.send_port import SendPortAnalyzer
from .source.resource_registry import ResourceRegistry
from .target.target_registry import TargetModelRegistry


logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s' if verbose else '%(message)s'
    )
    # Quiet down per-step progress
    if not verbose:
        logging.getLogger("biztalk_analyzer.routing").setLevel(logging.WARNING)
        logging.getLogger("biztalk_analyzer.workflow").setLevel(logging.WARNING)
        logging.getLogger("biztalk_analyzer.source").setLevel(logging.WARNING)


class AnalyzerStage(str, Enum):
    """Scenario analyzers run by the pipeline."""
    RECEIVE_PORTS = "receive_ports"
    SEND_PORTS = "send_ports"
    ORCHESTRATIONS = "orchestrations"


# Orchestrations subscribe to what the port scenarios publish
ANALYZER_ORDER: Tuple[AnalyzerStage, ...] = (
    AnalyzerStage.RECEIVE_PORTS,
    AnalyzerStage.SEND_PORTS,
    AnalyzerStage.ORCHESTRATIONS,
)

ANALYZERS: Dict[AnalyzerStage, Type[AnalyzerBase]] = {
    AnalyzerStage.RECEIVE_PORTS: ReceivePortAnalyzer,
    AnalyzerStage.SEND_PORTS: SendPortAnalyzer,
    AnalyzerStage.ORCHESTRATIONS: OrchestrationAnalyzer,
}


class AnalyzerPipeline:
    """
    Runs every scenario analyzer over shared registries.

    Example:
        pipeline = AnalyzerPipeline(resource_registry, target_registry)
        context = pipeline.run()
        for error in context.errors:
            print(error)
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        target_registry: TargetModelRegistry,
        config: Optional[AnalyzerConfig] = None,
        context: Optional[MigrationContext] = None,
    ):
        self.registry = registry
        self.target_registry = target_registry
        self.context = context or MigrationContext(config)
        self.config = self.context.config
        self.scenarios: Dict[AnalyzerStage, int] = {}

    def check_prerequisites(self) -> None:
        """
        Raises:
            PreconditionViolation: The message box channel has not been created.
        """
        key = self.config.message_box_channel_key
        if not self.target_registry.find_messaging_object(key).found:
            raise PreconditionViolation(
                f"Message box channel '{key}' must exist before the analyzers run"
            )

    def run(self) -> MigrationContext:
        """
        Run every analyzer in declared order.

        Returns:
            The migration context holding every recorded error.
        """
        self.check_prerequisites()

        for stage in ANALYZER_ORDER:
            analyzer = ANALYZERS[stage](self.registry, self.target_registry, self.context)
            self.scenarios[stage] = analyzer.analyze()

        stats = self.target_registry.get_stats()
        logger.info(
            f"Analysis complete: {sum(self.scenarios.values())} scenario(s), "
            f"{stats['intermediaries']} intermediaries, {stats['channels']} channels, "
            f"{len(self.context.errors)} error(s)"
        )
        return self.context
