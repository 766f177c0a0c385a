"""
Analyzer configuration.

Values come from the environment (a local .env file is honoured) and can be
overridden from config/analyzer.yaml.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from . import constants

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_PROPERTIES: Tuple[str, ...] = (
    "IsGhostBranch",
    "IsWebPort",
    "PortModifier",
    "Name",
    "Orientation",
    "ParamDirection",
    "PortIndex",
    "ReportToAnalyst",
    "Signal",
    "UseDefaultConstructor",
    "InitialValue",
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AnalyzerConfig:
    """Keys, URLs and policies shared by every analyzer."""

    # Target model keys
    message_bus_key: str = constants.MESSAGE_BUS_LEAF_KEY
    system_application_leaf: str = constants.SYSTEM_APPLICATION_LEAF_KEY
    message_box_leaf: str = constants.MESSAGE_BOX_LEAF_KEY
    message_box_response_leaf: str = constants.MESSAGE_BOX_RESPONSE_LEAF_KEY
    suspend_queue_leaf: str = constants.SUSPEND_QUEUE_LEAF_KEY
    interchange_queue_leaf: str = constants.INTERCHANGE_QUEUE_LEAF_KEY

    # Routing
    routing_manager_url: str = "/routingManager/route"
    end_route: str = "EndRoute"
    response_timeout_minutes: int = 20
    dynamic_send_default_protocol: str = "Dynamic"

    # Reporting
    downgrade_rating_on_error: bool = True

    # Metamodel properties never copied onto workflow objects
    ignored_properties: Tuple[str, ...] = field(default=DEFAULT_IGNORED_PROPERTIES)

    def _system_channel_key(self, leaf: str) -> str:
        return f"{self.message_bus_key}:{self.system_application_leaf}:{leaf}"

    @property
    def message_box_channel_key(self) -> str:
        """Key of the shared message box topic channel."""
        return self._system_channel_key(self.message_box_leaf)

    @property
    def message_box_response_channel_key(self) -> str:
        """Key of the response topic used by two-way receive ports."""
        return self._system_channel_key(self.message_box_response_leaf)

    @property
    def suspend_queue_channel_key(self) -> str:
        return self._system_channel_key(self.suspend_queue_leaf)

    @property
    def interchange_queue_channel_key(self) -> str:
        return self._system_channel_key(self.interchange_queue_leaf)

    def route_url(self, scenario_step: str) -> str:
        """Trigger URL used by a routing slip router to reach a step."""
        return f"{self.routing_manager_url}/{scenario_step}"

    @classmethod
    def from_env(cls) -> "AnalyzerConfig":
        """Load configuration from environment variables."""
        return cls(
            message_bus_key=os.getenv("ANALYZER_MESSAGE_BUS_KEY", constants.MESSAGE_BUS_LEAF_KEY),
            system_application_leaf=os.getenv(
                "ANALYZER_SYSTEM_APPLICATION_LEAF", constants.SYSTEM_APPLICATION_LEAF_KEY
            ),
            routing_manager_url=os.getenv("ANALYZER_ROUTING_MANAGER_URL", "/routingManager/route"),
            end_route=os.getenv("ANALYZER_END_ROUTE", "EndRoute"),
            response_timeout_minutes=int(os.getenv("ANALYZER_RESPONSE_TIMEOUT_MINUTES", "20")),
            dynamic_send_default_protocol=os.getenv("ANALYZER_DYNAMIC_SEND_PROTOCOL", "Dynamic"),
            downgrade_rating_on_error=_env_bool("ANALYZER_DOWNGRADE_RATING_ON_ERROR", True),
        )


def load_config(config_path: Optional[str] = None) -> AnalyzerConfig:
    """
    Load configuration from YAML file on top of environment defaults.

    Args:
        config_path: Path to analyzer.yaml. If None, the repository's
                     config/analyzer.yaml is used when present.

    Returns:
        Resolved AnalyzerConfig.
    """
    config = AnalyzerConfig.from_env()

    if config_path is None:
        default_path = Path(__file__).parent.parent.parent / "config" / "analyzer.yaml"
        if default_path.exists():
            config_path = str(default_path)

    if not config_path or not Path(config_path).exists():
        return config

    try:
        with open(config_path) as f:
            file_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        return config

    if not file_config or "analyzer" not in file_config:
        return config

    known = {f.name for f in fields(AnalyzerConfig)}
    overrides: Dict[str, Any] = {}
    for name, value in (file_config["analyzer"] or {}).items():
        if name not in known:
            logger.warning(f"Ignoring unknown analyzer setting '{name}'")
            continue
        overrides[name] = tuple(value) if name == "ignored_properties" else value

    logger.info(f"Loaded config from {config_path}")
    return replace(config, **overrides)


# Default configuration (can be overridden)
DEFAULT_CONFIG = AnalyzerConfig.from_env()
