"""
BizTalk Analyzer — derives a routed target messaging model from a parsed
BizTalk application.

Receive ports, send ports and orchestrations are turned into endpoints,
intermediaries and channels wired with routing slip routers.
"""

from .config import DEFAULT_CONFIG, AnalyzerConfig, load_config
from .context import ErrorMessage, MigrationContext
from .errors import (
    AnalysisError,
    DuplicatePropertyError,
    ErrorKind,
    MissingSourceConstruct,
    MissingTargetReference,
    PreconditionViolation,
    StructuralMismatch,
    UnsupportedConstruct,
)
from .pipeline import ANALYZER_ORDER, AnalyzerPipeline, AnalyzerStage, setup_logging

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CONFIG",
    "AnalyzerConfig",
    "load_config",
    "ErrorMessage",
    "MigrationContext",
    "AnalysisError",
    "DuplicatePropertyError",
    "ErrorKind",
    "MissingSourceConstruct",
    "MissingTargetReference",
    "PreconditionViolation",
    "StructuralMismatch",
    "UnsupportedConstruct",
    "ANALYZER_ORDER",
    "AnalyzerPipeline",
    "AnalyzerStage",
    "setup_logging",
]
