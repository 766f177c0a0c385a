"""
Migration context shared by every analyzer in a run.

Holds the ordered error list and attaches report messages to the target
objects an error was raised against.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .config import DEFAULT_CONFIG, AnalyzerConfig
from .errors import AnalysisError, ErrorKind
from .target.models import MessageSeverity, MessagingObject, ReportMessage


logger = logging.getLogger(__name__)


class ErrorMessage(BaseModel):
    """One recorded analysis error."""
    kind: ErrorKind
    message: str
    object_key: Optional[str] = Field(default=None, description="Key of the object the error concerns")

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class MigrationContext:
    """Errors and configuration for one analysis run."""

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.errors: List[ErrorMessage] = []

    def record(self, error: AnalysisError, target: Optional[MessagingObject] = None) -> ErrorMessage:
        """
        Record a data-driven error.

        Args:
            error: The error raised or detected.
            target: Produced object the error concerns, if any. It gets an
                    error report message and, when enabled, a rating downgrade.

        Returns:
            The appended ErrorMessage.
        """
        object_key = error.object_key or (target.key if target is not None else None)
        entry = ErrorMessage(kind=error.kind, message=error.message, object_key=object_key)
        self.errors.append(entry)
        logger.error(str(entry))

        if target is not None:
            target.report_messages.append(
                ReportMessage(severity=MessageSeverity.ERROR, message=error.message)
            )
            if self.config.downgrade_rating_on_error:
                target.downgrade_rating()

        return entry

    def errors_of_kind(self, kind: ErrorKind) -> List[ErrorMessage]:
        return [e for e in self.errors if e.kind == kind]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
