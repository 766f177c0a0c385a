"""
Analyzer error taxonomy.

Data-driven problems are raised as AnalysisError subclasses and recorded on
the migration context by the loop that owns the unit of work. Contract
violations are PreconditionViolation and are never recorded.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a recorded analysis error."""
    MISSING_SOURCE_CONSTRUCT = "MissingSourceConstruct"
    MISSING_TARGET_REFERENCE = "MissingTargetReference"
    STRUCTURAL_MISMATCH = "StructuralMismatch"
    UNSUPPORTED_CONSTRUCT = "UnsupportedConstruct"


class AnalysisError(Exception):
    """Base class for data-driven errors found while analyzing a source model."""

    kind: ErrorKind = ErrorKind.STRUCTURAL_MISMATCH

    def __init__(self, message: str, object_key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.object_key = object_key


class MissingSourceConstruct(AnalysisError):
    """A required source element is absent or a metamodel reference is unresolved."""
    kind = ErrorKind.MISSING_SOURCE_CONSTRUCT


class MissingTargetReference(AnalysisError):
    """An expected target model object cannot be found by key."""
    kind = ErrorKind.MISSING_TARGET_REFERENCE


class StructuralMismatch(AnalysisError):
    """Cross-reference data in the source model is internally inconsistent."""
    kind = ErrorKind.STRUCTURAL_MISMATCH


class UnsupportedConstruct(AnalysisError):
    """A recognized source variant the analyzer does not translate."""
    kind = ErrorKind.UNSUPPORTED_CONSTRUCT


class PreconditionViolation(ValueError):
    """Programmer error: a required argument or invariant is broken."""


class DuplicatePropertyError(PreconditionViolation):
    """A property key was inserted twice on the same workflow object."""

    def __init__(self, key: str, owner: str):
        super().__init__(f"Property '{key}' already set on '{owner}'")
        self.key = key
        self.owner = owner
