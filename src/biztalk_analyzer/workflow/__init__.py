"""
Orchestration workflow model and the passes that build and bind it.
"""

from .channel_binder import ChannelBinder
from .correlation_binder import CorrelationBinder
from .models import (
    ActivityType,
    BindingKind,
    ProcessManager,
    PropertyBag,
    PropertyKey,
    WorkflowActivity,
    WorkflowActivityContainer,
    WorkflowChannel,
    WorkflowChannelKind,
    WorkflowCompositeMessage,
    WorkflowCorrelationVariable,
    WorkflowDefinition,
    WorkflowMessage,
    WorkflowMessageType,
    WorkflowObject,
    WorkflowVariable,
)
from .tree_walker import ElementType, MetaModelTreeWalker, VisitResult, WalkScope
from .type_resolver import TypeResolver

__all__ = [
    "ChannelBinder",
    "CorrelationBinder",
    "ActivityType",
    "BindingKind",
    "ProcessManager",
    "PropertyBag",
    "PropertyKey",
    "WorkflowActivity",
    "WorkflowActivityContainer",
    "WorkflowChannel",
    "WorkflowChannelKind",
    "WorkflowCompositeMessage",
    "WorkflowCorrelationVariable",
    "WorkflowDefinition",
    "WorkflowMessage",
    "WorkflowMessageType",
    "WorkflowObject",
    "WorkflowVariable",
    "ElementType",
    "MetaModelTreeWalker",
    "VisitResult",
    "WalkScope",
    "TypeResolver",
]
