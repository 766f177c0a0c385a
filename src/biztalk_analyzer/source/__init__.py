"""
Source model for the analyzer.

Parsed application resources and the registry that indexes them.
"""

from .models import (
    Element,
    MetaModel,
    MessageDefinition,
    Pipeline,
    PipelineComponent,
    PipelineRef,
    PipelineStage,
    PortBinding,
    ReceiveLocation,
    ReceivePort,
    ResourceItem,
    ResourceRelationshipType,
    SendPort,
    SendPortGroup,
    ServiceBinding,
    TransportInfo,
)
from .resource_registry import ResourceRegistry

__all__ = [
    "Element",
    "MetaModel",
    "MessageDefinition",
    "Pipeline",
    "PipelineComponent",
    "PipelineRef",
    "PipelineStage",
    "PortBinding",
    "ReceiveLocation",
    "ReceivePort",
    "ResourceItem",
    "ResourceRelationshipType",
    "SendPort",
    "SendPortGroup",
    "ServiceBinding",
    "TransportInfo",
    "ResourceRegistry",
]
