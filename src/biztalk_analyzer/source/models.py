"""
Pydantic models for the parsed source application.

Covers the generic orchestration metamodel tree, the resource items held by
the resource registry and the typed source objects they point at (ports,
pipelines, bindings, schemas).
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Orchestration metamodel
# =============================================================================

class Element(BaseModel):
    """
    One labelled node of an orchestration metamodel tree.

    Example:
        Element(
            type="Receive",
            oid="3f1c...",
            properties={"Name": "ReceiveOrder", "PortName": "OrderPort"},
        )
    """
    type: str = Field(..., description="Element type tag, e.g. 'Receive' or 'PortDeclaration'")
    oid: str = Field(default="", description="Object id unique within the orchestration")
    parent_link: Optional[str] = Field(default=None, description="Role of this element under its parent")
    properties: Dict[str, str] = Field(default_factory=dict, description="Name/value property bag, ordered")
    elements: List["Element"] = Field(default_factory=list, description="Ordered child elements")

    def find_property_value(self, name: str) -> Optional[str]:
        """Value of a named property or None."""
        return self.properties.get(name)

    def children_of_type(self, element_type: str) -> List["Element"]:
        return [e for e in self.elements if e.type == element_type]


class MetaModel(BaseModel):
    """Root of an orchestration's element tree."""
    elements: List[Element] = Field(default_factory=list)


# =============================================================================
# Resource items
# =============================================================================

class ResourceRelationshipType(str, Enum):
    """Kind of link between two source resources."""
    PARENT = "Parent"
    CHILD = "Child"
    REFERENCES_TO = "ReferencesTo"
    REFERENCED_BY = "ReferencedBy"


INVERSE_RELATIONSHIPS = {
    ResourceRelationshipType.PARENT: ResourceRelationshipType.CHILD,
    ResourceRelationshipType.CHILD: ResourceRelationshipType.PARENT,
    ResourceRelationshipType.REFERENCES_TO: ResourceRelationshipType.REFERENCED_BY,
    ResourceRelationshipType.REFERENCED_BY: ResourceRelationshipType.REFERENCES_TO,
}


class ResourceRelationship(BaseModel):
    """Directed relationship to another resource, by key."""
    resource_key: str
    relationship_type: ResourceRelationshipType


class ResourceItem(BaseModel):
    """A source resource registered under a unique key."""
    key: str = Field(..., min_length=1, description="Unique resource key")
    name: str = Field(..., description="Resource name")
    type: str = Field(..., description="Resource type tag")
    description: str = Field(default="")
    source_object: Any = Field(default=None, description="Parsed source object this resource wraps")
    relationships: List[ResourceRelationship] = Field(default_factory=list)
    properties: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Ports and pipelines
# =============================================================================

class PipelineRef(BaseModel):
    """Reference from a port or location to a pipeline by full name."""
    name: str


class PipelineComponent(BaseModel):
    """Component configured inside a pipeline stage."""
    name: str = Field(..., description="Component class name")
    component_name: str = Field(..., description="Display name of the component")
    description: str = ""
    properties: Dict[str, Any] = Field(default_factory=dict)


class PipelineStage(BaseModel):
    name: str = ""
    components: List[PipelineComponent] = Field(default_factory=list)


class Pipeline(BaseModel):
    """A custom receive or send pipeline."""
    full_name: str
    stages: List[PipelineStage] = Field(default_factory=list)


class TransportInfo(BaseModel):
    """Adapter transport of a send port."""
    transport_type: str
    address: str = ""


class ReceiveLocation(BaseModel):
    name: str
    description: str = ""
    address: str = ""
    transport_type: str = ""
    receive_pipeline: Optional[PipelineRef] = None
    receive_pipeline_configuration: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    send_pipeline: Optional[PipelineRef] = None
    send_pipeline_configuration: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ReceivePort(BaseModel):
    name: str
    description: str = ""
    is_two_way: bool = False
    transforms: List[str] = Field(default_factory=list, description="Full names of inbound maps")
    outbound_transforms: List[str] = Field(default_factory=list)


class FilterStatement(BaseModel):
    """One comparison in a send port filter; operator is a numeric code."""
    property: str
    operator: int
    value: str = ""


class FilterStatementGroup(BaseModel):
    statements: List[FilterStatement] = Field(default_factory=list)


class SendPort(BaseModel):
    name: str
    description: str = ""
    is_two_way: bool = False
    is_static: bool = True
    primary_transport: Optional[TransportInfo] = None
    secondary_transport: Optional[TransportInfo] = None
    transmit_pipeline: Optional[PipelineRef] = None
    transmit_pipeline_configuration: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    receive_pipeline: Optional[PipelineRef] = None
    receive_pipeline_configuration: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    filter_groups: List[FilterStatementGroup] = Field(default_factory=list)
    transforms: List[str] = Field(default_factory=list)
    inbound_transforms: List[str] = Field(default_factory=list)


class SendPortGroup(BaseModel):
    name: str
    send_ports: List[str] = Field(default_factory=list)


# =============================================================================
# Bindings and schemas
# =============================================================================

class PortBinding(BaseModel):
    """Binds a logical orchestration port to a physical port."""
    name: str = Field(..., description="Logical port name")
    receive_port_name: Optional[str] = None
    send_port_name: Optional[str] = None
    send_port_group_name: Optional[str] = None


class ServiceBinding(BaseModel):
    """Binding file entry for one orchestration."""
    name: str = Field(..., description="Full name of the bound orchestration")
    ports: List[PortBinding] = Field(default_factory=list)

    def find_port(self, name: str) -> Optional[PortBinding]:
        return next((p for p in self.ports if p.name == name), None)


class MessageDefinition(BaseModel):
    """A schema root; message_type is the namespace#root routing type."""
    full_name: str
    message_type: str
