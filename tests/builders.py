"""
Builders for source resources and orchestration element trees used by the tests.
"""

from typing import Optional

from biztalk_analyzer import constants
from biztalk_analyzer.constants import ResourceType
from biztalk_analyzer.source.models import (
    Element,
    MessageDefinition,
    MetaModel,
    ResourceItem,
    ResourceRelationshipType,
)
from biztalk_analyzer.source.resource_registry import ResourceRegistry


# =============================================================================
# Elements
# =============================================================================

def element(
    element_type: str,
    name: Optional[str] = None,
    *children: Element,
    oid: str = "",
    parent_link: Optional[str] = None,
    **properties: str,
) -> Element:
    """Create a metamodel element; name becomes the 'Name' property."""
    values = {"Name": name} if name is not None else {}
    values.update(properties)
    return Element(
        type=element_type,
        oid=oid,
        parent_link=parent_link,
        properties=values,
        elements=list(children),
    )


def orchestration(name: str, *children: Element) -> MetaModel:
    """Metamodel of a single orchestration; the module carries no name so the workflow is named `name`."""
    return MetaModel(elements=[
        element("Module", None, element("ServiceDeclaration", name, *children)),
    ])


def one_way_port_type(name: str, operation: str = "Op1", message: str = "Request") -> Element:
    return element(
        "PortType", name,
        element(
            "OperationDeclaration", operation,
            element("MessageRef", message, parent_link="OperationDeclaration_RequestMessageRef"),
            OperationType="OneWay",
        ),
    )


def request_response_port_type(name: str, operation: str = "Op1") -> Element:
    return element(
        "PortType", name,
        element(
            "OperationDeclaration", operation,
            element("MessageRef", "Request", parent_link="OperationDeclaration_RequestMessageRef"),
            element("MessageRef", "Response", parent_link="OperationDeclaration_ResponseMessageRef"),
            OperationType="RequestResponse",
        ),
    )


def direct_port(name: str, port_type: str) -> Element:
    """Port declaration bound directly to the message box."""
    return element(
        "PortDeclaration", name,
        element("DirectBindingAttribute", None, DirectBindingType="MessageBox"),
        Type=port_type,
    )


def activating_receive(port: str, message: str, oid: str = "r1", operation: str = "Op1") -> Element:
    return element(
        "Receive", f"Receive_{message}",
        oid=oid,
        PortName=port,
        OperationName=operation,
        OperationMessageName="Request",
        MessageName=message,
        Activate="True",
    )


# =============================================================================
# Resources
# =============================================================================

def add_resource(
    registry: ResourceRegistry,
    parent: Optional[ResourceItem],
    key: str,
    name: str,
    resource_type: ResourceType,
    source_object=None,
) -> ResourceItem:
    resource = ResourceItem(key=key, name=name, type=resource_type.value, source_object=source_object)
    if parent is None:
        return registry.register_resource(resource)
    return registry.add_child(parent, resource)


def add_module_types(registry: ResourceRegistry, module: ResourceItem, *types: Element) -> None:
    """Register type elements under a module; their resource type follows the element type."""
    resource_types = {
        "PortType": ResourceType.PORT_TYPE,
        "ServiceLinkType": ResourceType.SERVICE_LINK_TYPE,
        "CorrelationType": ResourceType.CORRELATION_TYPE,
        "MultipartMessageType": ResourceType.MULTIPART_MESSAGE_TYPE,
    }
    for type_element in types:
        name = type_element.find_property_value("Name")
        add_resource(
            registry, module, f"{module.key}:{name}", name, resource_types[type_element.type], type_element
        )


def add_schema(registry: ResourceRegistry, full_name: str, message_type: str) -> ResourceItem:
    return add_resource(
        registry, None, f"schema:{full_name}", full_name, ResourceType.MESSAGE_TYPE,
        MessageDefinition(full_name=full_name, message_type=message_type),
    )


def add_map(registry: ResourceRegistry, port: ResourceItem, full_name: str, schema: Optional[ResourceItem]) -> ResourceItem:
    """Register a map referenced by a port; the schema (if any) references the map."""
    map_resource = add_resource(registry, None, f"map:{full_name}", full_name, ResourceType.MAP)
    registry.add_relationship(port, map_resource, ResourceRelationshipType.REFERENCES_TO)
    if schema is not None:
        registry.add_relationship(schema, map_resource, ResourceRelationshipType.REFERENCES_TO)
    return map_resource


def system_channel_key(leaf: str) -> str:
    return f"{constants.MESSAGE_BUS_LEAF_KEY}:{constants.SYSTEM_APPLICATION_LEAF_KEY}:{leaf}"
