"""
Resolves qualified type names used by orchestration declarations.

Port types, service link types, correlation types and multipart message
types are registered as resources under their module; their qualified
name is '<module>.<type>'.
"""

import logging
from typing import Optional

from ..constants import ResourceType
from ..context import MigrationContext
from ..errors import StructuralMismatch
from ..source.models import Element, MessageDefinition, ResourceItem
from ..source.resource_registry import ResourceRegistry


logger = logging.getLogger(__name__)


class TypeResolver:
    """Looks up metamodel type definitions by qualified name."""

    def __init__(self, registry: ResourceRegistry, context: MigrationContext):
        self.registry = registry
        self.context = context

    def qualified_name(self, resource: ResourceItem) -> Optional[str]:
        """'<module>.<name>' for a type resource, or None when it has no module."""
        module = self.registry.find_parent(resource, ResourceType.MODULE)
        if module is None:
            self.context.record(StructuralMismatch(
                f"Unable to find parent module of type resource '{resource.key}'",
                object_key=resource.key,
            ))
            return None
        return f"{module.name}.{resource.name}"

    def resolve(self, resource_type: ResourceType, type_name: Optional[str]) -> Optional[ResourceItem]:
        """Type resource whose qualified name equals type_name."""
        if not type_name:
            return None
        for resource in self.registry.find_resources_by_type(resource_type):
            if self.qualified_name(resource) == type_name:
                return resource
        logger.debug(f"No {resource_type.value} named '{type_name}'")
        return None

    def resolve_element(self, resource_type: ResourceType, type_name: Optional[str]) -> Optional[Element]:
        resource = self.resolve(resource_type, type_name)
        if resource is None or not isinstance(resource.source_object, Element):
            return None
        return resource.source_object

    def find_message_type(self, full_name: Optional[str]) -> Optional[str]:
        """Routing message type of a schema root, e.g. 'http://ns#Order'."""
        if not full_name:
            return None
        for resource in self.registry.find_resources_by_type(ResourceType.MESSAGE_TYPE):
            definition = resource.source_object
            if isinstance(definition, MessageDefinition) and definition.full_name == full_name:
                return definition.message_type
        return None
