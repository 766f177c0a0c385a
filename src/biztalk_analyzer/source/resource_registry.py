"""
Resource Registry — key-indexed store of parsed source resources.

Resources are linked by typed relationships (parent/child, references).
Adding one side of a relationship records the inverse on the other resource.
"""

import logging
import threading
from typing import Dict, List, Optional, Union

from ..constants import ResourceType
from .models import (
    INVERSE_RELATIONSHIPS,
    ResourceItem,
    ResourceRelationship,
    ResourceRelationshipType,
)


logger = logging.getLogger(__name__)

TypeTag = Union[ResourceType, str]


def _tag(resource_type: TypeTag) -> str:
    return resource_type.value if isinstance(resource_type, ResourceType) else resource_type


class ResourceRegistry:
    """
    In-memory registry of source resources.

    Provides:
    - Resource registration by unique key
    - Lookup by key and by type
    - Relationship traversal filtered by resource type
    """

    def __init__(self):
        self._resources: Dict[str, ResourceItem] = {}
        self._lock = threading.RLock()

    # =========================================================================
    # Registration
    # =========================================================================

    def register_resource(self, resource: ResourceItem) -> ResourceItem:
        """
        Register a resource.

        Raises:
            ValueError: If a resource with the same key already exists.
        """
        with self._lock:
            if resource.key in self._resources:
                raise ValueError(f"Resource with key '{resource.key}' already registered")
            self._resources[resource.key] = resource

        logger.debug(f"Registered resource: {resource.key} ({resource.type})")
        return resource

    def add_relationship(
        self,
        resource: ResourceItem,
        related: ResourceItem,
        relationship_type: ResourceRelationshipType,
    ) -> None:
        """Link two registered resources, recording the inverse relationship too."""
        with self._lock:
            for key in (resource.key, related.key):
                if key not in self._resources:
                    raise ValueError(f"Resource '{key}' is not registered")

            self._link(resource, related.key, relationship_type)
            self._link(related, resource.key, INVERSE_RELATIONSHIPS[relationship_type])

    def add_child(self, parent: ResourceItem, child: ResourceItem) -> ResourceItem:
        """Register a child resource under a parent."""
        self.register_resource(child)
        self.add_relationship(parent, child, ResourceRelationshipType.CHILD)
        return child

    @staticmethod
    def _link(resource: ResourceItem, key: str, relationship_type: ResourceRelationshipType) -> None:
        for existing in resource.relationships:
            if existing.resource_key == key and existing.relationship_type == relationship_type:
                return
        resource.relationships.append(
            ResourceRelationship(resource_key=key, relationship_type=relationship_type)
        )

    # =========================================================================
    # Lookup
    # =========================================================================

    def find_resource_by_key(self, key: str) -> Optional[ResourceItem]:
        with self._lock:
            return self._resources.get(key)

    def find_resources_by_type(self, resource_type: TypeTag) -> List[ResourceItem]:
        tag = _tag(resource_type)
        with self._lock:
            return [r for r in self._resources.values() if r.type == tag]

    def find_related_resources_by_type(
        self,
        resource: ResourceItem,
        relationship_type: ResourceRelationshipType,
        resource_type: TypeTag,
    ) -> List[ResourceItem]:
        """
        Resources linked to `resource` by the given relationship and of the given type.

        Returns:
            Related resources in relationship order (may be empty).
        """
        tag = _tag(resource_type)
        related = []
        with self._lock:
            for relationship in resource.relationships:
                if relationship.relationship_type != relationship_type:
                    continue
                target = self._resources.get(relationship.resource_key)
                if target is None:
                    logger.warning(
                        f"Resource '{resource.key}' references missing resource '{relationship.resource_key}'"
                    )
                    continue
                if target.type == tag:
                    related.append(target)
        return related

    def find_parent(self, resource: ResourceItem, resource_type: TypeTag) -> Optional[ResourceItem]:
        parents = self.find_related_resources_by_type(
            resource, ResourceRelationshipType.PARENT, resource_type
        )
        return parents[0] if parents else None

    def find_children(self, resource: ResourceItem, resource_type: TypeTag) -> List[ResourceItem]:
        return self.find_related_resources_by_type(
            resource, ResourceRelationshipType.CHILD, resource_type
        )

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> Dict[str, int]:
        """Count of registered resources by type."""
        with self._lock:
            stats: Dict[str, int] = {"total": len(self._resources)}
            for resource in self._resources.values():
                stats[resource.type] = stats.get(resource.type, 0) + 1
            return stats
