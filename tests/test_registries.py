"""
Tests for the resource registry and the target model registry.
"""

import pytest

from biztalk_analyzer import constants
from biztalk_analyzer.constants import ResourceType
from biztalk_analyzer.errors import PreconditionViolation
from biztalk_analyzer.source.models import ResourceItem, ResourceRelationship, ResourceRelationshipType
from biztalk_analyzer.target.models import Application, Channel


# =============================================================================
# Resource registry
# =============================================================================

class TestResourceRegistry:
    """Tests for ResourceRegistry."""

    def test_register_and_find(self, registry):
        resource = registry.register_resource(
            ResourceItem(key="app:App1", name="App1", type=ResourceType.APPLICATION.value)
        )

        assert registry.find_resource_by_key("app:App1") is resource
        assert registry.find_resources_by_type(ResourceType.APPLICATION) == [resource]
        assert registry.find_resource_by_key("app:Missing") is None

    def test_duplicate_key_raises(self, registry, source_application):
        with pytest.raises(ValueError, match="already registered"):
            registry.register_resource(
                ResourceItem(key=source_application.key, name="Other", type="Application")
            )

    def test_child_records_parent(self, registry, source_application):
        """Adding a child links both sides."""
        child = registry.add_child(
            source_application, ResourceItem(key="sp:SP1", name="SP1", type=ResourceType.SEND_PORT.value)
        )

        assert registry.find_children(source_application, ResourceType.SEND_PORT) == [child]
        assert registry.find_parent(child, ResourceType.APPLICATION) is source_application
        assert registry.find_children(source_application, ResourceType.RECEIVE_PORT) == []

    def test_reference_records_inverse(self, registry, source_application):
        port = registry.add_child(
            source_application, ResourceItem(key="sp:SP1", name="SP1", type=ResourceType.SEND_PORT.value)
        )
        transform = registry.add_child(
            source_application, ResourceItem(key="map:M1", name="Maps.M1", type=ResourceType.MAP.value)
        )

        registry.add_relationship(port, transform, ResourceRelationshipType.REFERENCES_TO)
        registry.add_relationship(port, transform, ResourceRelationshipType.REFERENCES_TO)

        assert len(port.relationships) == 2
        assert registry.find_related_resources_by_type(
            transform, ResourceRelationshipType.REFERENCED_BY, ResourceType.SEND_PORT
        ) == [port]

    def test_relationship_needs_registered_resources(self, registry, source_application):
        unregistered = ResourceItem(key="sp:X", name="X", type="SendPort")

        with pytest.raises(ValueError, match="not registered"):
            registry.add_relationship(source_application, unregistered, ResourceRelationshipType.CHILD)

    def test_dangling_relationship_is_skipped(self, registry, source_application):
        source_application.relationships.append(
            ResourceRelationship(resource_key="sp:Gone", relationship_type=ResourceRelationshipType.CHILD)
        )

        assert registry.find_children(source_application, ResourceType.SEND_PORT) == []

    def test_stats(self, registry, source_application, module):
        stats = registry.get_stats()

        assert stats["total"] == 2
        assert stats[ResourceType.APPLICATION.value] == 1
        assert stats[ResourceType.MODULE.value] == 1


# =============================================================================
# Target model registry
# =============================================================================

class TestTargetModelRegistry:
    """Tests for TargetModelRegistry."""

    def test_message_bus_created(self, empty_target_registry):
        assert empty_target_registry.message_bus.key == constants.MESSAGE_BUS_LEAF_KEY
        assert empty_target_registry.applications == []

    def test_duplicate_application_raises(self, target_registry, target_application):
        duplicate = Application(name="Copy", key=target_application.key)

        with pytest.raises(ValueError, match="already registered"):
            target_registry.add_application(duplicate)

    def test_find_channel(self, target_registry, system_application, message_box):
        lookup = target_registry.find_messaging_object(message_box.key)

        assert lookup.found
        assert lookup.application is system_application
        assert lookup.messaging_object is message_box

    def test_find_application_by_key(self, target_registry, target_application):
        assert target_registry.find_messaging_object(target_application.key).messaging_object is target_application

    def test_not_found(self, target_registry):
        lookup = target_registry.find_messaging_object("MessageBus:Nothing")

        assert not lookup.found
        assert lookup.application is None

    def test_find_application_for_source(self, target_registry, target_application, source_application):
        assert target_registry.find_application_for_source(source_application.key) is target_application
        assert target_registry.find_application_for_source("app:Other") is None
        assert target_registry.find_application("App1") is target_application

    def test_stats(self, target_registry):
        assert target_registry.get_stats() == {
            "applications": 2,
            "endpoints": 0,
            "intermediaries": 0,
            "channels": 4,
        }

    def test_channel_added_once(self, target_application):
        channel = Channel(name="Trigger", key="MessageBus:App1:W1:TriggerChannel:A-B")

        target_application.add_channel(channel)
        target_application.add_channel(channel)

        assert target_application.channels == [channel]

    def test_duplicate_channel_key_raises(self, target_application):
        """A second channel object under an existing key is refused."""
        target_application.add_channel(Channel(name="Trigger", key="MessageBus:App1:W1:TriggerChannel:A-B"))

        with pytest.raises(PreconditionViolation, match="already used"):
            target_application.add_channel(Channel(name="Other", key="MessageBus:App1:W1:TriggerChannel:A-B"))

        assert len(target_application.channels) == 1
