"""
Shared fixtures: registries pre-populated with a message bus, the system
application's shared channels and one source application with its target.
"""

import pytest

from biztalk_analyzer import constants
from biztalk_analyzer.config import AnalyzerConfig
from biztalk_analyzer.constants import ResourceType
from biztalk_analyzer.context import MigrationContext
from biztalk_analyzer.routing import IntermediaryFactory, RouteBinder
from biztalk_analyzer.source.resource_registry import ResourceRegistry
from biztalk_analyzer.target.models import Application, Channel, ConversionRating, TopicChannel
from biztalk_analyzer.target.target_registry import TargetModelRegistry

from builders import (
    add_module_types,
    add_resource,
    add_schema,
    one_way_port_type,
    request_response_port_type,
    system_channel_key,
)


APP_NAME = "App1"


@pytest.fixture
def config():
    """Default configuration, independent of the environment."""
    return AnalyzerConfig()


@pytest.fixture
def context(config):
    return MigrationContext(config)


@pytest.fixture
def registry():
    return ResourceRegistry()


@pytest.fixture
def empty_target_registry():
    """Target registry with a message bus and no applications."""
    return TargetModelRegistry()


@pytest.fixture
def system_application():
    """System application holding the message box, response topic and queues."""
    application = Application(
        name="System Application",
        key=f"{constants.MESSAGE_BUS_LEAF_KEY}:{constants.SYSTEM_APPLICATION_LEAF_KEY}",
        rating=ConversionRating.FULL_CONVERSION,
    )
    application.add_channel(TopicChannel(
        name="Message Box",
        key=system_channel_key(constants.MESSAGE_BOX_LEAF_KEY),
        topic_name="messagebox",
    ))
    application.add_channel(TopicChannel(
        name="Message Box Response",
        key=system_channel_key(constants.MESSAGE_BOX_RESPONSE_LEAF_KEY),
        topic_name="messageboxresponse",
    ))
    application.add_channel(Channel(
        name="Suspend Queue",
        key=system_channel_key(constants.SUSPEND_QUEUE_LEAF_KEY),
    ))
    application.add_channel(Channel(
        name="Interchange Queue",
        key=system_channel_key(constants.INTERCHANGE_QUEUE_LEAF_KEY),
    ))
    return application


@pytest.fixture
def source_application(registry):
    """Source application resource named App1."""
    return add_resource(registry, None, "app:App1", APP_NAME, ResourceType.APPLICATION)


@pytest.fixture
def target_application(source_application):
    """Target application created for App1."""
    application = Application(
        name=APP_NAME,
        key=f"{constants.MESSAGE_BUS_LEAF_KEY}:{APP_NAME}",
    )
    application.properties[constants.SOURCE_APPLICATION_RESOURCE_KEY] = source_application.key
    return application


@pytest.fixture
def target_registry(empty_target_registry, system_application, target_application):
    """Target registry holding the system application and App1."""
    empty_target_registry.add_application(system_application)
    empty_target_registry.add_application(target_application)
    return empty_target_registry


@pytest.fixture
def message_box(system_application):
    return system_application.channels[0]


@pytest.fixture
def response_topic(system_application):
    return system_application.channels[1]


@pytest.fixture
def factory(registry, target_registry, context):
    return IntermediaryFactory(registry, target_registry, context)


@pytest.fixture
def route_binder(factory, context):
    return RouteBinder(factory, context)


@pytest.fixture
def module(registry, source_application):
    """Module resource holding the orchestration types of App1."""
    return add_resource(registry, source_application, "module:Types", "Types", ResourceType.MODULE)


@pytest.fixture
def orchestration_types(registry, module):
    """Port types Types.OneWay and Types.RequestResponse, and the Schemas.Order schema."""
    add_module_types(
        registry, module, one_way_port_type("OneWay"), request_response_port_type("RequestResponse")
    )
    return add_schema(registry, "Schemas.Order", "http://ns#Order")


@pytest.fixture
def add_orchestration(registry, source_application):
    """Register an orchestration metamodel under App1."""

    def _add(metamodel):
        name = metamodel.elements[0].elements[0].find_property_value("Name")
        return add_resource(
            registry, source_application, f"orchestration:{name}", name, ResourceType.METAMODEL, metamodel
        )

    return _add
