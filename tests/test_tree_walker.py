"""
Tests for the MetaModel Tree Walker.
"""

from dataclasses import replace

import pytest

from biztalk_analyzer.constants import ResourceType
from biztalk_analyzer.context import MigrationContext
from biztalk_analyzer.errors import ErrorKind, MissingSourceConstruct
from biztalk_analyzer.source.models import MetaModel
from biztalk_analyzer.workflow import (
    ActivityType,
    ElementType,
    MetaModelTreeWalker,
    PropertyKey,
    TypeResolver,
    WorkflowActivityContainer,
    WorkflowChannelKind,
    WorkflowCompositeMessage,
    WorkflowCorrelationVariable,
)

from builders import (
    activating_receive,
    add_module_types,
    add_resource,
    direct_port,
    element,
    orchestration,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def walker(registry, context):
    return MetaModelTreeWalker(TypeResolver(registry, context), context)


@pytest.fixture
def build(walker, add_orchestration, orchestration_types):
    """Walk a metamodel registered under App1."""

    def _build(metamodel):
        return walker.build_workflow_model(add_orchestration(metamodel))

    return _build


# =============================================================================
# Structure
# =============================================================================

class TestDefinition:
    """Tests for the workflow definition itself."""

    def test_name_without_module_name(self, build):
        definition = build(orchestration("W1"))

        assert definition.name == "W1"
        assert definition.key == "W1"
        assert definition.activity_type == ActivityType.WORKFLOW

    def test_name_qualified_by_module(self, build):
        """A named module qualifies the workflow name."""
        metamodel = MetaModel(elements=[
            element("Module", "Contoso", element("ServiceDeclaration", "Order Process")),
        ])

        definition = build(metamodel)

        assert definition.name == "Contoso.Order Process"
        assert definition.key == "Contoso.OrderProcess"

    def test_missing_metamodel_raises(self, walker, registry, source_application):
        resource = add_resource(registry, source_application, "orchestration:X", "X", ResourceType.METAMODEL)

        with pytest.raises(MissingSourceConstruct):
            walker.build_workflow_model(resource)

    def test_element_type_dispatch(self):
        """Known tags map to their type; anything else is OTHER."""
        assert ElementType.from_tag("Receive") == ElementType.RECEIVE
        assert ElementType.from_tag("Listen") == ElementType.OTHER
        assert ElementType.from_tag("Other") == ElementType.OTHER


# =============================================================================
# Declarations
# =============================================================================

class TestDeclarations:
    """Tests for ports, messages and correlation declarations."""

    def test_direct_port_channel(self, build):
        """A port declaration becomes one channel per port type operation."""
        definition = build(orchestration("W1", direct_port("P1", "Types.OneWay")))

        assert len(definition.channels) == 1
        channel = definition.channels[0]
        assert channel.name == "P1"
        assert channel.operation_name == "Op1"
        assert channel.key == "W1.P1.Op1"
        assert channel.kind == WorkflowChannelKind.PORT
        assert channel.properties[PropertyKey.BINDING] == "Direct"
        assert channel.properties[PropertyKey.DIRECT_BINDING_TYPE] == "MessageBox"
        assert channel.properties[PropertyKey.IS_SERVICE_LINK] is False
        assert channel.direction is None

    def test_logical_port_binding(self, build):
        definition = build(orchestration("W1", element("PortDeclaration", "P1", Type="Types.OneWay")))

        assert definition.channels[0].properties[PropertyKey.BINDING] == "Logical"

    def test_unresolved_port_type_is_recorded(self, build, context):
        """The port is skipped and the walk continues."""
        definition = build(orchestration(
            "W1",
            element("PortDeclaration", "P1", Type="Types.Missing"),
            element("MessageDeclaration", "Msg", Type="Schemas.Order"),
        ))

        assert definition.channels == []
        assert len(definition.messages) == 1
        assert len(context.errors_of_kind(ErrorKind.MISSING_SOURCE_CONSTRUCT)) == 1

    def test_message_resolves_message_type(self, build):
        definition = build(orchestration("W1", element("MessageDeclaration", "Msg", Type="Schemas.Order")))

        message = definition.find_message("Msg")
        assert message.key == "W1.Msg"
        assert message.message_type == "http://ns#Order"

    def test_multipart_message(self, build, registry, module):
        """Multipart messages get one part per part declaration."""
        add_module_types(registry, module, element(
            "MultipartMessageType", "Envelope",
            element("PartDeclaration", "Body", ClassName="Schemas.Order"),
            element("PartDeclaration", "Header", ClassName="Schemas.Header"),
        ))

        definition = build(orchestration("W1", element("MessageDeclaration", "Msg", Type="Types.Envelope")))

        message = definition.find_message("Msg")
        assert isinstance(message, WorkflowCompositeMessage)
        assert [p.name for p in message.parts] == ["Body", "Header"]
        assert message.parts[0].message_type == "http://ns#Order"
        assert message.parts[1].message_type is None

    def test_correlation_declaration(self, build, registry, module):
        add_module_types(registry, module, element(
            "CorrelationType", "OrderCorrelation",
            element("PropertyRef", "OrderId", Ref="Contoso.OrderId"),
        ))

        definition = build(orchestration("W1", element(
            "CorrelationDeclaration", "Corr",
            element("StatementRef", None, Ref="r1", Initializes="True"),
            element("StatementRef", None, Ref="s1", Initializes="False"),
            Type="Types.OrderCorrelation",
        )))

        variable = next(definition.correlation_variables())
        assert isinstance(variable, WorkflowCorrelationVariable)
        assert [p.type for p in variable.correlation_properties] == ["Contoso.OrderId"]
        assert variable.properties[PropertyKey.ACTIVITY_REFERENCES] == {"r1": True, "s1": False}

    def test_service_link_roles(self, build, registry, module):
        """Each service link role becomes a channel; provider and consumer reference each other."""
        add_module_types(registry, module, element(
            "ServiceLinkType", "Link",
            element("RoleDeclaration", "Provider", element("PortTypeRef", None, Ref="Types.OneWay")),
            element("RoleDeclaration", "Consumer", element("PortTypeRef", None, Ref="Types.OneWay")),
        ))

        definition = build(orchestration("W1", element(
            "ServiceLinkDeclaration", "SL", Type="Types.Link", RoleName="Provider", PortModifier="Implements",
        )))

        provider, consumer = definition.channels
        assert provider.name == "SL.Provider"
        assert provider.kind == WorkflowChannelKind.SERVICE_LINK
        assert provider.properties[PropertyKey.CONSUMER_CHANNEL_REFERENCE] == consumer.key
        assert consumer.properties[PropertyKey.PROVIDER_CHANNEL_REFERENCE] == provider.key

    def test_variable_defaults(self, build):
        definition = build(orchestration("W1", element("VariableDeclaration", "Count", Type="System.Int32")))

        variable = next(v for c in definition.containers() for v in c.variables)
        assert variable.key == "W1.Count"
        assert variable.properties[PropertyKey.INITIAL_VALUE] is None
        assert variable.properties[PropertyKey.USE_DEFAULT_CONSTRUCTOR] is False

    def test_variable_with_short_ignore_list(self, registry, config, add_orchestration, orchestration_types):
        """Initial value and constructor flag are set once even when the ignore list keeps them."""
        context = MigrationContext(replace(config, ignored_properties=("Name",)))
        walker = MetaModelTreeWalker(TypeResolver(registry, context), context)
        metamodel = orchestration("W1", element(
            "VariableDeclaration", "Count", Type="System.Int32", InitialValue="0", UseDefaultConstructor="True",
        ))

        definition = walker.build_workflow_model(add_orchestration(metamodel))

        variable = next(v for c in definition.containers() for v in c.variables)
        assert variable.properties[PropertyKey.INITIAL_VALUE] == "0"
        assert variable.properties[PropertyKey.USE_DEFAULT_CONSTRUCTOR] is True
        assert variable.properties["Type"] == "System.Int32"
        assert not context.has_errors


# =============================================================================
# Activities
# =============================================================================

class TestActivities:
    """Tests for activities and containers."""

    def test_receive_properties(self, build):
        """Metamodel properties are copied with flags coerced to booleans."""
        definition = build(orchestration("W1", activating_receive("P1", "Msg")))

        receive = definition.activities[0]
        assert receive.activity_type == ActivityType.RECEIVE
        assert receive.object_id == "r1"
        assert receive.properties[PropertyKey.PORT_NAME] == "P1"
        assert receive.properties[PropertyKey.ACTIVATE] is True
        assert "Name" not in receive.properties

    def test_receive_filter_predicates(self, build):
        """DNF predicates become AND groups split on OR grouping."""
        receive = activating_receive("P1", "Msg")
        receive.elements.extend([
            element("DNFPredicate", None, LHS="BTS.MessageType", Operator="Equals", RHS='"http://ns#Order"',
                    Grouping="AND"),
            element("DNFPredicate", None, LHS="Contoso.Priority", Operator="Exists", Grouping="OR"),
            element("DNFPredicate", None, LHS="BTS.ReceivePortName", Operator="NotEquals", RHS='"RP1"'),
        ])

        definition = build(orchestration("W1", receive))

        assert definition.activities[0].properties[PropertyKey.SUBSCRIPTION_FILTER] == [
            ["btsMessageType = 'http://ns#Order'", "EXISTS ( ContosoPriority )"],
            ["btsReceivePortName != 'RP1'"],
        ]

    def test_call_and_exec(self, build):
        """Call is a synchronous invocation, Exec an asynchronous one."""
        definition = build(orchestration(
            "W1",
            element("Call", "CallW2", element("Parameter", "Order", Type="Schemas.Order"), Invokee="W2"),
            element("Exec", "StartW3", Invokee="W3"),
        ))

        call, start = definition.activities
        assert call.activity_type == ActivityType.INVOKE_WORKFLOW
        assert call.properties[PropertyKey.INVOKEE] == "W2"
        assert call.properties[PropertyKey.IS_ASYNC] is False
        assert call.properties[PropertyKey.WORKFLOW_PARAMETERS] == {"Order": "Schemas.Order"}
        assert start.properties[PropertyKey.IS_ASYNC] is True

    def test_nested_containers(self, build):
        """Tasks become containers holding their child activities and declarations."""
        definition = build(orchestration("W1", element(
            "Task", "Scope",
            element("MessageDeclaration", "Inner", Type="Schemas.Order"),
            activating_receive("P1", "Inner", oid="r2"),
        )))

        group = definition.activities[0]
        assert isinstance(group, WorkflowActivityContainer)
        assert group.activity_type == ActivityType.ACTIVITY_GROUP
        assert definition.messages == []
        assert group.find_message("Inner") is not None
        assert definition.find_message("Inner") is not None
        assert definition.find_activity_by_object_id("r2") is group.activities[0]
        assert len(list(definition.containers())) == 2

    def test_construct_collects_assignments_and_transforms(self, build):
        definition = build(orchestration("W1", element(
            "Construct", "BuildInvoice",
            element("MessageRef", None, Ref="Invoice"),
            element("MessageAssignment", "Assign"),
            element(
                "Transform", "Map",
                element("MessagePartRef", None, parent_link="Transform_InputMessagePartRef", MessageRef="Order"),
                element("MessagePartRef", None, parent_link="Transform_OutputMessagePartRef", MessageRef="Invoice"),
                ClassName="Maps.OrderToInvoice",
            ),
        )))

        group = definition.activities[0]
        assert [a.activity_type for a in group.activities] == [
            ActivityType.MESSAGE_CONSTRUCTION, ActivityType.MESSAGE_TRANSFORM,
        ]
        transform = group.activities[1]
        assert transform.properties[PropertyKey.MAP] == "Maps.OrderToInvoice"
        assert transform.properties[PropertyKey.SOURCE_MESSAGE_REFERENCES] == ["Order"]
        assert transform.properties[PropertyKey.IS_MULTI_SOURCE] is False
        assert group.properties[PropertyKey.CONSTRUCTED_MESSAGES] == ["Invoice"]

    def test_unknown_element_kept_as_other(self, build):
        definition = build(orchestration("W1", element("Delay", "Wait")))

        activity = definition.activities[0]
        assert activity.type == "Delay"
        assert activity.activity_type == ActivityType.OTHER
