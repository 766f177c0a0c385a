"""
MetaModel Tree Walker — builds a WorkflowDefinition from an orchestration.

Each element is dispatched on its type to a handler. Handlers receive an
explicit WalkScope and return a VisitResult naming the nodes they created,
the object that becomes the parent of any child elements, and whether the
walker should recurse. The walker places created nodes into their scope.

Declaration and type elements are not recursed into; type definitions are
resolved by qualified name through the TypeResolver instead.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..constants import ResourceType
from ..context import MigrationContext
from ..errors import AnalysisError, MissingSourceConstruct, PreconditionViolation, StructuralMismatch
from ..source.models import Element, MetaModel, ResourceItem
from ..target.models import format_key
from .filters import render_predicate, split_dnf_groups
from .models import (
    ActivityType,
    BindingKind,
    PropertyKey,
    WorkflowActivity,
    WorkflowActivityContainer,
    WorkflowChannel,
    WorkflowChannelKind,
    WorkflowCompositeMessage,
    WorkflowCorrelationVariable,
    WorkflowDefinition,
    WorkflowMessage,
    WorkflowObject,
    WorkflowVariable,
)
from .type_resolver import TypeResolver


logger = logging.getLogger(__name__)


# =============================================================================
# Element types
# =============================================================================

class ElementType(str, Enum):
    """Metamodel element types with a dedicated handler; the rest are OTHER."""
    MODULE = "Module"
    SERVICE_BODY = "ServiceBody"
    SERVICE_DECLARATION = "ServiceDeclaration"
    MESSAGE_DECLARATION = "MessageDeclaration"
    VARIABLE_DECLARATION = "VariableDeclaration"
    PORT_DECLARATION = "PortDeclaration"
    SERVICE_LINK_DECLARATION = "ServiceLinkDeclaration"
    CORRELATION_DECLARATION = "CorrelationDeclaration"
    CALL = "Call"
    EXEC = "Exec"
    CONSTRUCT = "Construct"
    TASK = "Task"
    VARIABLE_ASSIGNMENT = "VariableAssignment"
    RECEIVE = "Receive"
    CORRELATION_TYPE = "CorrelationType"
    MULTIPART_MESSAGE_TYPE = "MultipartMessageType"
    PORT_TYPE = "PortType"
    SERVICE_LINK_TYPE = "ServiceLinkType"
    OTHER = "Other"

    @classmethod
    def from_tag(cls, tag: str) -> "ElementType":
        try:
            member = cls(tag)
        except ValueError:
            return cls.OTHER
        return cls.OTHER if member is cls.OTHER else member


# Child element tags looked at by handlers.
PART_DECLARATION = "PartDeclaration"
OPERATION_DECLARATION = "OperationDeclaration"
ROLE_DECLARATION = "RoleDeclaration"
PORT_TYPE_REF = "PortTypeRef"
PROPERTY_REF = "PropertyRef"
STATEMENT_REF = "StatementRef"
PARAMETER = "Parameter"
MESSAGE_ASSIGNMENT = "MessageAssignment"
TRANSFORM = "Transform"
MESSAGE_PART_REF = "MessagePartRef"
MESSAGE_REF = "MessageRef"
DNF_PREDICATE = "DNFPredicate"
DIRECT_BINDING_ATTRIBUTE = "DirectBindingAttribute"
PHYSICAL_BINDING_ATTRIBUTE = "PhysicalBindingAttribute"

TRANSFORM_INPUT_LINK = "Transform_InputMessagePartRef"
TRANSFORM_OUTPUT_LINK = "Transform_OutputMessagePartRef"

PORT_MODIFIER_IMPLEMENTS = "Implements"
EXPRESSION_LANGUAGE_CSHARP = "C#"


# =============================================================================
# Visitor plumbing
# =============================================================================

@dataclass
class WalkScope:
    """Where the element being visited sits."""
    definition: WorkflowDefinition
    parent: WorkflowObject
    parent_element: Optional[Element] = None
    index: int = 0

    @property
    def container(self) -> WorkflowActivityContainer:
        """Scope that receives declarations and activities."""
        if isinstance(self.parent, WorkflowActivityContainer):
            return self.parent
        return self.definition


@dataclass
class VisitResult:
    """Outcome of visiting one element."""
    current: WorkflowObject
    nodes: List[WorkflowObject] = field(default_factory=list)
    recurse: bool = False


Handler = Callable[[WalkScope, Element], VisitResult]


def _name_of(element: Element) -> str:
    return element.find_property_value("Name") or element.type


def _indexed_key(parent: WorkflowObject, element: Element, index: int) -> str:
    return format_key(f"{parent.key}.{_name_of(element)}{index}")


# =============================================================================
# Walker
# =============================================================================

class MetaModelTreeWalker:
    """Converts orchestration element trees into workflow definitions."""

    def __init__(self, resolver: TypeResolver, context: MigrationContext):
        self.resolver = resolver
        self.context = context
        self.ignored_properties = frozenset(context.config.ignored_properties)

        self._handlers: Dict[ElementType, Handler] = {
            ElementType.MODULE: self._visit_module,
            ElementType.SERVICE_BODY: self._visit_service_body,
            ElementType.SERVICE_DECLARATION: self._visit_service_declaration,
            ElementType.MESSAGE_DECLARATION: self._visit_message_declaration,
            ElementType.VARIABLE_DECLARATION: self._visit_variable_declaration,
            ElementType.PORT_DECLARATION: self._visit_port_declaration,
            ElementType.SERVICE_LINK_DECLARATION: self._visit_service_link_declaration,
            ElementType.CORRELATION_DECLARATION: self._visit_correlation_declaration,
            ElementType.CALL: self._visit_call,
            ElementType.EXEC: self._visit_exec,
            ElementType.CONSTRUCT: self._visit_construct,
            ElementType.TASK: self._visit_task,
            ElementType.VARIABLE_ASSIGNMENT: self._visit_variable_assignment,
            ElementType.RECEIVE: self._visit_receive,
            ElementType.CORRELATION_TYPE: self._visit_type,
            ElementType.MULTIPART_MESSAGE_TYPE: self._visit_type,
            ElementType.PORT_TYPE: self._visit_type,
            ElementType.SERVICE_LINK_TYPE: self._visit_type,
            ElementType.OTHER: self._visit_element,
        }
        missing = set(ElementType) - set(self._handlers)
        if missing:
            raise PreconditionViolation(
                f"No handler for element types: {sorted(m.value for m in missing)}"
            )

    def build_workflow_model(self, orchestration: ResourceItem) -> WorkflowDefinition:
        """
        Build the workflow definition of one orchestration resource.

        Raises:
            MissingSourceConstruct: If the resource has no metamodel.
        """
        metamodel = orchestration.source_object
        if not isinstance(metamodel, MetaModel):
            raise MissingSourceConstruct(
                f"Orchestration '{orchestration.key}' has no metamodel source object",
                object_key=orchestration.key,
            )

        definition = WorkflowDefinition(type=ActivityType.WORKFLOW.value)
        for index, element in enumerate(metamodel.elements):
            self.walk(WalkScope(definition, definition, None, index), element)

        logger.debug(
            f"Built workflow '{definition.name}': {len(definition.channels)} channels, "
            f"{sum(1 for _ in definition.iter_activities())} activities"
        )
        return definition

    def walk(self, scope: WalkScope, element: Element) -> None:
        """Visit an element, place what it produced, then recurse if asked to."""
        handler = self._handlers[ElementType.from_tag(element.type)]
        try:
            result = handler(scope, element)
        except AnalysisError as e:
            self.context.record(e)
            return

        for node in result.nodes:
            self._place(scope, node)

        if result.recurse:
            for index, child in enumerate(element.elements):
                self.walk(WalkScope(scope.definition, result.current, element, index), child)

    @staticmethod
    def _place(scope: WalkScope, node: WorkflowObject) -> None:
        if isinstance(node, WorkflowChannel):
            scope.definition.channels.append(node)
        elif isinstance(node, WorkflowMessage):
            scope.container.messages.append(node)
        elif isinstance(node, WorkflowVariable):
            scope.container.variables.append(node)
        elif isinstance(node, WorkflowActivity):
            # Activities only live inside containers.
            if isinstance(scope.parent, WorkflowActivityContainer):
                scope.parent.activities.append(node)

    def _copy_properties(self, target: WorkflowObject, element: Element, exclude=()) -> None:
        target.add_property(PropertyKey.OBJECT_ID, element.oid)
        for name, value in element.properties.items():
            if name in self.ignored_properties or name in exclude:
                continue
            target.add_property(name, value)

    # =========================================================================
    # Structure
    # =========================================================================

    def _visit_module(self, scope: WalkScope, element: Element) -> VisitResult:
        return VisitResult(current=scope.parent, recurse=True)

    def _visit_service_body(self, scope: WalkScope, element: Element) -> VisitResult:
        self._copy_properties(scope.definition, element)
        return VisitResult(current=scope.parent, recurse=True)

    def _visit_service_declaration(self, scope: WalkScope, element: Element) -> VisitResult:
        module_name = scope.parent_element.find_property_value("Name") if scope.parent_element else None
        name = element.find_property_value("Name") or element.type
        definition = scope.definition
        definition.name = f"{module_name}.{name}" if module_name else name
        definition.key = format_key(definition.name)
        definition.type = ActivityType.WORKFLOW.value
        return VisitResult(current=scope.parent, recurse=True)

    def _visit_type(self, scope: WalkScope, element: Element) -> VisitResult:
        # Types are resolved by reference from declarations.
        return VisitResult(current=scope.parent)

    # =========================================================================
    # Declarations
    # =========================================================================

    def _visit_message_declaration(self, scope: WalkScope, element: Element) -> VisitResult:
        name = element.find_property_value("Name") or element.type
        type_name = element.find_property_value("Type")
        key = format_key(f"{scope.parent.key}.{name}")

        multipart = self.resolver.resolve(ResourceType.MULTIPART_MESSAGE_TYPE, type_name)
        if multipart is not None:
            message: WorkflowMessage = WorkflowCompositeMessage(name=name, key=key, type=type_name or "")
            part_elements = []
            if isinstance(multipart.source_object, Element):
                part_elements = multipart.source_object.children_of_type(PART_DECLARATION)
            if not part_elements:
                self.context.record(StructuralMismatch(
                    f"Multipart message type '{multipart.name}' must have at least one part",
                    object_key=multipart.key,
                ))
            for part in part_elements:
                part_name = part.find_property_value("Name") or part.type
                part_message = WorkflowMessage(
                    name=part_name,
                    key=format_key(f"{key}.{part_name}"),
                    type=part.find_property_value("ClassName") or "",
                )
                self._copy_properties(part_message, part)
                part_message.message_type = self.resolver.find_message_type(part_message.type)
                message.parts.append(part_message)
        else:
            message = WorkflowMessage(name=name, key=key, type=type_name or "")
            message.message_type = self.resolver.find_message_type(type_name)

        self._copy_properties(message, element)
        return VisitResult(current=scope.parent, nodes=[message])

    def _visit_variable_declaration(self, scope: WalkScope, element: Element) -> VisitResult:
        name = element.find_property_value("Name") or element.type
        variable = WorkflowVariable(
            name=name,
            key=format_key(f"{scope.parent.key}.{name}"),
            type=element.find_property_value("Type") or "",
        )
        self._copy_properties(
            variable, element, exclude=(PropertyKey.INITIAL_VALUE.value, PropertyKey.USE_DEFAULT_CONSTRUCTOR.value)
        )
        variable.add_property(PropertyKey.INITIAL_VALUE, element.find_property_value("InitialValue"))
        variable.add_property(
            PropertyKey.USE_DEFAULT_CONSTRUCTOR,
            element.find_property_value("UseDefaultConstructor") or "False",
        )
        return VisitResult(current=scope.parent, nodes=[variable])

    def _visit_port_declaration(self, scope: WalkScope, element: Element) -> VisitResult:
        port_name = element.find_property_value("Name") or element.type
        port_type_name = element.find_property_value("Type")

        port_type = self.resolver.resolve(ResourceType.PORT_TYPE, port_type_name)
        if port_type is None or not isinstance(port_type.source_object, Element):
            raise MissingSourceConstruct(
                f"Unable to resolve port type '{port_type_name}' of port '{port_name}'"
            )
        operations = port_type.source_object.children_of_type(OPERATION_DECLARATION)
        if not operations:
            raise StructuralMismatch(f"Port type '{port_type_name}' must have at least one operation")

        direct = next(iter(element.children_of_type(DIRECT_BINDING_ATTRIBUTE)), None)
        physical = next(iter(element.children_of_type(PHYSICAL_BINDING_ATTRIBUTE)), None)

        channels = []
        for operation in operations:
            operation_name = operation.find_property_value("Name")
            channel = WorkflowChannel(
                name=port_name,
                operation_name=operation_name,
                key=format_key(f"{scope.parent.key}.{port_name}.{operation_name}"),
                type=port_type_name,
                kind=WorkflowChannelKind.PORT,
            )
            self._copy_properties(channel, element)
            channel.add_property(PropertyKey.IS_SERVICE_LINK, False)
            if direct is not None:
                channel.add_property(PropertyKey.BINDING, BindingKind.DIRECT.value)
                channel.add_property(
                    PropertyKey.DIRECT_BINDING_TYPE, direct.find_property_value("DirectBindingType")
                )
            elif physical is not None:
                channel.add_property(PropertyKey.BINDING, BindingKind.PHYSICAL.value)
            else:
                channel.add_property(PropertyKey.BINDING, BindingKind.LOGICAL.value)
            channels.append(channel)

        return VisitResult(current=scope.parent, nodes=channels)

    def _visit_service_link_declaration(self, scope: WalkScope, element: Element) -> VisitResult:
        link_name = element.find_property_value("Name") or element.type
        link_type_name = element.find_property_value("Type")
        link_role = element.find_property_value("RoleName")
        implements = element.find_property_value("PortModifier") == PORT_MODIFIER_IMPLEMENTS

        link_type = self.resolver.resolve(ResourceType.SERVICE_LINK_TYPE, link_type_name)
        if link_type is None or not isinstance(link_type.source_object, Element):
            raise MissingSourceConstruct(
                f"Unable to resolve service link type '{link_type_name}' of '{link_name}'"
            )
        roles = link_type.source_object.children_of_type(ROLE_DECLARATION)
        if not roles:
            raise StructuralMismatch(f"Service link type '{link_type_name}' must have at least one role")

        provider: Optional[WorkflowChannel] = None
        consumer: Optional[WorkflowChannel] = None
        channels = []
        for role in roles:
            role_name = role.find_property_value("Name")
            port_type_ref = next(iter(role.children_of_type(PORT_TYPE_REF)), None)
            if port_type_ref is None:
                self.context.record(StructuralMismatch(
                    f"Role '{role_name}' of service link type '{link_type_name}' has no port type reference"
                ))
                continue

            channel_name = f"{link_name}.{role_name}"
            channel = WorkflowChannel(
                name=channel_name,
                key=format_key(f"{scope.parent.key}.{channel_name}"),
                type=port_type_ref.find_property_value("Ref") or "",
                kind=WorkflowChannelKind.SERVICE_LINK,
            )
            self._copy_properties(channel, element, exclude=("RoleName",))
            channel.add_property(PropertyKey.IS_SERVICE_LINK, True)
            channel.add_property(PropertyKey.ROLE_NAME, role_name)
            channels.append(channel)

            is_provider = implements if role_name == link_role else not implements
            if is_provider:
                provider = channel
            else:
                consumer = channel

        if provider is not None and consumer is not None:
            provider.add_property(PropertyKey.CONSUMER_CHANNEL_REFERENCE, consumer.key)
            consumer.add_property(PropertyKey.PROVIDER_CHANNEL_REFERENCE, provider.key)

        return VisitResult(current=scope.parent, nodes=channels)

    def _visit_correlation_declaration(self, scope: WalkScope, element: Element) -> VisitResult:
        name = _name_of(element)
        type_name = element.find_property_value("Type")
        variable = WorkflowCorrelationVariable(
            name=name,
            key=_indexed_key(scope.parent, element, scope.index),
            type=type_name or "",
        )
        self._copy_properties(variable, element)

        correlation_type = self.resolver.resolve(ResourceType.CORRELATION_TYPE, type_name)
        if correlation_type is not None:
            property_refs = []
            if isinstance(correlation_type.source_object, Element):
                property_refs = correlation_type.source_object.children_of_type(PROPERTY_REF)
            if not property_refs:
                self.context.record(StructuralMismatch(
                    f"Correlation type '{correlation_type.name}' must have at least one property",
                    object_key=correlation_type.key,
                ))
            for property_ref in property_refs:
                property_name = property_ref.find_property_value("Name") or property_ref.type
                variable.correlation_properties.append(WorkflowVariable(
                    name=property_name,
                    key=f"{variable.key}.{property_name}",
                    type=property_ref.find_property_value("Ref") or "",
                ))
        else:
            self.context.record(MissingSourceConstruct(
                f"Unable to resolve correlation type '{type_name}' of '{name}'"
            ))

        statements = element.children_of_type(STATEMENT_REF)
        if statements:
            references: Dict[str, bool] = {}
            for statement in statements:
                initializes = (statement.find_property_value("Initializes") or "").lower() == "true"
                references[statement.find_property_value("Ref") or ""] = initializes
            variable.add_property(PropertyKey.ACTIVITY_REFERENCES, references)

        return VisitResult(current=scope.parent, nodes=[variable])

    # =========================================================================
    # Activities
    # =========================================================================

    def _invoke_activity(self, scope: WalkScope, element: Element, is_async: bool) -> VisitResult:
        activity = WorkflowActivity(
            name=_name_of(element),
            key=_indexed_key(scope.parent, element, scope.index),
            type=ActivityType.INVOKE_WORKFLOW.value,
        )
        self._copy_properties(activity, element)
        activity.add_property(PropertyKey.IS_ASYNC, is_async)

        parameters = element.children_of_type(PARAMETER)
        if parameters:
            activity.add_property(PropertyKey.WORKFLOW_PARAMETERS, {
                p.find_property_value("Name"): p.find_property_value("Type") for p in parameters
            })
        return VisitResult(current=activity, nodes=[activity])

    def _visit_call(self, scope: WalkScope, element: Element) -> VisitResult:
        return self._invoke_activity(scope, element, is_async=False)

    def _visit_exec(self, scope: WalkScope, element: Element) -> VisitResult:
        return self._invoke_activity(scope, element, is_async=True)

    def _visit_construct(self, scope: WalkScope, element: Element) -> VisitResult:
        group = WorkflowActivityContainer(
            name=_name_of(element),
            key=_indexed_key(scope.parent, element, scope.index),
            type=ActivityType.ACTIVITY_GROUP.value,
        )
        self._copy_properties(group, element)

        for index, child in enumerate(element.elements):
            if child.type not in (MESSAGE_ASSIGNMENT, TRANSFORM):
                continue
            activity = WorkflowActivity(
                name=_name_of(child),
                key=_indexed_key(group, child, index),
            )
            self._copy_properties(activity, child)
            if child.type == MESSAGE_ASSIGNMENT:
                activity.type = ActivityType.MESSAGE_CONSTRUCTION.value
            else:
                activity.type = ActivityType.MESSAGE_TRANSFORM.value
                activity.add_property(PropertyKey.MAP, child.find_property_value("ClassName"))
                self._add_transform_references(activity, child)
            group.activities.append(activity)

        constructed = [m.find_property_value("Ref") for m in element.children_of_type(MESSAGE_REF)]
        if constructed:
            group.add_property(PropertyKey.CONSTRUCTED_MESSAGES, constructed)

        return VisitResult(current=group, nodes=[group])

    @staticmethod
    def _add_transform_references(activity: WorkflowActivity, transform: Element) -> None:
        def message_ref(part: Element) -> str:
            message = part.find_property_value("MessageRef")
            part_name = part.find_property_value("PartRef")
            return f"{message}.{part_name}" if part_name is not None else message

        parts = transform.children_of_type(MESSAGE_PART_REF)
        sources = [message_ref(p) for p in parts if p.parent_link == TRANSFORM_INPUT_LINK]
        targets = [message_ref(p) for p in parts if p.parent_link == TRANSFORM_OUTPUT_LINK]
        if sources:
            activity.add_property(PropertyKey.SOURCE_MESSAGE_REFERENCES, sources)
            activity.add_property(PropertyKey.IS_MULTI_SOURCE, len(sources) > 1)
        if targets:
            activity.add_property(PropertyKey.TARGET_MESSAGE_REFERENCES, targets)
            activity.add_property(PropertyKey.IS_MULTI_TARGET, len(targets) > 1)

    def _visit_task(self, scope: WalkScope, element: Element) -> VisitResult:
        group = WorkflowActivityContainer(
            name=_name_of(element),
            key=_indexed_key(scope.parent, element, scope.index),
            type=ActivityType.ACTIVITY_GROUP.value,
        )
        self._copy_properties(group, element)
        return VisitResult(current=group, nodes=[group], recurse=True)

    def _visit_variable_assignment(self, scope: WalkScope, element: Element) -> VisitResult:
        expression = WorkflowActivity(
            name=_name_of(element),
            key=_indexed_key(scope.parent, element, scope.index),
            type=ActivityType.CODE_EXPRESSION.value,
        )
        self._copy_properties(expression, element)
        expression.add_property(PropertyKey.EXPRESSION_LANGUAGE, EXPRESSION_LANGUAGE_CSHARP)
        return VisitResult(current=expression, nodes=[expression], recurse=True)

    def _visit_receive(self, scope: WalkScope, element: Element) -> VisitResult:
        activity = WorkflowActivity(
            name=_name_of(element),
            key=_indexed_key(scope.parent, element, scope.index),
            type=ActivityType.RECEIVE.value,
        )
        self._copy_properties(activity, element)

        predicates = element.children_of_type(DNF_PREDICATE)
        if predicates:
            groups: List[List[str]] = []
            for predicate_group in split_dnf_groups(predicates):
                expressions = []
                for predicate in predicate_group:
                    try:
                        expressions.append(render_predicate(
                            predicate.find_property_value("LHS") or "",
                            predicate.find_property_value("Operator") or "",
                            predicate.find_property_value("RHS"),
                        ))
                    except AnalysisError as e:
                        self.context.record(e)
                if expressions:
                    groups.append(expressions)
            if groups:
                activity.add_property(PropertyKey.SUBSCRIPTION_FILTER, groups)

        return VisitResult(current=activity, nodes=[activity])

    def _visit_element(self, scope: WalkScope, element: Element) -> VisitResult:
        if element.elements:
            activity: WorkflowActivity = WorkflowActivityContainer(
                name=_name_of(element),
                key=_indexed_key(scope.parent, element, scope.index),
                type=element.type,
            )
        else:
            activity = WorkflowActivity(
                name=_name_of(element),
                key=_indexed_key(scope.parent, element, scope.index),
                type=element.type,
            )
        self._copy_properties(activity, element)
        return VisitResult(current=activity, nodes=[activity], recurse=True)
