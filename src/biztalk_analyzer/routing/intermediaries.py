"""
Intermediary Factory — creates the processing steps that make up a route.

Covers routing slip routers, pipeline component steps, map translators,
interchange (batch) handling steps and the message agents that promote
properties and publish to a topic channel. Every step carries its
scenario step name, configuration and routing properties for the routing
slip.
"""

import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from .. import constants
from ..constants import ResourceType
from ..context import MigrationContext
from ..errors import MissingSourceConstruct, MissingTargetReference, StructuralMismatch
from ..source.models import (
    MessageDefinition,
    Pipeline,
    PipelineComponent,
    PipelineRef,
    ResourceItem,
    ResourceRelationshipType,
)
from ..source.resource_registry import ResourceRegistry
from ..target.models import (
    Aggregator,
    Application,
    ContentBasedRouter,
    ContentDemoter,
    ContentPromoter,
    ConversionRating,
    EnvelopeWrapper,
    GenericFilter,
    Intermediary,
    MessageFilter,
    MessagePublisher,
    MessageTranslator,
    RoutingSlipRouter,
    Splitter,
    TopicChannel,
    format_key,
)
from ..target.target_registry import TargetModelRegistry


logger = logging.getLogger(__name__)

PipelineOverrides = Dict[str, Dict[str, Any]]


class KnownComponent(NamedTuple):
    """Pipeline component translated to a generic filter."""
    component: str
    key_leaf: str
    scenario_step: str


GENERIC_COMPONENTS: Dict[str, KnownComponent] = {
    constants.FLAT_FILE_DISASSEMBLER_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.FFDasmComp", "FFDasmComp", "flatFileMessageProcessor"
    ),
    constants.FLAT_FILE_ASSEMBLER_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.BTFAsmComp", "BTFAsmComp", "flatFileAssembler"
    ),
    constants.BTF_DISASSEMBLER_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.BtfDisassembler", "BtfDisassembler", "biztalkFrameworkDisassembler"
    ),
    constants.BTF_ASSEMBLER_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.BtfAssembler", "BtfAssembler", "biztalkFrameworkAssembler"
    ),
    constants.MIME_DECODER_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.Mime", "MimeDecoder", "mimeDecoder"
    ),
    constants.MIME_ENCODER_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.Mime", "MimeEncoder", "mimeEncoder"
    ),
    constants.PARTY_RESOLUTION_COMPONENT: KnownComponent(
        "Microsoft.BizTalk.Component.PartyRes", "PartyRes", "partyResolution"
    ),
}

# Components standing in for the default XML pipelines
XML_DISASSEMBLER_DEFAULTS = PipelineComponent(
    name="Microsoft.BizTalk.Component.XmlDasmComp",
    component_name=constants.XML_DISASSEMBLER_COMPONENT,
    properties={
        "EnvelopeSpecNames": None,
        "EnvelopeSpecTargetNamespaces": None,
        "DocumentSpecNames": None,
        "DocumentSpecTargetNamespaces": None,
        "AllowUnrecognizedMessage": "False",
        "ValidateDocument": "False",
        "RecoverableInterchangeProcessing": "False",
    },
)

XML_ASSEMBLER_DEFAULTS = PipelineComponent(
    name="Microsoft.BizTalk.Component.XmlAsmComp",
    component_name=constants.XML_ASSEMBLER_COMPONENT,
    properties={
        "EnvelopeDocSpecNames": None,
        "EnvelopeSpecTargetNamespaces": None,
        "DocumentSpecNames": None,
        "DocumentSpecTargetNamespaces": None,
        "XmlAsmProcessingInstructions": None,
        "ProcessingInstructionsOptions": "0",
        "ProcessingInstructionsScope": "0",
        "AddXmlDeclaration": "True",
        "TargetCharset": None,
        "TargetCodePage": "0",
        "PreserveBom": "True",
    },
)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "-1", "1"):
        return True
    if text in ("false", "0"):
        return False
    return default


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _stamp(
    intermediary: Intermediary,
    scenario_step: str,
    configuration: Optional[Dict[str, Any]] = None,
    routing_properties: Optional[Dict[str, Any]] = None,
) -> Intermediary:
    """Set the routing slip properties every step carries."""
    intermediary.properties[constants.SCENARIO_STEP_NAME] = scenario_step
    intermediary.properties[constants.CONFIGURATION_ENTRY] = configuration if configuration is not None else {}
    intermediary.properties[constants.ROUTING_PROPERTIES] = (
        routing_properties if routing_properties is not None else {}
    )
    return intermediary


class IntermediaryFactory:
    """
    Builds route steps against the source and target registries.

    Missing shared channels raise MissingTargetReference; the scenario
    analyzer that owns the route records it. Problems confined to one step
    (a pipeline without stages, a map without a source schema) are recorded
    here and the step is left out.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        target_registry: TargetModelRegistry,
        context: MigrationContext,
    ):
        self.registry = registry
        self.target_registry = target_registry
        self.context = context
        self.config = context.config

        self._component_handlers: Dict[
            str, Callable[[str, PipelineComponent, PipelineOverrides], List[Intermediary]]
        ] = {
            constants.XML_DISASSEMBLER_COMPONENT: self._xml_disassembler,
            constants.XML_ASSEMBLER_COMPONENT: self._xml_assembler,
            constants.XML_VALIDATOR_COMPONENT: lambda prefix, component, overrides: [
                self._xml_validator(prefix, component, overrides)
            ],
        }

    # =========================================================================
    # Shared channels
    # =========================================================================

    def require_channel(self, key: str):
        """Channel with the given key, or MissingTargetReference."""
        lookup = self.target_registry.find_messaging_object(key)
        if not lookup.found:
            raise MissingTargetReference(f"Unable to find channel with key '{key}' in target model", object_key=key)
        return lookup.messaging_object

    # =========================================================================
    # Routing
    # =========================================================================

    def routing_slip_router(self, key_prefix: str, from_step: str, to_step: str) -> RoutingSlipRouter:
        logger.debug(f"Creating routing slip router from '{from_step}' to '{to_step}'")
        return RoutingSlipRouter(
            name=constants.ROUTING_SLIP_ROUTER_NAME,
            description=f"Routes the message to the '{to_step}' step",
            key=f"{key_prefix}:{constants.ROUTING_SLIP_ROUTER_LEAF_KEY}:{format_key(from_step)}-{format_key(to_step)}",
            rating=ConversionRating.FULL_CONVERSION,
            route_to=to_step,
        )

    # =========================================================================
    # Message agents
    # =========================================================================

    def message_agents(
        self,
        key_prefix: str,
        topic_channel_key: str,
        use_sessions: bool = False,
        session_property: Optional[str] = None,
    ) -> List[Intermediary]:
        """Content promoter followed by a publisher to the topic channel."""
        topic_channel = self.require_channel(topic_channel_key)
        topic_name = topic_channel.topic_name if isinstance(topic_channel, TopicChannel) else topic_channel.name

        promoter = ContentPromoter(
            name=constants.CONTENT_PROMOTER_NAME,
            description="Promotes message content into routing properties",
            key=f"{key_prefix}:{constants.CONTENT_PROMOTER_LEAF_KEY}",
            rating=ConversionRating.FULL_CONVERSION,
        )
        _stamp(promoter, "contentPromoter")

        configuration: Dict[str, Any] = {
            constants.TOPIC_NAME: topic_name,
            constants.USE_SESSIONS: use_sessions,
        }
        if use_sessions:
            configuration[constants.SESSION_PROPERTY_NAME] = session_property

        publisher = MessagePublisher(
            name=constants.MESSAGE_PUBLISHER_NAME,
            description=f"Publishes the message to the '{topic_name}' topic",
            key=f"{key_prefix}:{constants.MESSAGE_PUBLISHER_LEAF_KEY}",
            rating=ConversionRating.FULL_CONVERSION,
            resource_map_key="messageAgent",
        )
        _stamp(publisher, "topicPublisher", configuration)
        publisher.add_output_channel(topic_channel.key)

        return [promoter, publisher]

    # =========================================================================
    # Interchange handling
    # =========================================================================

    def content_based_router(self, key_prefix: str) -> ContentBasedRouter:
        """Router that diverts interchanges to the interchange queue."""
        interchange_key = self.config.interchange_queue_channel_key
        self.require_channel(interchange_key)

        router = ContentBasedRouter(
            name=constants.CONTENT_BASED_ROUTER_NAME,
            description="Routes batched messages to the interchange queue",
            key=f"{key_prefix}:{constants.CONTENT_BASED_ROUTER_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
        )
        _stamp(router, "contentBasedRouter")
        router.add_output_channel(interchange_key)
        return router

    def interchange_aggregator(self, key_prefix: str, scenario_name: str) -> Aggregator:
        """Activating aggregator reading from the interchange queue."""
        interchange_key = self.config.interchange_queue_channel_key
        self.require_channel(interchange_key)

        aggregator = Aggregator(
            name=constants.INTERCHANGE_AGGREGATOR_NAME,
            description="Aggregates the messages of an interchange",
            key=f"{key_prefix}:{constants.INTERCHANGE_AGGREGATOR_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
            activator=True,
        )
        aggregator.properties[constants.SCENARIO_NAME] = scenario_name
        _stamp(aggregator, "interchangeAggregator")
        aggregator.add_input_channel(interchange_key)
        return aggregator

    def interchange_splitter(self, key_prefix: str) -> Splitter:
        splitter = Splitter(
            name=constants.INTERCHANGE_SPLITTER_NAME,
            description="Splits an aggregated interchange into messages",
            key=f"{key_prefix}:{constants.INTERCHANGE_SPLITTER_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
        )
        return _stamp(splitter, "interchangeSplitter")

    # =========================================================================
    # Maps
    # =========================================================================

    def map_translator(
        self,
        key_prefix: str,
        application: Application,
        maps: List[ResourceItem],
    ) -> MessageTranslator:
        """
        XML message translator applying the given maps.

        Each map's source message type comes from the single schema that
        references it; a map without exactly one is recorded and left out
        of the configuration but still referenced by key.
        """
        suspend_key = self.config.suspend_queue_channel_key
        self.require_channel(suspend_key)

        logger.debug(f"Creating map translator for {len(maps)} map(s)")
        translator = MessageTranslator(
            name=constants.MESSAGE_TRANSLATOR_NAME,
            description="Transforms the message using maps",
            key=f"{key_prefix}:{constants.XML_MESSAGE_TRANSLATOR_LEAF_KEY}",
            rating=ConversionRating.FULL_CONVERSION,
        )

        map_configurations: List[Dict[str, str]] = []
        for map_resource in maps:
            translator.map_key_refs.append(map_resource.key)
            schemas = self.registry.find_related_resources_by_type(
                map_resource, ResourceRelationshipType.REFERENCED_BY, ResourceType.MESSAGE_TYPE
            )
            if not schemas:
                self.context.record(MissingSourceConstruct(
                    f"Unable to find source schema referencing map '{map_resource.key}'",
                    object_key=map_resource.key,
                ), translator)
                continue
            if len(schemas) > 1:
                self.context.record(StructuralMismatch(
                    f"Map '{map_resource.key}' has {len(schemas)} source schemas, expected 1",
                    object_key=map_resource.key,
                ), translator)
                continue

            definition = schemas[0].source_object
            if not isinstance(definition, MessageDefinition):
                self.context.record(MissingSourceConstruct(
                    f"Schema '{schemas[0].key}' has no message definition",
                    object_key=schemas[0].key,
                ), translator)
                continue
            map_configurations.append({
                constants.MESSAGE_TYPE: definition.message_type,
                constants.MAP_NAME: f"{format_key(application.name)}.{format_key(map_resource.name)}",
            })

        _stamp(translator, "xmlMessageTranslator", {
            constants.MAPS: map_configurations,
            constants.ALLOW_UNRECOGNIZED_MESSAGES: True,
        })
        translator.add_output_channel(suspend_key)
        return translator

    # =========================================================================
    # Pipelines
    # =========================================================================

    def receive_pipeline(
        self,
        key_prefix: str,
        source_application: ResourceItem,
        pipeline_ref: PipelineRef,
        overrides: Optional[PipelineOverrides] = None,
    ) -> List[Intermediary]:
        return self._pipeline(
            key_prefix, source_application, ResourceType.RECEIVE_PIPELINE, pipeline_ref, overrides or {}
        )

    def send_pipeline(
        self,
        key_prefix: str,
        source_application: ResourceItem,
        pipeline_ref: PipelineRef,
        overrides: Optional[PipelineOverrides] = None,
    ) -> List[Intermediary]:
        return self._pipeline(
            key_prefix, source_application, ResourceType.SEND_PIPELINE, pipeline_ref, overrides or {}
        )

    def _pipeline(
        self,
        key_prefix: str,
        source_application: ResourceItem,
        pipeline_type: ResourceType,
        pipeline_ref: PipelineRef,
        overrides: PipelineOverrides,
    ) -> List[Intermediary]:
        pipeline = self._find_pipeline(source_application, pipeline_type, pipeline_ref.name)
        if pipeline is None:
            return self._default_pipeline(key_prefix, pipeline_ref, overrides)

        if not pipeline.stages:
            self.context.record(StructuralMismatch(f"Pipeline '{pipeline_ref.name}' has no stages"))
            return []

        intermediaries: List[Intermediary] = []
        count = 0
        for stage in pipeline.stages:
            for component in stage.components:
                logger.debug(f"Creating step for component '{component.component_name}' in '{pipeline_ref.name}'")
                intermediaries.extend(self.pipeline_component(key_prefix, component, overrides))
                count += 1

        logger.debug(f"Found {count} component(s) in pipeline '{pipeline_ref.name}'")
        return intermediaries

    def _find_pipeline(
        self,
        source_application: ResourceItem,
        pipeline_type: ResourceType,
        full_name: str,
    ) -> Optional[Pipeline]:
        for resource in self.registry.find_children(source_application, pipeline_type):
            if isinstance(resource.source_object, Pipeline) and resource.source_object.full_name == full_name:
                return resource.source_object
        return None

    def _default_pipeline(
        self,
        key_prefix: str,
        pipeline_ref: PipelineRef,
        overrides: PipelineOverrides,
    ) -> List[Intermediary]:
        if pipeline_ref.name in (constants.PASS_THRU_RECEIVE_PIPELINE, constants.PASS_THRU_TRANSMIT_PIPELINE):
            logger.debug(f"Pass-through pipeline '{pipeline_ref.name}' needs no steps")
            return []
        if pipeline_ref.name == constants.XML_RECEIVE_PIPELINE:
            return self.pipeline_component(key_prefix, XML_DISASSEMBLER_DEFAULTS, overrides)
        if pipeline_ref.name == constants.XML_TRANSMIT_PIPELINE:
            return self.pipeline_component(key_prefix, XML_ASSEMBLER_DEFAULTS, overrides)

        logger.warning(f"Skipping unknown default pipeline '{pipeline_ref.name}'")
        return []

    def pipeline_component(
        self,
        key_prefix: str,
        component: PipelineComponent,
        overrides: Optional[PipelineOverrides] = None,
    ) -> List[Intermediary]:
        """Steps representing one pipeline component."""
        overrides = overrides or {}
        handler = self._component_handlers.get(component.component_name)
        if handler is not None:
            return handler(key_prefix, component, overrides)

        known = GENERIC_COMPONENTS.get(component.component_name)
        if known is not None:
            intermediary = GenericFilter(
                name=component.component_name,
                description=component.description,
                key=f"{key_prefix}:{known.key_leaf}",
                rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
                component=known.component,
            )
            step = known.scenario_step
        else:
            # Custom component
            intermediary = GenericFilter(
                name=component.component_name,
                description=component.description,
                key=f"{key_prefix}:{format_key(component.component_name)}",
                rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
                component=component.component_name,
            )
            step = component.component_name

        intermediary.component_properties.update(self.component_properties(component, overrides))
        return [_stamp(intermediary, step)]

    @staticmethod
    def component_properties(component: PipelineComponent, overrides: PipelineOverrides) -> Dict[str, Any]:
        """Component defaults with the binding's per-port values applied."""
        overridden: Dict[str, Any] = {}
        for name, values in overrides.items():
            if name and name in component.name:
                overridden = values or {}
                break
        return {
            name: overridden.get(name, default)
            for name, default in component.properties.items()
        }

    def _message_types(self, spec_names: Any, component: PipelineComponent) -> List[str]:
        """Message types of the '|' separated schema names."""
        if not spec_names:
            return []
        definitions = {
            r.source_object.full_name: r.source_object.message_type
            for r in self.registry.find_resources_by_type(ResourceType.MESSAGE_TYPE)
            if isinstance(r.source_object, MessageDefinition)
        }
        message_types = []
        for name in (n.strip() for n in str(spec_names).split("|")):
            if not name:
                continue
            if name in definitions:
                message_types.append(definitions[name])
            else:
                logger.warning(f"Schema '{name}' referenced by component '{component.component_name}' is missing")
        return message_types

    def _add_message_types(
        self,
        configuration: Dict[str, Any],
        properties: Dict[str, Any],
        component: PipelineComponent,
    ) -> None:
        message_types = self._message_types(properties.get("DocumentSpecNames"), component)
        if message_types:
            configuration[constants.MESSAGE_TYPES] = message_types
        envelope_types = self._message_types(
            properties.get("EnvelopeDocSpecNames") or properties.get("EnvelopeSpecNames"), component
        )
        if envelope_types:
            configuration[constants.ENVELOPE_MESSAGE_TYPES] = envelope_types

    def _xml_disassembler(
        self,
        key_prefix: str,
        component: PipelineComponent,
        overrides: PipelineOverrides,
    ) -> List[Intermediary]:
        suspend_key = self.config.suspend_queue_channel_key
        self.require_channel(suspend_key)

        properties = self.component_properties(component, overrides)
        allow_unrecognized = _as_bool(properties.get("AllowUnrecognizedMessage"), False)
        validate_document = _as_bool(properties.get("ValidateDocument"), False)
        recoverable = _as_bool(properties.get("RecoverableInterchangeProcessing"), False)

        processor = GenericFilter(
            name=component.component_name,
            description="Disassembles and identifies XML messages",
            key=f"{key_prefix}:{constants.XML_MESSAGE_PROCESSOR_LEAF_KEY}",
            rating=ConversionRating.PARTIAL_CONVERSION,
            component="Microsoft.BizTalk.Component.XmlDasmComp",
        )
        processor.component_properties.update(properties)

        configuration: Dict[str, Any] = {
            constants.ALLOW_UNRECOGNIZED_MESSAGES: allow_unrecognized,
            constants.VALIDATE_DOCUMENT: validate_document,
            constants.RECOVERABLE_INTERCHANGE_PROCESSING: recoverable,
        }
        self._add_message_types(configuration, properties, component)
        _stamp(processor, "xmlMessageProcessor", configuration)
        # Envelope schemas mean interchanges can arrive
        processor.properties[constants.HANDLE_BATCHES] = bool(properties.get("EnvelopeSpecNames"))
        processor.add_output_channel(suspend_key)
        steps: List[Intermediary] = [processor]

        if allow_unrecognized:
            message_filter = MessageFilter(
                name=constants.XML_MESSAGE_FILTER_NAME,
                description="Filters out unrecognized XML messages",
                key=f"{key_prefix}:{constants.XML_MESSAGE_FILTER_LEAF_KEY}",
                rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
            )
            _stamp(message_filter, "xmlMessageFilter")
            message_filter.add_output_channel(suspend_key)
            steps.append(message_filter)

        if validate_document:
            steps.append(self._xml_validator(key_prefix, component, overrides))

        return steps

    def _xml_assembler(
        self,
        key_prefix: str,
        component: PipelineComponent,
        overrides: PipelineOverrides,
    ) -> List[Intermediary]:
        suspend_key = self.config.suspend_queue_channel_key
        self.require_channel(suspend_key)

        properties = self.component_properties(component, overrides)
        wrapper = EnvelopeWrapper(
            name=component.component_name,
            description="Assembles XML messages into an envelope",
            key=f"{key_prefix}:{constants.XML_ENVELOPE_WRAPPER_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
        )
        configuration: Dict[str, Any] = {
            constants.ADD_XML_DECLARATION: _as_bool(properties.get("AddXmlDeclaration"), True),
            constants.PRESERVE_BOM: _as_bool(properties.get("PreserveBom"), True),
            constants.XML_ASM_PROCESSING_INSTRUCTIONS: properties.get("XmlAsmProcessingInstructions"),
            constants.PROCESSING_INSTRUCTIONS_OPTIONS: _as_int(properties.get("ProcessingInstructionsOptions")),
            constants.PROCESSING_INSTRUCTIONS_SCOPE: _as_int(properties.get("ProcessingInstructionsScope")),
            constants.TARGET_CHARSET: properties.get("TargetCharset"),
            constants.TARGET_CODE_PAGE: _as_int(properties.get("TargetCodePage")),
            constants.ALLOW_UNRECOGNIZED_MESSAGES: False,
        }
        self._add_message_types(configuration, properties, component)
        _stamp(wrapper, "xmlEnvelopeWrapper", configuration)
        # Envelope schemas mean messages are batched into interchanges
        wrapper.properties[constants.HANDLE_BATCHES] = bool(properties.get("EnvelopeDocSpecNames"))
        wrapper.add_output_channel(suspend_key)

        demoter = ContentDemoter(
            name=constants.CONTENT_DEMOTER_NAME,
            description="Demotes routing properties into message content",
            key=f"{key_prefix}:{constants.CONTENT_DEMOTER_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
        )
        _stamp(demoter, "contentDemoter")
        demoter.add_output_channel(suspend_key)

        return [wrapper, demoter]

    def _xml_validator(
        self,
        key_prefix: str,
        component: PipelineComponent,
        overrides: PipelineOverrides,
    ) -> GenericFilter:
        suspend_key = self.config.suspend_queue_channel_key
        self.require_channel(suspend_key)

        validator = GenericFilter(
            name=constants.XML_VALIDATOR_NAME,
            description="Validates XML messages against their schema",
            key=f"{key_prefix}:{constants.XML_VALIDATOR_LEAF_KEY}",
            rating=ConversionRating.FULL_CONVERSION,
        )
        configuration: Dict[str, Any] = {constants.ALLOW_UNRECOGNIZED_MESSAGES: True}
        properties = self.component_properties(component, overrides)
        message_types = self._message_types(properties.get("DocumentSpecName"), component)
        if message_types:
            configuration[constants.MESSAGE_TYPES] = message_types
        _stamp(validator, "xmlValidator", configuration)
        validator.add_output_channel(suspend_key)
        return validator
