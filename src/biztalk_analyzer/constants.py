"""
Shared names used across the analyzer.

Leaf keys form the last segment of target model keys, property names are
the keys written into messaging object property maps and routing slip
configuration, and resource types tag source resources in the registry.
"""

from enum import Enum


# =============================================================================
# Resource types
# =============================================================================

class ResourceType(str, Enum):
    """Type tag of a source resource."""
    APPLICATION = "application"
    METAMODEL = "metamodel"
    MODULE = "module"
    MULTIPART_MESSAGE_TYPE = "multipartmessagetype"
    PORT_TYPE = "porttype"
    SERVICE_LINK_TYPE = "servicelinktype"
    CORRELATION_TYPE = "correlationtype"
    MESSAGE_TYPE = "messagetype"
    RECEIVE_PORT = "receiveport"
    RECEIVE_LOCATION = "receivelocation"
    SEND_PORT = "sendport"
    SEND_PORT_GROUP = "sendportgroup"
    RECEIVE_PIPELINE = "receivepipeline"
    SEND_PIPELINE = "sendpipeline"
    SERVICE_BINDING = "servicebinding"
    MAP = "map"


# =============================================================================
# Leaf keys
# =============================================================================

MESSAGE_BUS_LEAF_KEY = "MessageBus"
SYSTEM_APPLICATION_LEAF_KEY = "SystemApplication"
MESSAGE_BOX_LEAF_KEY = "MessageBox"
MESSAGE_BOX_RESPONSE_LEAF_KEY = "MessageBoxResponse"
SUSPEND_QUEUE_LEAF_KEY = "SuspendQueue"
INTERCHANGE_QUEUE_LEAF_KEY = "InterchangeQueue"

TRIGGER_CHANNEL_LEAF_KEY = "TriggerChannel"
TRIGGER_CHANNEL_RESPONSE_LEAF_KEY = "TriggerChannelResponse"
ROUTING_SLIP_ROUTER_LEAF_KEY = "RoutingSlipRouter"
ADAPTER_ENDPOINT_LEAF_KEY = "AdapterEndpoint"
CONTENT_PROMOTER_LEAF_KEY = "ContentPromoter"
CONTENT_DEMOTER_LEAF_KEY = "ContentDemoter"
MESSAGE_PUBLISHER_LEAF_KEY = "MessagePublisher"
MESSAGE_SUBSCRIBER_LEAF_KEY = "MessageSubscriber"
XML_MESSAGE_TRANSLATOR_LEAF_KEY = "XmlMessageTranslator"
XML_MESSAGE_PROCESSOR_LEAF_KEY = "XmlMessageProcessor"
XML_ENVELOPE_WRAPPER_LEAF_KEY = "XmlEnvelopeWrapper"
XML_MESSAGE_FILTER_LEAF_KEY = "XmlMessageFilter"
XML_VALIDATOR_LEAF_KEY = "XmlValidator"
CONTENT_BASED_ROUTER_LEAF_KEY = "ContentBasedRouter"
INTERCHANGE_AGGREGATOR_LEAF_KEY = "InterchangeAggregator"
INTERCHANGE_SPLITTER_LEAF_KEY = "InterchangeSplitter"


# =============================================================================
# Messaging object property names
# =============================================================================

SCENARIO_NAME = "scenario"
SCENARIO_STEP_NAME = "scenarioStep"
CONFIGURATION_ENTRY = "configuration"
ROUTING_PROPERTIES = "routingProperties"
MESSAGE_PROPERTIES = "messageProperties"
REQUEST_MESSAGE_PROPERTIES = "requestMessageProperties"
HANDLE_BATCHES = "handleBatches"
ROUTE_LABEL = "routeLabel"
TYPE_NAME = "typeName"
MESSAGE_ID = "messageId"
CORRELATION_ID = "correlationId"
TOPIC_NAME = "topicName"
FAILED_MESSAGE_ROUTING = "failedMessageRouting"
RESPONSE_SUBSCRIPTION = "responseSubscription"
RESPONSE_TIMEOUT = "responseTimeoutInMinutes"
IS_TWO_WAY = "isTwoWay"
USE_SESSIONS = "useSessions"
SESSION_PROPERTY_NAME = "sessionPropertyName"
SOURCE_APPLICATION_RESOURCE_KEY = "sourceApplicationResourceKey"
ALLOW_UNRECOGNIZED_MESSAGES = "allowUnrecognizedMessages"

ROUTE_FROM_LABEL = "RouteFrom"
ROUTE_TO_LABEL = "RouteTo"


# =============================================================================
# BizTalk context property names
# =============================================================================

BTS_MESSAGE_TYPE = "btsMessageType"
BTS_RECEIVE_PORT_NAME = "btsReceivePortName"
BTS_RECEIVE_PORT_ID = "btsReceivePortId"
BTS_INBOUND_TRANSPORT_TYPE = "btsInboundTransportType"
BTS_INBOUND_TRANSPORT_LOCATION = "btsInboundTransportLocation"
BTS_SP_NAME = "btsSpName"
BTS_SP_ID = "btsSpId"
BTS_SP_GROUP_ID = "btsSpGroupId"
BTS_SP_TRANSPORT_ID = "btsSpTransportId"
BTS_SP_TRANSPORT_BACKUP_ID = "btsSpTransportBackupId"
BTS_OUTBOUND_TRANSPORT_LOCATION = "btsOutboundTransportLocation"
BTS_OUTBOUND_TRANSPORT_TYPE = "btsOutboundTransportType"
BTS_ACK_RECEIVE_PORT_NAME = "btsAckReceivePortName"
BTS_ACK_RECEIVE_PORT_ID = "btsAckReceivePortId"
BTS_ACK_SEND_PORT_NAME = "btsAckSendPortName"
BTS_ACK_SEND_PORT_ID = "btsAckSendPortId"
BTS_ACK_INBOUND_TRANSPORT_LOCATION = "btsAckInboundTransportLocation"
BTS_ACK_OUTBOUND_TRANSPORT_LOCATION = "btsAckOutboundTransportLocation"
BTS_ACK_FAILURE_CATEGORY = "btsAckFailureCategory"
BTS_ACK_FAILURE_CODE = "btsAckFailureCode"
BTS_ACK_ID = "btsAckId"
BTS_ACK_TYPE = "btsAckType"

# Two-way send adapters carry the acknowledgement context back to the caller.
SEND_ACK_ROUTING_PROPERTIES = (
    BTS_ACK_RECEIVE_PORT_NAME,
    BTS_ACK_RECEIVE_PORT_ID,
    BTS_ACK_SEND_PORT_NAME,
    BTS_ACK_SEND_PORT_ID,
    BTS_ACK_INBOUND_TRANSPORT_LOCATION,
    BTS_ACK_OUTBOUND_TRANSPORT_LOCATION,
    BTS_ACK_FAILURE_CATEGORY,
    BTS_ACK_FAILURE_CODE,
    BTS_ACK_ID,
    BTS_ACK_TYPE,
)


# =============================================================================
# Default pipelines
# =============================================================================

PASS_THRU_RECEIVE_PIPELINE = "Microsoft.BizTalk.DefaultPipelines.PassThruReceive"
PASS_THRU_TRANSMIT_PIPELINE = "Microsoft.BizTalk.DefaultPipelines.PassThruTransmit"
XML_RECEIVE_PIPELINE = "Microsoft.BizTalk.DefaultPipelines.XMLReceive"
XML_TRANSMIT_PIPELINE = "Microsoft.BizTalk.DefaultPipelines.XMLTransmit"

XML_DISASSEMBLER_COMPONENT = "XML disassembler"
XML_ASSEMBLER_COMPONENT = "XML assembler"
XML_VALIDATOR_COMPONENT = "XML validator"

FLAT_FILE_DISASSEMBLER_COMPONENT = "Flat file disassembler"
FLAT_FILE_ASSEMBLER_COMPONENT = "Flat file assembler"
BTF_DISASSEMBLER_COMPONENT = "BizTalk Framework disassembler"
BTF_ASSEMBLER_COMPONENT = "BizTalk Framework assembler"
MIME_DECODER_COMPONENT = "MIME/SMIME decoder"
MIME_ENCODER_COMPONENT = "MIME/SMIME encoder"
PARTY_RESOLUTION_COMPONENT = "Party resolution"


# =============================================================================
# Pipeline component configuration names
# =============================================================================

MESSAGE_TYPES = "messageTypes"
ENVELOPE_MESSAGE_TYPES = "envelopeMessageTypes"
VALIDATE_DOCUMENT = "validateDocument"
RECOVERABLE_INTERCHANGE_PROCESSING = "recoverableInterchangeProcessing"
ADD_XML_DECLARATION = "addXmlDeclaration"
PRESERVE_BOM = "preserveBom"
XML_ASM_PROCESSING_INSTRUCTIONS = "xmlAsmProcessingInstructions"
PROCESSING_INSTRUCTIONS_OPTIONS = "processingInstructionsOptions"
PROCESSING_INSTRUCTIONS_SCOPE = "processingInstructionsScope"
TARGET_CHARSET = "targetCharset"
TARGET_CODE_PAGE = "targetCodePage"
MAPS = "maps"
MAP_NAME = "mapName"
MESSAGE_TYPE = "messageType"


# =============================================================================
# Display names
# =============================================================================

ROUTING_SLIP_ROUTER_NAME = "Routing Slip Router"
TRIGGER_CHANNEL_NAME = "Trigger Channel"
CONTENT_PROMOTER_NAME = "Content Promoter"
CONTENT_DEMOTER_NAME = "Content Demoter"
CONTENT_BASED_ROUTER_NAME = "Content Based Router"
MESSAGE_PUBLISHER_NAME = "Message Publisher"
MESSAGE_TRANSLATOR_NAME = "XML Message Translator"
XML_MESSAGE_PROCESSOR_NAME = "XML Message Processor"
XML_MESSAGE_FILTER_NAME = "XML Message Filter"
XML_ENVELOPE_WRAPPER_NAME = "XML Envelope Wrapper"
XML_VALIDATOR_NAME = "XML Validator"
INTERCHANGE_AGGREGATOR_NAME = "Interchange Aggregator"
INTERCHANGE_SPLITTER_NAME = "Interchange Splitter"
