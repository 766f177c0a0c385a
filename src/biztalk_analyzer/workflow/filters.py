"""
Subscription filter rendering.

Turns orchestration DNF predicates and send port filter statements into the
literal filter expressions used on topic subscriptions.
"""

from typing import Dict, List, Optional

from ..errors import UnsupportedConstruct
from ..source.models import Element


# BizTalk context properties and their routing property names.
FILTER_PROPERTY_MAP: Dict[str, str] = {
    "BTS.AckFailureCategory": "btsAckFailureCategory",
    "BTS.AckFailureCode": "btsAckFailureCode",
    "BTS.AckID": "btsAckId",
    "BTS.AckInboundTransportLocation": "btsAckInboundTransportLocation",
    "BTS.AckOutboundTransportLocation": "btsAckOutboundTransportLocation",
    "BTS.AckOwnerID": "btsAckOwnerId",
    "BTS.AckReceivePortID": "btsAckReceivePortId",
    "BTS.AckReceivePortName": "btsAckReceivePortName",
    "BTS.AckSendPortID": "btsAckSendPortId",
    "BTS.AckSendPortName": "btsAckSendPortName",
    "BTS.AckType": "btsAckType",
    "BTS.AckDescription": "btsAckDescription",
    "BTS.ActionOnFailure": "btsActionOnFailure",
    "BTS.CorrelationToken": "btsCorrelationToken",
    "BTS.InboundTransportLocation": "btsInboundTransportLocation",
    "BTS.InboundTransportType": "btsInboundTransportType",
    "BTS.InterchangeID": "btsInterchangeId",
    "BTS.InterchangeSequenceNumber": "btsInterchangeSequenceNumber",
    "BTS.IsDynamicSend": "btsIsDynamicSend",
    "BTS.Loopback": "btsLoopback",
    "BTS.MessageDestination": "btsMessageDestination",
    "BTS.MessageType": "btsMessageType",
    "BTS.Operation": "btsOperation",
    "BTS.OutboundTransportLocation": "btsOutboundTransportLocation",
    "BTS.OutboundTransportType": "btsOutboundTransportType",
    "BTS.PropertiesToUpdate": "btsPropertiesToUpdate",
    "BTS.ReceivePipelineID": "btsReceivePipelineId",
    "BTS.ReceivePortID": "btsReceivePortId",
    "BTS.ReceivePortName": "btsReceivePortName",
    "BTS.SignatureCertificate": "btsSignatureCertificate",
    "BTS.SourcePartyID": "btsSourcePartyId",
    "BTS.SPGroupID": "btsSpGroupId",
    "BTS.SPID": "btsSpId",
    "BTS.SPName": "btsSpName",
    "BTS.SPTransportBackupID": "btsSpTransportBackupId",
    "BTS.SPTransportID": "btsSpTransportId",
    "BTS.SSOTicket": "btsSsoTicket",
    "BTS.SuspendAsNonResumable": "btsSuspendAsNonResumable",
    "BTS.SuspendMessageOnRoutingFailure": "btsSuspendMessageOnRoutingFailure",
    "BTS.WindowsUser": "btsWindowsUser",
}

# DNF predicate operators from the orchestration metamodel.
PREDICATE_OPERATORS: Dict[str, str] = {
    "Equals": "=",
    "LessThan": "<",
    "LessThanEqualTo": "<=",
    "GreaterThan": ">",
    "GreaterThanEqualTo": ">=",
    "NotEquals": "!=",
    "Exists": "EXISTS",
}

# Numeric operator codes used in send port filters.
STATEMENT_OPERATORS: Dict[int, str] = {
    0: "=",
    1: "<",
    2: "<=",
    3: ">",
    4: ">=",
    5: "!=",
    6: "EXISTS",
}


def map_filter_property(name: str) -> str:
    """Routing property name for a context property; unmapped names lose their dots."""
    return FILTER_PROPERTY_MAP.get(name, name).replace(".", "")


def render_expression(lhs: str, operator: str, rhs: Optional[str]) -> str:
    """Render one comparison, e.g. "Foo = 'Bar'" or "EXISTS ( Foo )"."""
    if operator == "EXISTS":
        return f"EXISTS ( {lhs} )"
    return f"{lhs} {operator} '{rhs or ''}'"


def render_predicate(lhs: str, operator: str, rhs: Optional[str]) -> str:
    """
    Render a DNF predicate comparison.

    Args:
        lhs: Context property name (mapped through FILTER_PROPERTY_MAP).
        operator: Metamodel operator name, e.g. 'Equals'.
        rhs: Literal value; surrounding double quotes are stripped.

    Raises:
        UnsupportedConstruct: For an operator with no textual form.
    """
    symbol = PREDICATE_OPERATORS.get(operator)
    if symbol is None:
        raise UnsupportedConstruct(f"Subscription filter operator '{operator}' is not supported")
    value = rhs.replace('"', "") if rhs is not None else None
    return render_expression(map_filter_property(lhs), symbol, value)


def render_statement(property_name: str, operator: int, value: Optional[str]) -> str:
    """
    Render a send port filter statement.

    Raises:
        UnsupportedConstruct: For an operator code outside 0-6.
    """
    symbol = STATEMENT_OPERATORS.get(operator)
    if symbol is None:
        raise UnsupportedConstruct(f"Subscription filter operator '{operator}' is not supported")
    return render_expression(map_filter_property(property_name), symbol, value)


def split_dnf_groups(predicates: List[Element]) -> List[List[Element]]:
    """
    Split an ordered predicate list into AND-groups.

    A predicate whose Grouping is 'OR' closes the group it belongs to.
    """
    groups: List[List[Element]] = []
    current: List[Element] = []
    for predicate in predicates:
        current.append(predicate)
        if predicate.find_property_value("Grouping") == "OR":
            groups.append(current)
            current = []
    if current:
        groups.append(current)
    return groups
