"""
Send Port Analyzer — builds the routes of every send port.

A send port becomes a message subscriber on the message box, an optional
map, the transmit pipeline steps and a send adapter endpoint. The
subscription filter is translated from the port's filter groups. Two-way
ports also get a response route from the endpoint back to the message box.
"""

import logging
from typing import List, Optional

from .. import constants
from ..constants import ResourceType
from ..errors import AnalysisError, MissingSourceConstruct, UnsupportedConstruct
from ..source.models import ResourceItem, SendPort
from ..target.models import (
    AdapterEndpoint,
    Application,
    ConversionRating,
    FilterGroup,
    FilterGroupOperation,
    MessageExchangePattern,
    MessageSubscriber,
    MessagingObject,
    format_key,
    format_resource_map_key,
)
from ..workflow.filters import render_statement
from .base import AnalyzerBase


logger = logging.getLogger(__name__)


class SendPortAnalyzer(AnalyzerBase):
    """One scenario per send port."""

    name = "send port analyzer"

    def analyze_application(self, source_application: ResourceItem, target_application: Application) -> int:
        logger.debug(f"Analyzing send ports in application '{source_application.name}'")

        scenarios = 0
        for port_resource in self.registry.find_children(source_application, ResourceType.SEND_PORT):
            port = port_resource.source_object
            if not isinstance(port, SendPort):
                self.context.record(MissingSourceConstruct(
                    f"Send port resource '{port_resource.key}' has no send port definition",
                    object_key=port_resource.key,
                ))
                continue

            try:
                if self.analyze_port(source_application, target_application, port_resource, port):
                    scenarios += 1
            except AnalysisError as e:
                self.context.record(e)

        return scenarios

    def analyze_port(
        self,
        source_application: ResourceItem,
        target_application: Application,
        port_resource: ResourceItem,
        port: SendPort,
    ) -> bool:
        """
        Build the routes of one send port.

        Returns:
            False when the port was skipped.

        Raises:
            MissingSourceConstruct: A static port has no primary transport.
            MissingTargetReference: A shared channel is missing.
        """
        if port.transmit_pipeline is None:
            self.context.record(MissingSourceConstruct(
                f"Send port '{port.name}' has no transmit pipeline",
                object_key=port_resource.key,
            ))
            return False

        app_name = source_application.name
        prefix = self.key_prefix(app_name, port.name)
        logger.debug(f"Building send route '{prefix}'")

        subscriber = self.message_subscriber(prefix, app_name, port)

        route: List[MessagingObject] = [subscriber]
        if port.transforms:
            maps = self.find_maps(port_resource, port.transforms)
            route.append(self.factory.map_translator(prefix, target_application, maps))
        route.extend(self.factory.send_pipeline(
            prefix, source_application, port.transmit_pipeline, port.transmit_pipeline_configuration
        ))
        endpoint = self.send_endpoint(prefix, app_name, port)
        route.append(endpoint)

        batches = self.handles_batches(route)

        bound = self.route_binder.bind_send_route(prefix, target_application, route)
        self.route_binder.bind_activated_channels(
            prefix, self.config.message_box_channel_key, target_application, bound
        )

        if batches:
            self.interchange_route(prefix, source_application, target_application, port)
        if port.is_two_way:
            self.response_route(prefix, source_application, target_application, port_resource, port, endpoint)

        return True

    # =========================================================================
    # Steps
    # =========================================================================

    def message_subscriber(self, key_prefix: str, app_name: str, port: SendPort) -> MessageSubscriber:
        """Activating subscriber on the message box carrying the port's filter."""
        port_id = f"{format_key(app_name)}.{format_key(port.name)}"

        subscriber = MessageSubscriber(
            name=port.name,
            description=f"Subscribes to messages for send port '{port.name}'",
            key=f"{key_prefix}:{constants.MESSAGE_SUBSCRIBER_LEAF_KEY}",
            rating=ConversionRating.FULL_CONVERSION,
            resource_map_key=f"topicSubscriber{format_resource_map_key(app_name, port.name)}",
            activator=True,
            is_durable=True,
        )
        subscriber.properties[constants.SCENARIO_NAME] = port_id
        subscriber.properties[constants.SCENARIO_STEP_NAME] = "messageSubscriber"
        subscriber.properties[constants.CONFIGURATION_ENTRY] = {
            constants.BTS_SP_NAME: port.name,
            constants.BTS_SP_ID: port_id,
            constants.BTS_ACK_SEND_PORT_NAME: port.name,
            constants.BTS_ACK_SEND_PORT_ID: port_id,
        }
        subscriber.properties[constants.ROUTING_PROPERTIES] = {
            constants.BTS_ACK_SEND_PORT_NAME: format_key(port.name),
        }

        group = self.subscription_group(port_id, port, subscriber)
        topic_channel, subscription = self.subscribe(
            self.config.message_box_channel_key, format_key(port.name), group
        )
        subscriber.topic_subscriptions[topic_channel.topic_name] = subscription.name
        return subscriber

    def subscription_group(
        self,
        port_id: str,
        port: SendPort,
        subscriber: Optional[MessagingObject] = None,
    ) -> FilterGroup:
        """
        Translate the port's filter into an OR group of AND groups.

        The default expression matches messages addressed to the port's
        transport. Every source filter group adds one AND group; statements
        with an unsupported operator are recorded and left out.
        """
        transport_id = port_id
        if port.is_static and port.primary_transport is not None:
            transport_id = f"{port_id}.{port.primary_transport.transport_type}"
        default_expression = f"{constants.BTS_SP_TRANSPORT_ID} = '{transport_id}'"

        if not port.filter_groups:
            return FilterGroup.or_group(default_expression)

        group = FilterGroup(operation=FilterGroupOperation.OR)
        group.groups.append(FilterGroup.and_group(default_expression))
        for statement_group in port.filter_groups:
            and_group = FilterGroup(operation=FilterGroupOperation.AND)
            for statement in statement_group.statements:
                try:
                    and_group.add_filter(render_statement(statement.property, statement.operator, statement.value))
                except UnsupportedConstruct as e:
                    self.context.record(e, subscriber)
            if not and_group.is_empty():
                group.groups.append(and_group)
        return group

    def send_endpoint(self, key_prefix: str, app_name: str, port: SendPort) -> AdapterEndpoint:
        if port.primary_transport is not None and port.primary_transport.transport_type:
            adapter = port.primary_transport.transport_type
        elif not port.is_static:
            adapter = self.config.dynamic_send_default_protocol
        else:
            raise MissingSourceConstruct(
                f"Static send port '{port.name}' has no primary transport",
                object_key=key_prefix,
            )

        endpoint = AdapterEndpoint(
            name=port.name,
            description=port.description,
            key=f"{key_prefix}:{constants.ADAPTER_ENDPOINT_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
            resource_map_key=f"sendAdapter{format_resource_map_key(app_name, port.name)}",
            adapter_name=adapter,
            activator=False,
            message_exchange_pattern=(
                MessageExchangePattern.REQUEST_REPLY if port.is_two_way else MessageExchangePattern.SEND
            ),
        )

        routing_properties = {
            constants.BTS_SP_NAME: constants.BTS_SP_NAME,
            constants.BTS_SP_ID: constants.BTS_SP_ID,
        }
        if port.is_two_way:
            routing_properties.update({name: name for name in constants.SEND_ACK_ROUTING_PROPERTIES})

        endpoint.properties[constants.SCENARIO_STEP_NAME] = f"{adapter.lower()}SendAdapter"
        endpoint.properties[constants.CONFIGURATION_ENTRY] = {constants.IS_TWO_WAY: port.is_two_way}
        endpoint.properties[constants.ROUTING_PROPERTIES] = routing_properties
        return endpoint

    # =========================================================================
    # Secondary routes
    # =========================================================================

    def interchange_route(
        self,
        key_prefix: str,
        source_application: ResourceItem,
        target_application: Application,
        port: SendPort,
    ) -> List[MessagingObject]:
        """Aggregator fed by the interchange queue, the send pipeline and a second endpoint."""
        prefix = f"{key_prefix}:Interchange"
        app_name = source_application.name
        scenario_name = ".".join([
            format_key(app_name), format_key(port.name), constants.INTERCHANGE_AGGREGATOR_LEAF_KEY
        ])

        route: List[MessagingObject] = [self.factory.interchange_aggregator(prefix, scenario_name)]
        route.extend(self.factory.send_pipeline(
            prefix, source_application, port.transmit_pipeline, port.transmit_pipeline_configuration
        ))
        route.append(self.send_endpoint(prefix, app_name, port))

        bound = self.route_binder.bind_send_route(prefix, target_application, route)
        self.route_binder.bind_activated_channels(
            prefix, self.config.interchange_queue_channel_key, target_application, bound
        )
        return bound

    def response_route(
        self,
        key_prefix: str,
        source_application: ResourceItem,
        target_application: Application,
        port_resource: ResourceItem,
        port: SendPort,
        endpoint: AdapterEndpoint,
    ) -> List[MessagingObject]:
        """Endpoint response through the receive pipeline and map back to the message box."""
        prefix = f"{key_prefix}:Response"
        app_name = source_application.name

        endpoint.properties[constants.SCENARIO_NAME] = f"{format_key(app_name)}.{format_key(port.name)}.Response"

        route: List[MessagingObject] = [endpoint]
        if port.receive_pipeline is not None:
            route.extend(self.factory.receive_pipeline(
                prefix, source_application, port.receive_pipeline, port.receive_pipeline_configuration
            ))
        if port.inbound_transforms:
            maps = self.find_maps(port_resource, port.inbound_transforms)
            route.append(self.factory.map_translator(prefix, target_application, maps))
        route.extend(self.factory.message_agents(prefix, self.config.message_box_channel_key))

        bound = self.route_binder.bind_response_route(prefix, target_application, route)
        self.route_binder.bind_channels(prefix, target_application, bound, response=True)
        return bound
