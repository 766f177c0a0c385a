"""
Receive Port Analyzer — builds the routes of every receive location.

A receive location becomes an activating adapter endpoint followed by the
receive pipeline steps, an optional map, an optional content-based router
for interchanges and the agents publishing to the message box. Two-way
ports also get a response route from the message box back to the
endpoint.
"""

import logging
from typing import List

from .. import constants
from ..constants import ResourceType
from ..errors import AnalysisError, MissingSourceConstruct
from ..source.models import ReceiveLocation, ReceivePort, ResourceItem
from ..target.models import (
    AdapterEndpoint,
    Application,
    ConversionRating,
    FilterGroup,
    MessageExchangePattern,
    MessageSubscriber,
    MessagingObject,
    format_key,
    format_resource_map_key,
)
from .base import AnalyzerBase


logger = logging.getLogger(__name__)


class ReceivePortAnalyzer(AnalyzerBase):
    """One scenario per receive location."""

    name = "receive port analyzer"

    def analyze_application(self, source_application: ResourceItem, target_application: Application) -> int:
        logger.debug(f"Analyzing receive ports in application '{source_application.name}'")

        scenarios = 0
        for port_resource in self.registry.find_children(source_application, ResourceType.RECEIVE_PORT):
            port = port_resource.source_object
            if not isinstance(port, ReceivePort):
                self.context.record(MissingSourceConstruct(
                    f"Receive port resource '{port_resource.key}' has no receive port definition",
                    object_key=port_resource.key,
                ))
                continue

            for location_resource in self.registry.find_children(port_resource, ResourceType.RECEIVE_LOCATION):
                location = location_resource.source_object
                if not isinstance(location, ReceiveLocation):
                    self.context.record(MissingSourceConstruct(
                        f"Receive location resource '{location_resource.key}' has no location definition",
                        object_key=location_resource.key,
                    ))
                    continue

                try:
                    if self.analyze_location(source_application, target_application, port_resource, port, location):
                        scenarios += 1
                except AnalysisError as e:
                    self.context.record(e)

        return scenarios

    def analyze_location(
        self,
        source_application: ResourceItem,
        target_application: Application,
        port_resource: ResourceItem,
        port: ReceivePort,
        location: ReceiveLocation,
    ) -> bool:
        """
        Build the routes of one receive location.

        Returns:
            False when the location was skipped.

        Raises:
            MissingTargetReference: A shared channel is missing.
        """
        if location.receive_pipeline is None:
            self.context.record(MissingSourceConstruct(
                f"Receive location '{location.name}' on port '{port.name}' has no receive pipeline",
                object_key=f"{port_resource.key}:{location.name}",
            ))
            return False

        app_name = source_application.name
        prefix = self.key_prefix(app_name, port.name, location.name)
        logger.debug(f"Building receive route '{prefix}'")

        endpoint = self.receive_endpoint(prefix, app_name, port, location)

        route: List[MessagingObject] = [endpoint]
        route.extend(self.factory.receive_pipeline(
            prefix, source_application, location.receive_pipeline, location.receive_pipeline_configuration
        ))
        if port.transforms:
            maps = self.find_maps(port_resource, port.transforms)
            route.append(self.factory.map_translator(prefix, target_application, maps))

        batches = self.handles_batches(route)
        if batches:
            route.append(self.factory.content_based_router(prefix))
        route.extend(self.factory.message_agents(prefix, self.config.message_box_channel_key))

        bound = self.route_binder.bind_route(prefix, target_application, route)
        self.route_binder.bind_channels(prefix, target_application, bound)

        if batches:
            self.interchange_route(prefix, target_application, app_name, port, location)
        if port.is_two_way:
            self.response_route(prefix, source_application, target_application, port, location)

        return True

    # =========================================================================
    # Steps
    # =========================================================================

    def receive_endpoint(
        self,
        key_prefix: str,
        app_name: str,
        port: ReceivePort,
        location: ReceiveLocation,
    ) -> AdapterEndpoint:
        port_id = f"{format_key(app_name)}.{format_key(port.name)}"
        transport = location.transport_type or "Unknown"

        endpoint = AdapterEndpoint(
            name=location.name,
            description=location.description,
            key=f"{key_prefix}:{constants.ADAPTER_ENDPOINT_LEAF_KEY}",
            rating=ConversionRating.NO_AUTOMATIC_CONVERSION,
            resource_map_key=f"receiveAdapter{format_resource_map_key(app_name, port.name, location.name)}",
            adapter_name=transport,
            activator=True,
            message_exchange_pattern=(
                MessageExchangePattern.RECEIVE_RESPONSE if port.is_two_way else MessageExchangePattern.RECEIVE
            ),
        )

        configuration = {
            constants.IS_TWO_WAY: port.is_two_way,
            constants.BTS_RECEIVE_PORT_NAME: port.name,
            constants.BTS_RECEIVE_PORT_ID: port_id,
            constants.BTS_INBOUND_TRANSPORT_TYPE: transport,
            constants.BTS_INBOUND_TRANSPORT_LOCATION: location.address,
            constants.FAILED_MESSAGE_ROUTING: True,
        }
        if port.is_two_way:
            configuration[constants.RESPONSE_TIMEOUT] = self.config.response_timeout_minutes

        endpoint.properties[constants.SCENARIO_NAME] = (
            f"{format_key(app_name)}.{format_key(port.name)}.{format_key(location.name)}"
        )
        endpoint.properties[constants.SCENARIO_STEP_NAME] = f"{transport.lower()}ReceiveAdapter"
        endpoint.properties[constants.CONFIGURATION_ENTRY] = configuration
        endpoint.properties[constants.ROUTING_PROPERTIES] = {
            name: name
            for name in (
                constants.BTS_RECEIVE_PORT_NAME,
                constants.BTS_RECEIVE_PORT_ID,
                constants.BTS_INBOUND_TRANSPORT_TYPE,
                constants.BTS_INBOUND_TRANSPORT_LOCATION,
            )
        }

        if port.is_two_way:
            try:
                _, subscription = self.subscribe(
                    self.config.message_box_response_channel_key,
                    format_key(port.name),
                    self._ack_group(port_id),
                    is_ordered=True,
                )
                endpoint.properties[constants.RESPONSE_SUBSCRIPTION] = subscription.name
            except AnalysisError as e:
                self.context.record(e, endpoint)

        return endpoint

    @staticmethod
    def _ack_group(port_id: str) -> FilterGroup:
        return FilterGroup.or_group(f"{constants.BTS_ACK_RECEIVE_PORT_ID} = '{port_id}'")

    # =========================================================================
    # Secondary routes
    # =========================================================================

    def interchange_route(
        self,
        key_prefix: str,
        target_application: Application,
        app_name: str,
        port: ReceivePort,
        location: ReceiveLocation,
    ) -> List[MessagingObject]:
        """Aggregator, splitter and message agents fed by the interchange queue."""
        prefix = f"{key_prefix}:Interchange"
        scenario_name = ".".join([
            format_key(app_name),
            format_key(port.name),
            format_key(location.name),
            constants.INTERCHANGE_AGGREGATOR_LEAF_KEY,
        ])

        route: List[MessagingObject] = [
            self.factory.interchange_aggregator(prefix, scenario_name),
            self.factory.interchange_splitter(prefix),
        ]
        route.extend(self.factory.message_agents(prefix, self.config.message_box_channel_key))

        bound = self.route_binder.bind_route(prefix, target_application, route)
        self.route_binder.bind_channels(prefix, target_application, bound)
        return bound

    def response_route(
        self,
        key_prefix: str,
        source_application: ResourceItem,
        target_application: Application,
        port: ReceivePort,
        location: ReceiveLocation,
    ) -> List[MessagingObject]:
        """Subscriber on the message box, send pipeline and publisher to the response topic."""
        prefix = f"{key_prefix}:Response"
        app_name = source_application.name
        port_id = f"{format_key(app_name)}.{format_key(port.name)}"

        subscriber = MessageSubscriber(
            name=port.name,
            description=f"Subscribes to responses for receive port '{port.name}'",
            key=f"{prefix}:{constants.MESSAGE_SUBSCRIBER_LEAF_KEY}",
            rating=ConversionRating.FULL_CONVERSION,
            resource_map_key=f"topicSubscriber{format_resource_map_key(app_name, port.name)}",
            activator=True,
            is_durable=True,
        )
        subscriber.properties[constants.SCENARIO_NAME] = (
            f"{port_id}.{format_key(location.name)}.Response"
        )
        subscriber.properties[constants.SCENARIO_STEP_NAME] = "messageSubscriber"
        subscriber.properties[constants.CONFIGURATION_ENTRY] = {constants.BTS_ACK_RECEIVE_PORT_ID: port_id}
        subscriber.properties[constants.ROUTING_PROPERTIES] = {
            constants.BTS_ACK_RECEIVE_PORT_ID: constants.BTS_ACK_RECEIVE_PORT_ID,
        }

        topic_channel, subscription = self.subscribe(
            self.config.message_box_channel_key, format_key(port.name), self._ack_group(port_id)
        )
        subscriber.topic_subscriptions[topic_channel.topic_name] = subscription.name
        subscriber.add_input_channel(topic_channel.key)

        route: List[MessagingObject] = [subscriber]
        if location.send_pipeline is not None:
            route.extend(self.factory.send_pipeline(
                prefix, source_application, location.send_pipeline, location.send_pipeline_configuration
            ))
        route.extend(self.factory.message_agents(
            prefix,
            self.config.message_box_response_channel_key,
            use_sessions=True,
            session_property=constants.CORRELATION_ID,
        ))

        bound = self.route_binder.bind_route(prefix, target_application, route)
        self.route_binder.bind_channels(prefix, target_application, bound, response=True)
        return bound
