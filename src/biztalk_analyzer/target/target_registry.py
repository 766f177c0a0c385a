"""
Target Model Registry — owns the message bus and resolves keys to objects.

All cross references inside the target model are keys; this registry is
the only place those keys are turned back into objects.
"""

import logging
import threading
from typing import Dict, Iterator, List, NamedTuple, Optional

from .. import constants
from .models import Application, MessageBus, MessagingObject


logger = logging.getLogger(__name__)


class MessagingObjectLookup(NamedTuple):
    """Result of a key lookup: the owning application and the object."""
    application: Optional[Application]
    messaging_object: Optional[MessagingObject]

    @property
    def found(self) -> bool:
        return self.messaging_object is not None


NOT_FOUND = MessagingObjectLookup(None, None)


class TargetModelRegistry:
    """
    In-memory registry of the produced target model.

    Provides:
    - Application registration on the message bus
    - Key lookup across every application's endpoints, intermediaries and channels
    - Source application to target application resolution
    """

    def __init__(self, message_bus: Optional[MessageBus] = None):
        self.message_bus = message_bus or MessageBus(
            name="Message Bus", key=constants.MESSAGE_BUS_LEAF_KEY
        )
        self._lock = threading.RLock()

    # =========================================================================
    # Registration
    # =========================================================================

    def add_application(self, application: Application) -> Application:
        """
        Add an application to the message bus.

        Raises:
            ValueError: If an application with the same key already exists.
        """
        with self._lock:
            if any(a.key == application.key for a in self.message_bus.applications):
                raise ValueError(f"Application with key '{application.key}' already registered")
            self.message_bus.applications.append(application)

        logger.debug(f"Added application to target model: {application.key}")
        return application

    # =========================================================================
    # Lookup
    # =========================================================================

    @property
    def applications(self) -> List[Application]:
        return self.message_bus.applications

    def find_messaging_object(self, key: str) -> MessagingObjectLookup:
        """
        Find a messaging object by key.

        Returns:
            (application, object), or NOT_FOUND when nothing carries the key.
        """
        with self._lock:
            for application in self.message_bus.applications:
                if application.key == key:
                    return MessagingObjectLookup(application, application)
                for messaging_object in application.messaging_objects():
                    if getattr(messaging_object, "key", None) == key:
                        return MessagingObjectLookup(application, messaging_object)
        return NOT_FOUND

    def find_application(self, name: str) -> Optional[Application]:
        with self._lock:
            return next((a for a in self.message_bus.applications if a.name == name), None)

    def find_application_for_source(self, resource_key: str) -> Optional[Application]:
        """Target application created from the given source application resource."""
        with self._lock:
            for application in self.message_bus.applications:
                if application.properties.get(constants.SOURCE_APPLICATION_RESOURCE_KEY) == resource_key:
                    return application
        return None

    def iter_intermediaries(self) -> Iterator[tuple]:
        """Yield (application, intermediary) across the bus."""
        for application in list(self.message_bus.applications):
            for intermediary in list(application.intermediaries):
                yield application, intermediary

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            apps = self.message_bus.applications
            return {
                "applications": len(apps),
                "endpoints": sum(len(a.endpoints) for a in apps),
                "intermediaries": sum(len(a.intermediaries) for a in apps),
                "channels": sum(len(a.channels) for a in apps),
            }
