"""
Correlation Binder — links correlation variables to their activities.

Each correlation variable lists the object ids of the activities that use
it and whether each one initializes it. Initializers and followers are
recorded on the variable, and the correlation property types are added to
the messages those activities exchange.
"""

import logging
from typing import Dict

from ..context import MigrationContext
from ..errors import StructuralMismatch
from .models import PropertyKey, WorkflowCorrelationVariable, WorkflowDefinition


logger = logging.getLogger(__name__)


class CorrelationBinder:
    """Resolves correlation activity references by object id."""

    def __init__(self, context: MigrationContext):
        self.context = context

    def bind_correlation_variables(self, definition: WorkflowDefinition) -> None:
        for variable in definition.correlation_variables():
            references: Dict[str, bool] = variable.properties.get(PropertyKey.ACTIVITY_REFERENCES)
            if not references:
                logger.debug(f"Correlation '{variable.name}' is not used by any activity")
                continue
            self._bind(definition, variable, references)

    def _bind(
        self,
        definition: WorkflowDefinition,
        variable: WorkflowCorrelationVariable,
        references: Dict[str, bool],
    ) -> None:
        for object_id, initializes in references.items():
            activity = definition.find_activity_by_object_id(object_id)
            if activity is None:
                self.context.record(StructuralMismatch(
                    f"Correlation '{variable.name}' references unknown activity '{object_id}'",
                    object_key=variable.key,
                ))
                continue

            if initializes:
                if variable.initializing_activity is not None and variable.initializing_activity is not activity:
                    self.context.record(StructuralMismatch(
                        f"Correlation '{variable.name}' is initialized by both "
                        f"'{variable.initializing_activity.name}' and '{activity.name}'",
                        object_key=variable.key,
                    ))
                    continue
                variable.initializing_activity = activity
                activity.properties.add_if_absent(PropertyKey.INITIALIZES_CORRELATION, variable.key)
            else:
                variable.add_following_activity(activity)
                activity.properties.add_if_absent(PropertyKey.FOLLOWS_CORRELATION, variable.key)

            message_name = activity.properties.get(PropertyKey.MESSAGE_NAME)
            message = definition.find_message(message_name) if message_name else None
            if message is None:
                continue
            for correlation_property in variable.correlation_properties:
                message.add_correlation_property(correlation_property.type)
