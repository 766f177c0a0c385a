"""
Route construction: route steps and the binder that wires them.
"""

from .intermediaries import GENERIC_COMPONENTS, IntermediaryFactory, KnownComponent
from .route_binder import RouteBinder

__all__ = [
    "GENERIC_COMPONENTS",
    "IntermediaryFactory",
    "KnownComponent",
    "RouteBinder",
]
