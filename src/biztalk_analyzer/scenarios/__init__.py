"""
Scenario analyzers: receive ports, send ports and orchestrations.
"""

from .base import AnalyzerBase
from .orchestration import OrchestrationAnalyzer
from .process_manager import WIRING_ORDER, InvocationWirer, WiringPass, create_process_manager
from .receive_port import ReceivePortAnalyzer
from .send_port import SendPortAnalyzer

__all__ = [
    "AnalyzerBase",
    "OrchestrationAnalyzer",
    "InvocationWirer",
    "WiringPass",
    "WIRING_ORDER",
    "create_process_manager",
    "ReceivePortAnalyzer",
    "SendPortAnalyzer",
]
