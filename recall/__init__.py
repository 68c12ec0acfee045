"""
Recall - behavioral memory for agents in a conversational simulation.

Accumulates decaying per-agent statistics from accepted utterances and turns
them into a bounded bias vector for generation and funnels.
"""

from .config import RecallConfig
from .engine import Recall, create_recall_module
from .protocols import BaseFunnels, ConfigError, RecallError
from .types import AcquisitionEvent, AgentProfile, FunnelBias, StatePreference

try:
    from importlib.metadata import version

    __version__ = version("memetic-recall")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "AcquisitionEvent",
    "AgentProfile",
    "BaseFunnels",
    "ConfigError",
    "FunnelBias",
    "Recall",
    "RecallConfig",
    "RecallError",
    "StatePreference",
    "create_recall_module",
]
