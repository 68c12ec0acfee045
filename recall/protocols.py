"""
recall Protocol Definitions
===========================

The interface contracts between recall and the collaborators around it.

Collaborators and their roles:
- Relational: generates conversational turns and relational snapshots.
- Merger:     blends templates and lexicon into a generation config.
- Funnels:    themes novelty/energy for future turns; consumes the bias vector.
- Acquisition: gates utterances before they are reported to recall.

Recall never calls a collaborator method it has not resolved first. Each
protocol separates required methods from optional ones; the optional ones are
looked up once when the engine is built (see ``recall.adapters``).

Error handling philosophy:
- Missing required input (no speaker id) is ignored, never raised
- Missing optional collaborator methods mean "feature unavailable"
- Merger failures during config lookup degrade to fallback values
- Invalid construction-time configuration raises ConfigError
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Entry point group for CLI collaborator factories.
ENTRY_POINT_GROUP_COLLABORATORS = "recall.collaborators"


# =============================================================================
# ERRORS
# =============================================================================


class RecallError(Exception):
    """Base for all recall errors."""

    pass


class ConfigError(RecallError, ValueError):
    """Raised when a configuration value fails validation."""

    pass


class CollaboratorError(RecallError):
    """Raised when a collaborator factory cannot be loaded or built."""

    pass


# =============================================================================
# COLLABORATOR PROTOCOLS
# =============================================================================
# Only the required methods are declared on each protocol. Optional methods
# are named in each docstring and resolved by ``recall.adapters``.


@runtime_checkable
class RelationalProtocol(Protocol):
    """Conversational-turn generator and relational state holder.

    Optional: ``apply_theme(theme)``.
    """

    def get_interaction(self, a: str, b: str) -> Any:
        """Return the interaction between two agents (exposes ``state``)."""
        ...

    def process_turn(
        self,
        agent_id: str,
        text: str,
        *,
        from_user_id: Optional[str] = None,
        generation_config: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Generate a turn. May return an awaitable."""
        ...

    def get_social_dynamics(self) -> Any: ...


@runtime_checkable
class MergerProtocol(Protocol):
    """Template/lexicon blending engine.

    Optional: ``apply_persona(persona)``,
    ``apply_lexicon_syntax_overrides(overrides)``, ``get_debug_bucket(name)``.
    """

    def get_generation_config(
        self, speaker_id: str, target_id: Optional[str], fallback: Mapping[str, Any]
    ) -> Any:
        """Return ``{stance, templates, lexicon}`` for the speaker."""
        ...


@runtime_checkable
class FunnelsProtocol(Protocol):
    """Novelty/energy themer.

    Optional: ``apply_parameters(fragment)``, ``apply_theme(theme)``.
    """

    def get_global_state(self) -> Any: ...

    def update(self, value: float) -> None: ...

    def apply_bias(self, agent_id: str, bias: Any) -> None:
        """Consume a recall bias vector for the agent."""
        ...


@runtime_checkable
class AcquisitionGateProtocol(Protocol):
    """Admission logic deciding which utterances recall hears about."""

    def consider(self, request: Mapping[str, Any]) -> Any:
        """Return ``{decision, score, merger_result, snapshot}``. May be awaitable."""
        ...

    def get_stats(self) -> Any: ...


# =============================================================================
# CANONICAL FUNNELS
# =============================================================================

# Learning rate used when nudging funnel state toward a bias.
FUNNEL_BIAS_LEARNING_RATE = 0.05


@dataclass
class FunnelState:
    """Global state kept by ``BaseFunnels``."""

    energy_mean: float = 0.5
    energy_variance: float = 0.1
    observations: int = 0
    _m2: float = field(default=0.0, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "energy_mean": self.energy_mean,
            "energy_variance": self.energy_variance,
            "observations": self.observations,
        }


class BaseFunnels:
    """Default funnels implementation.

    Subclass it to get the canonical ``apply_bias`` behavior: store the bias
    per agent and nudge the global energy mean and variance toward it.
    """

    def __init__(self, energy_mean: float = 0.5, energy_variance: float = 0.1) -> None:
        self.state = FunnelState(energy_mean=energy_mean, energy_variance=energy_variance)
        self.agent_biases: Dict[str, Any] = {}

    def get_global_state(self) -> Dict[str, Any]:
        return self.state.to_dict()

    def update(self, value: float) -> None:
        """Fold one observation into the running mean and variance (Welford)."""
        s = self.state
        s.observations += 1
        if s.observations == 1:
            s.energy_mean = float(value)
            s._m2 = 0.0
            return
        delta = value - s.energy_mean
        s.energy_mean += delta / s.observations
        s._m2 += delta * (value - s.energy_mean)
        s.energy_variance = s._m2 / (s.observations - 1)

    def apply_bias(self, agent_id: str, bias: Any) -> None:
        if not bias:
            return
        self.agent_biases[agent_id] = bias
        energy_scale = _bias_number(bias, "energy_scale")
        novelty_scale = _bias_number(bias, "novelty_scale")
        lr = FUNNEL_BIAS_LEARNING_RATE
        s = self.state
        s.energy_mean = s.energy_mean * (1 - lr) + (s.energy_mean * energy_scale) * lr
        s.energy_variance = s.energy_variance * (1 - lr) + (s.energy_variance * novelty_scale) * lr


def _bias_number(bias: Any, name: str) -> float:
    """Read a scale from a FunnelBias or a plain mapping, defaulting to 1."""
    value = bias.get(name) if isinstance(bias, Mapping) else getattr(bias, name, None)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 1.0
    return float(value)
