"""Recall configuration.

One validated configuration record, built once when a ``Recall`` engine is
constructed and updated in place by ``apply_parameters``.
"""

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

from recall.protocols import ConfigError
from recall.types import Stance

logger = logging.getLogger(__name__)

DEFAULT_MIN_SAMPLES_FOR_BIAS = 5
DEFAULT_STANCE_WEIGHTS = {
    Stance.DEFENSIVE.value: -1.0,
    Stance.NEUTRAL.value: 0.0,
    Stance.SUPPORTIVE.value: 1.0,
}
DEFAULT_DECAY_RATE = 0.0  # per second
DEFAULT_MAX_STATE_BIAS = 0.4
DEFAULT_MAX_ENERGY_SCALE = 0.4
DEFAULT_MAX_NOVELTY_BIAS = 0.3
DEFAULT_LEARNING_AGGRESSIVENESS = 1.0

# camelCase spellings accepted from themes, personas and option files.
FIELD_ALIASES = {
    "minSamplesForBias": "min_samples_for_bias",
    "stanceWeights": "stance_weights",
    "decayRate": "decay_rate",
    "maxStateBias": "max_state_bias",
    "maxEnergyScale": "max_energy_scale",
    "maxNoveltyBias": "max_novelty_bias",
    "learningAggressiveness": "learning_aggressiveness",
}

# Millisecond decay rates are converted to the per-second rate.
MS_RATE_ALIASES = {"decayPerMs": "decay_rate", "decay_per_ms": "decay_rate"}


def is_number(value: Any) -> bool:
    """True for finite ints and floats (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _default_stance_weights() -> Dict[str, float]:
    return dict(DEFAULT_STANCE_WEIGHTS)


@dataclass
class RecallConfig:
    """Configuration for recall's statistics and bias derivation.

    Attributes:
        min_samples_for_bias: Decayed sample count at which warmup saturates
        stance_weights: Per-stance weight used for net tone (default -1/0/+1)
        decay_rate: Exponential decay rate per second (0 disables decay)
        max_state_bias: Upper bound on state-preference skew (read by collaborators)
        max_energy_scale: Max magnitude of energy and expressiveness deltas
        max_novelty_bias: Max magnitude of the novelty delta
        learning_aggressiveness: Multiplier applied to the warmup factor
    """

    min_samples_for_bias: float = DEFAULT_MIN_SAMPLES_FOR_BIAS
    stance_weights: Dict[str, float] = field(default_factory=_default_stance_weights)
    decay_rate: float = DEFAULT_DECAY_RATE
    max_state_bias: float = DEFAULT_MAX_STATE_BIAS
    max_energy_scale: float = DEFAULT_MAX_ENERGY_SCALE
    max_novelty_bias: float = DEFAULT_MAX_NOVELTY_BIAS
    learning_aggressiveness: float = DEFAULT_LEARNING_AGGRESSIVENESS

    def __post_init__(self):
        """Validate config values."""
        merged = _default_stance_weights()
        merged.update(self.stance_weights or {})
        self.stance_weights = merged
        for name in self.numeric_fields():
            problem = _check_numeric(name, getattr(self, name))
            if problem:
                raise ConfigError(problem)
        for stance, weight in self.stance_weights.items():
            if not is_number(weight):
                raise ConfigError(f"stance weight for {stance!r} must be a finite number")

    @classmethod
    def numeric_fields(cls) -> tuple:
        return tuple(f.name for f in fields(cls) if f.name != "stance_weights")

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "RecallConfig":
        """Build a config from a loose options mapping.

        Accepts snake_case or camelCase keys. Unknown keys are ignored.
        """
        kwargs: Dict[str, Any] = {}
        for key, value in (options or {}).items():
            if value is None:
                continue
            if key in MS_RATE_ALIASES and is_number(value):
                kwargs["decay_rate"] = value * 1000.0
                continue
            name = FIELD_ALIASES.get(key, key)
            if name == "stance_weights" and isinstance(value, Mapping):
                kwargs[name] = dict(value)
            elif name in cls.numeric_fields():
                kwargs[name] = value
        return cls(**kwargs)

    def update(self, fragment: Mapping[str, Any]) -> Dict[str, Any]:
        """Apply a partial ``recall`` fragment in place.

        ``stance_weights`` merges into the existing weights; any other key
        naming a numeric field overwrites it. Invalid values are skipped.

        Returns:
            Dict of the fields actually changed
        """
        changed: Dict[str, Any] = {}
        for key, value in fragment.items():
            if key in MS_RATE_ALIASES and is_number(value):
                key, value = "decay_rate", value * 1000.0
            name = FIELD_ALIASES.get(key, key)
            if name == "stance_weights":
                if not isinstance(value, Mapping):
                    continue
                accepted = {k: v for k, v in value.items() if is_number(v)}
                for k in set(value) - set(accepted):
                    logger.warning("Ignoring non-numeric stance weight for %r", k)
                self.stance_weights = {**self.stance_weights, **accepted}
                changed[name] = dict(self.stance_weights)
            elif name in self.numeric_fields():
                problem = _check_numeric(name, value)
                if problem:
                    logger.warning("Ignoring recall parameter: %s", problem)
                    continue
                setattr(self, name, value)
                changed[name] = value
        return changed

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in self.numeric_fields()}
        data["stance_weights"] = dict(self.stance_weights)
        return data


def _check_numeric(name: str, value: Any) -> Optional[str]:
    if not is_number(value):
        return f"{name} must be a finite number, got {value!r}"
    if name == "min_samples_for_bias":
        if value <= 0:
            return "min_samples_for_bias must be positive"
    elif value < 0:
        return f"{name} must be non-negative"
    return None
