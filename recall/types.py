"""
Shared types for recall.

All profile and signal dataclasses live here. They are the shared vocabulary
between the store, the decay engine, the statistics and bias stages, and the
collaborators that consume a bias vector.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

# === Shared Utility Functions ===


def to_epoch_seconds(value: Union[float, int, str, datetime]) -> float:
    """Normalize a timestamp to float seconds since the epoch.

    Strings are parsed as ISO 8601. Naive datetimes are treated as UTC.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float(value)


def clamp(value: float, lo: float, hi: float) -> float:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


# === Enums ===


class Stance(str, Enum):
    """Tone of an accepted utterance."""

    DEFENSIVE = "defensive"
    NEUTRAL = "neutral"
    SUPPORTIVE = "supportive"


STANCE_VALUES = tuple(s.value for s in Stance)


class LexicalCategory(str, Enum):
    """The fixed lexical categories tracked per profile."""

    NOUNS = "nouns"
    VERBS = "verbs"
    ADJECTIVES = "adjectives"
    ADVERBS = "adverbs"
    CONJUNCTIONS = "conjunctions"
    PRONOUNS = "pronouns"
    ARTICLES = "articles"
    PREPOSITIONS = "prepositions"
    AUXILIARIES = "auxiliaries"
    MODALS = "modals"


LEXICAL_CATEGORY_VALUES = tuple(c.value for c in LexicalCategory)

# Relational-engine stances folded into the three stance bands.
RELATIONAL_STANCE_BANDS = {
    "defensive": Stance.DEFENSIVE.value,
    "cautious": Stance.NEUTRAL.value,
    "collaborative": Stance.SUPPORTIVE.value,
    "intimate": Stance.SUPPORTIVE.value,
}


def map_relational_stance_to_band(relational_stance: Optional[str]) -> str:
    """Map a relational-engine stance onto a stance band (default neutral)."""
    key = (relational_stance or "").lower()
    return RELATIONAL_STANCE_BANDS.get(key, Stance.NEUTRAL.value)


def _stance_histogram() -> Dict[str, float]:
    return {s: 0.0 for s in STANCE_VALUES}


def _lexicon_buckets() -> Dict[str, Dict[str, float]]:
    return {c: {} for c in LEXICAL_CATEGORY_VALUES}


# === Profile ===


@dataclass
class RelationalStats:
    """Decayable (sum, samples) pairs from relational snapshots."""

    trust_sum: float = 0.0
    trust_samples: float = 0.0
    comfort_sum: float = 0.0
    comfort_samples: float = 0.0
    alignment_sum: float = 0.0
    alignment_samples: float = 0.0
    energy_sum: float = 0.0
    energy_samples: float = 0.0
    stance_band_counts: Dict[str, float] = field(default_factory=_stance_histogram)

    # Dimensions carried as (sum, samples) attribute pairs.
    DIMENSIONS = ("trust", "comfort", "alignment", "energy")

    def add(self, dimension: str, value: float) -> None:
        setattr(self, f"{dimension}_sum", getattr(self, f"{dimension}_sum") + value)
        setattr(self, f"{dimension}_samples", getattr(self, f"{dimension}_samples") + 1)


@dataclass
class AgentProfile:
    """Accumulated behavioral statistics for one agent.

    Every counter is a float because decay scales it in place. ``samples``
    is the decayed event count, not a raw tally once decay has applied.
    """

    agent_id: str
    last_updated: float
    samples: float = 0.0
    stance_counts: Dict[str, float] = field(default_factory=_stance_histogram)
    templates: Dict[str, float] = field(default_factory=dict)
    lexicon_counts: Dict[str, Dict[str, float]] = field(default_factory=_lexicon_buckets)
    score_sum: float = 0.0
    score_sq_sum: float = 0.0
    source_counts: Dict[str, float] = field(default_factory=dict)
    channel_counts: Dict[str, float] = field(default_factory=dict)
    targets: Dict[str, float] = field(default_factory=dict)
    relational: RelationalStats = field(default_factory=RelationalStats)

    @property
    def score_mean(self) -> float:
        if self.samples <= 0:
            return 0.0
        return self.score_sum / self.samples

    @property
    def score_variance(self) -> float:
        if self.samples <= 0:
            return 0.0
        mean = self.score_mean
        return max(0.0, self.score_sq_sum / self.samples - mean * mean)


@dataclass
class AcquisitionEvent:
    """One accepted utterance reported to recall."""

    speaker_id: str
    target_id: Optional[str] = None
    stance: str = Stance.NEUTRAL.value
    template: str = ""
    lexicon: Dict[str, List[str]] = field(default_factory=dict)
    score: Any = 0
    source_type: str = "internal"
    channels: List[str] = field(default_factory=list)
    snapshot: Optional[Dict[str, Any]] = None
    timestamp: Optional[Union[float, str, datetime]] = None

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "AcquisitionEvent":
        """Build an event from a payload mapping, ignoring unknown keys.

        camelCase keys (``speakerId``, ``snapshot.stanceBand``) are accepted.
        Absent or ``None`` values fall back to the field defaults; a missing
        speaker becomes ``""``.
        """
        payload = normalize_event_payload(payload)
        kwargs: Dict[str, Any] = {"speaker_id": ""}
        for name in cls.__dataclass_fields__:
            value = payload.get(name)
            if value is not None:
                kwargs[name] = value
        return cls(**kwargs)


# camelCase spellings accepted on acquisition payloads.
EVENT_FIELD_ALIASES = {
    "speakerId": "speaker_id",
    "targetId": "target_id",
    "sourceType": "source_type",
}
SNAPSHOT_FIELD_ALIASES = {"stanceBand": "stance_band"}


def _with_aliases(data: Mapping[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    out = dict(data)
    for alias, name in aliases.items():
        if alias in out:
            value = out.pop(alias)
            if out.get(name) is None:
                out[name] = value
    return out


def normalize_event_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of an acquisition payload with snake_case keys.

    A snake_case key wins over its camelCase alias when both are present.
    """
    data = _with_aliases(payload, EVENT_FIELD_ALIASES)
    snapshot = data.get("snapshot")
    if isinstance(snapshot, Mapping):
        data["snapshot"] = _with_aliases(snapshot, SNAPSHOT_FIELD_ALIASES)
    return data


# === Signals ===


@dataclass(frozen=True)
class StanceBalance:
    net_tone: float = 0.0
    defensive_fraction: float = 0.0
    supportive_fraction: float = 0.0


@dataclass(frozen=True)
class RelationalLevels:
    trust: float = 0.5
    comfort: float = 0.5
    alignment: float = 0.5
    energy: float = 0.5


@dataclass(frozen=True)
class LexicalSignals:
    unique_tokens: int = 0
    template_count: int = 0
    richness_index: int = 0
    total_weight: float = 0.0
    novelty: float = 0.0
    template_richness: float = 0.0


# === Bias ===


@dataclass(frozen=True)
class StatePreference:
    """Distribution over funnel states."""

    rut: float = 0.0
    emerging: float = 0.0
    growing: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"rut": self.rut, "emerging": self.emerging, "growing": self.growing}


@dataclass(frozen=True)
class FunnelBias:
    """Bounded bias vector handed to the funnels collaborator."""

    energy_scale: float = 1.0
    novelty_scale: float = 1.0
    expressiveness_scale: float = 1.0
    state_preference: StatePreference = field(default_factory=StatePreference)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "energy_scale": self.energy_scale,
            "novelty_scale": self.novelty_scale,
            "expressiveness_scale": self.expressiveness_scale,
            "state_preference": self.state_preference.to_dict(),
        }


# Returned for unknown agents and profiles with no samples.
NEUTRAL_BIAS = FunnelBias()


# === Generation ===


class OverrideSource(str, Enum):
    """Where generation overrides came from."""

    MERGER = "merger"
    NO_MERGER = "fallback:no-merger"
    ERROR = "fallback:error"


@dataclass
class GenerationOverrides:
    stance: str
    templates: Optional[List[Any]]
    lexicon: Optional[Dict[str, Any]]
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stance": self.stance,
            "templates": self.templates,
            "lexicon": self.lexicon,
            "source": self.source,
        }
