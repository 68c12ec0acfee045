"""Serializers for recall records.

Plain-dict views of profiles, bias vectors and overrides, suitable for
``json.dumps``. Used by the CLI and by callers that ship diagnostics out of
process.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from recall.types import AgentProfile, FunnelBias, GenerationOverrides


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _rounded(histogram: Dict[str, float], digits: Optional[int]) -> Dict[str, float]:
    if digits is None:
        return dict(histogram)
    return {k: round(v, digits) for k, v in histogram.items()}


def profile_to_dict(profile: AgentProfile, *, digits: Optional[int] = None) -> Dict[str, Any]:
    """Serialize a profile. ``digits`` rounds every float when given."""

    def num(value: float) -> float:
        return value if digits is None else round(value, digits)

    r = profile.relational
    relational = {}
    for dim in r.DIMENSIONS:
        relational[f"{dim}_sum"] = num(getattr(r, f"{dim}_sum"))
        relational[f"{dim}_samples"] = num(getattr(r, f"{dim}_samples"))
    relational["stance_band_counts"] = _rounded(r.stance_band_counts, digits)

    return {
        "agent_id": profile.agent_id,
        "samples": num(profile.samples),
        "last_updated": _iso(profile.last_updated),
        "stance_counts": _rounded(profile.stance_counts, digits),
        "templates": _rounded(profile.templates, digits),
        "lexicon_counts": {
            category: _rounded(bucket, digits) for category, bucket in profile.lexicon_counts.items()
        },
        "score_sum": num(profile.score_sum),
        "score_sq_sum": num(profile.score_sq_sum),
        "score_mean": num(profile.score_mean),
        "score_variance": num(profile.score_variance),
        "source_counts": _rounded(profile.source_counts, digits),
        "channel_counts": _rounded(profile.channel_counts, digits),
        "targets": _rounded(profile.targets, digits),
        "relational": relational,
    }


def bias_to_dict(bias: FunnelBias, *, digits: Optional[int] = None) -> Dict[str, Any]:
    data = bias.to_dict()
    if digits is None:
        return data
    return {
        "energy_scale": round(data["energy_scale"], digits),
        "novelty_scale": round(data["novelty_scale"], digits),
        "expressiveness_scale": round(data["expressiveness_scale"], digits),
        "state_preference": _rounded(data["state_preference"], digits),
    }


def overrides_to_dict(overrides: GenerationOverrides, *, template_sample: Optional[int] = None) -> Dict[str, Any]:
    """Serialize overrides; ``template_sample`` keeps only the first N templates."""
    data = overrides.to_dict()
    if template_sample is not None and isinstance(data["templates"], list):
        data["templates"] = data["templates"][:template_sample]
    return data
