"""Time decay for recall profiles.

Scales every counter of a profile by ``exp(-rate * dt)`` before the profile
is mutated, so old behavior fades relative to new behavior.
"""

from __future__ import annotations

import logging
import math
from typing import Dict

from recall.types import AgentProfile

logger = logging.getLogger(__name__)

# Factors at or above this are skipped to avoid churn on tiny gaps.
DECAY_FACTOR_THRESHOLD = 0.999


def _scale_histogram(histogram: Dict[str, float], factor: float) -> None:
    for key in histogram:
        histogram[key] *= factor


class DecayEngine:
    """Exponential decay of profile counters.

    ``rate`` is read through a callable so a live config update takes effect
    on the next mutation without rebuilding the engine.
    """

    def __init__(self, rate_source) -> None:
        self._rate_source = rate_source

    @property
    def rate(self) -> float:
        return self._rate_source()

    def factor_for(self, profile: AgentProfile, now: float) -> float:
        """Decay factor that ``apply`` would use (1.0 means skip)."""
        rate = self.rate
        if not rate:
            return 1.0
        dt = now - profile.last_updated
        if dt <= 0:
            return 1.0
        factor = math.exp(-rate * dt)
        if factor >= DECAY_FACTOR_THRESHOLD:
            return 1.0
        return factor

    def apply(self, profile: AgentProfile, now: float) -> float:
        """Decay the profile to ``now`` in place.

        Does not touch ``last_updated``; the caller sets it when its own
        mutation completes.

        Returns:
            The factor applied, 1.0 when decay was skipped
        """
        factor = self.factor_for(profile, now)
        if factor == 1.0:
            return factor

        profile.samples *= factor
        profile.score_sum *= factor
        profile.score_sq_sum *= factor
        _scale_histogram(profile.stance_counts, factor)
        _scale_histogram(profile.source_counts, factor)
        _scale_histogram(profile.channel_counts, factor)
        _scale_histogram(profile.targets, factor)
        # Template counts are not decayed; only their distinct count is read.
        for bucket in profile.lexicon_counts.values():
            _scale_histogram(bucket, factor)

        r = profile.relational
        for dim in r.DIMENSIONS:
            setattr(r, f"{dim}_sum", getattr(r, f"{dim}_sum") * factor)
            setattr(r, f"{dim}_samples", getattr(r, f"{dim}_samples") * factor)
        _scale_histogram(r.stance_band_counts, factor)

        logger.debug("Decayed profile %s by %.4f", profile.agent_id, factor)
        return factor
