"""Statistics derived from a recall profile.

Three dimensionless signals, each a pure function of the profile:

- stance balance: weighted net tone of the stance histogram
- relational levels: average trust/comfort/alignment/energy from snapshots
- lexical signals: novelty of token/template usage and template richness
"""

from __future__ import annotations

from typing import Mapping

from recall.types import (
    AgentProfile,
    LexicalSignals,
    RelationalLevels,
    Stance,
    StanceBalance,
    clamp,
)

NET_TONE_MIN = -1.0
NET_TONE_MAX = 1.0
RELATIONAL_DEFAULT_LEVEL = 0.5
TEMPLATE_RICHNESS_MAX_TEMPLATES = 20


class StatisticsComputer:
    """Reads a profile, never mutates it."""

    def __init__(self, stance_weights_source) -> None:
        self._stance_weights_source = stance_weights_source

    def stance_balance(self, profile: AgentProfile) -> StanceBalance:
        counts = profile.stance_counts
        defensive = counts.get(Stance.DEFENSIVE.value, 0.0)
        neutral = counts.get(Stance.NEUTRAL.value, 0.0)
        supportive = counts.get(Stance.SUPPORTIVE.value, 0.0)
        total = defensive + neutral + supportive
        if not total:
            return StanceBalance()

        weights: Mapping[str, float] = self._stance_weights_source()
        d_frac = defensive / total
        s_frac = supportive / total
        weighted = (
            d_frac * weights.get(Stance.DEFENSIVE.value, -1.0)
            + (neutral / total) * weights.get(Stance.NEUTRAL.value, 0.0)
            + s_frac * weights.get(Stance.SUPPORTIVE.value, 1.0)
        )
        return StanceBalance(
            net_tone=clamp(weighted, NET_TONE_MIN, NET_TONE_MAX),
            defensive_fraction=d_frac,
            supportive_fraction=s_frac,
        )

    def relational_levels(self, profile: AgentProfile) -> RelationalLevels:
        r = profile.relational
        levels = {}
        for dim in r.DIMENSIONS:
            samples = getattr(r, f"{dim}_samples")
            level = getattr(r, f"{dim}_sum") / samples if samples > 0 else RELATIONAL_DEFAULT_LEVEL
            levels[dim] = clamp(level, 0.0, 1.0)
        return RelationalLevels(**levels)

    def lexical_signals(self, profile: AgentProfile) -> LexicalSignals:
        template_count = len(profile.templates)
        unique_tokens = 0
        total_weight = 0.0
        for bucket in profile.lexicon_counts.values():
            unique_tokens += len(bucket)
            total_weight += sum(bucket.values())

        richness = unique_tokens + template_count
        novelty = richness / (total_weight + richness) if total_weight > 0 else 0.0
        template_richness = min(1.0, template_count / TEMPLATE_RICHNESS_MAX_TEMPLATES)
        return LexicalSignals(
            unique_tokens=unique_tokens,
            template_count=template_count,
            richness_index=richness,
            total_weight=total_weight,
            novelty=novelty,
            template_richness=template_richness,
        )
