"""Bias mapping.

Fuses net tone, relational energy, lexical novelty and template richness
into a bounded ``FunnelBias``. How far the bias moves away from neutral is
gated by a warmup factor that grows with the decayed sample count.
"""

from __future__ import annotations

from recall.types import (
    NEUTRAL_BIAS,
    FunnelBias,
    StatePreference,
    clamp,
)

ENERGY_NORMALIZATION_FACTOR = 2.0
ENERGY_NORMALIZATION_SHIFT = 1.0
ENERGY_CENTER = 0.5
STATE_PREF_TONE_WEIGHT = 0.7
STATE_PREF_ENERGY_WEIGHT = 0.3
NEUTRAL_STATE_WEIGHT = 1.0 / 3.0
EXPRESSIVENESS_BLEND = 0.5


class BiasMapper:
    """Maps derived signals onto a funnel bias.

    Reads limits from the live config so parameter updates apply immediately.
    """

    def __init__(self, config) -> None:
        self._config = config

    def warmup_factor(self, samples: float) -> float:
        """Scalar in [0, learning_aggressiveness], non-decreasing in samples."""
        cfg = self._config
        if samples <= 0:
            return 0.0
        base = clamp(samples / cfg.min_samples_for_bias, 0.0, 1.0)
        return base * cfg.learning_aggressiveness

    @staticmethod
    def state_preference(net_tone: float, energy_level: float) -> StatePreference:
        """Pre-blend preference over rut/emerging/growing, summing to 1."""
        tone = clamp(net_tone, -1.0, 1.0)
        energy = clamp(
            energy_level * ENERGY_NORMALIZATION_FACTOR - ENERGY_NORMALIZATION_SHIFT, -1.0, 1.0
        )
        lift = (energy + ENERGY_NORMALIZATION_SHIFT) / ENERGY_NORMALIZATION_FACTOR
        rut = clamp(-tone * STATE_PREF_TONE_WEIGHT + (1 - lift) * STATE_PREF_ENERGY_WEIGHT, 0.0, 1.0)
        growing = clamp(tone * STATE_PREF_TONE_WEIGHT + lift * STATE_PREF_ENERGY_WEIGHT, 0.0, 1.0)
        emerging = max(0.0, 1.0 - (rut + growing))
        total = (rut + emerging + growing) or 1.0
        return StatePreference(rut=rut / total, emerging=emerging / total, growing=growing / total)

    def map(
        self,
        *,
        net_tone: float,
        energy_level: float,
        novelty: float,
        template_richness: float,
        samples: float,
    ) -> FunnelBias:
        # Zero samples returns the all-zero preference, not the uniform blend.
        if samples <= 0:
            return NEUTRAL_BIAS

        cfg = self._config
        max_e = cfg.max_energy_scale
        max_n = cfg.max_novelty_bias
        raw_pref = self.state_preference(net_tone, energy_level)
        warmup = self.warmup_factor(samples)

        energy_delta = clamp((energy_level - ENERGY_CENTER) * ENERGY_NORMALIZATION_FACTOR * max_e, -max_e, max_e)
        novelty_delta = clamp(novelty * max_n, -max_n, max_n)
        expressiveness_delta = clamp(
            (net_tone + template_richness) * EXPRESSIVENESS_BLEND * max_e, -max_e, max_e
        )

        keep = 1.0 - warmup
        return FunnelBias(
            energy_scale=1.0 + energy_delta * warmup,
            novelty_scale=1.0 + novelty_delta * warmup,
            expressiveness_scale=1.0 + expressiveness_delta * warmup,
            state_preference=StatePreference(
                rut=NEUTRAL_STATE_WEIGHT * keep + raw_pref.rut * warmup,
                emerging=NEUTRAL_STATE_WEIGHT * keep + raw_pref.emerging * warmup,
                growing=NEUTRAL_STATE_WEIGHT * keep + raw_pref.growing * warmup,
            ),
        )
