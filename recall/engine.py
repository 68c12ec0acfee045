"""The recall engine.

``Recall`` is the surface the conversation loop talks to. It records
acquisition events into per-agent profiles, derives funnel bias vectors
from them, and forwards configuration fragments to its collaborators.

Every method is synchronous. Profile mutation runs under the agent's lock
so decay and increments for one agent never interleave.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from recall.adapters import Collaborators
from recall.bias import BiasMapper
from recall.config import RecallConfig, is_number
from recall.decay import DecayEngine
from recall.logging_config import log_acquisition, log_bias
from recall.statistics import StatisticsComputer
from recall.store import ProfileStore
from recall.types import (
    LEXICAL_CATEGORY_VALUES,
    NEUTRAL_BIAS,
    AcquisitionEvent,
    AgentProfile,
    FunnelBias,
    GenerationOverrides,
    OverrideSource,
    Stance,
    map_relational_stance_to_band,
    to_epoch_seconds,
)

logger = logging.getLogger(__name__)

# Lexicon weight used when an event carries no numeric score.
LEXICON_DEFAULT_WEIGHT = 1.0

_UNSET = object()


def _label(value: Any) -> Optional[str]:
    """Return ``value`` if it is a non-empty string, else None.

    Histogram keys come from loose payloads; anything else is skipped.
    """
    return value if isinstance(value, str) and value else None


class Recall:
    """Per-agent behavioral memory that tunes generation and funnels.

    Args:
        relational: Relational engine (optional ``apply_theme``)
        merger: Merger (``get_generation_config`` plus optional persona hooks)
        funnels: Funnels (``apply_bias`` plus optional parameter/theme hooks)
        options: Loose option mapping, see ``RecallConfig.from_options``
        config: A prebuilt config; takes precedence over ``options``
        clock: Returns "now" in epoch seconds
        event_log: Write acquisition/bias lines to the recall event log
    """

    def __init__(
        self,
        relational: Any = None,
        merger: Any = None,
        funnels: Any = None,
        options: Optional[Mapping[str, Any]] = None,
        *,
        config: Optional[RecallConfig] = None,
        clock: Callable[[], float] = time.time,
        event_log: bool = False,
    ) -> None:
        self.config = config if config is not None else RecallConfig.from_options(options)
        self.persona: Optional[Mapping[str, Any]] = None
        self._clock = clock
        self._event_log = event_log
        self._store = ProfileStore(clock=clock)
        self._decay = DecayEngine(lambda: self.config.decay_rate)
        self._stats = StatisticsComputer(lambda: self.config.stance_weights)
        self._mapper = BiasMapper(self.config)
        self._collaborators = Collaborators.resolve(relational, merger, funnels)

    # ---- Collaborators ----

    @property
    def relational(self) -> Any:
        return self._collaborators.relational.relational

    @property
    def merger(self) -> Any:
        return self._collaborators.merger.merger

    @property
    def funnels(self) -> Any:
        return self._collaborators.funnels.funnels

    @property
    def collaborators(self) -> Collaborators:
        return self._collaborators

    def set_collaborators(self, *, relational: Any = _UNSET, merger: Any = _UNSET, funnels: Any = _UNSET) -> None:
        """Swap collaborators and re-resolve their capabilities."""
        self._collaborators = Collaborators.resolve(
            self.relational if relational is _UNSET else relational,
            self.merger if merger is _UNSET else merger,
            self.funnels if funnels is _UNSET else funnels,
        )

    # ---- Acquisition ----

    def record_acquisition(self, payload: Union[AcquisitionEvent, Mapping[str, Any], None]) -> None:
        """Fold one accepted utterance into the speaker's profile.

        A payload without ``speaker_id`` is ignored.
        """
        if isinstance(payload, AcquisitionEvent):
            event = payload
        elif isinstance(payload, Mapping):
            event = AcquisitionEvent.from_mapping(payload)
        else:
            logger.debug("Ignoring acquisition without speaker_id")
            return
        if not _label(event.speaker_id):
            logger.debug("Ignoring acquisition without speaker_id")
            return

        now = self._event_time(event)
        speaker_id = event.speaker_id
        with self._store.lock_for(speaker_id):
            profile = self._store.ensure(speaker_id)
            self._decay.apply(profile, now)
            self._accumulate(profile, event)
            profile.last_updated = now

        if self._event_log:
            log_acquisition(
                speaker_id,
                stance=_label(event.stance) or Stance.NEUTRAL.value,
                samples=profile.samples,
                score=event.score if is_number(event.score) else 0.0,
            )

    def _event_time(self, event: AcquisitionEvent) -> float:
        if event.timestamp is None:
            return self._clock()
        try:
            return to_epoch_seconds(event.timestamp)
        except (TypeError, ValueError) as exc:
            logger.warning("Unparseable timestamp %r for %s (%s); using now", event.timestamp, event.speaker_id, exc)
            return self._clock()

    def _accumulate(self, profile: AgentProfile, event: AcquisitionEvent) -> None:
        score_is_number = is_number(event.score)
        score = float(event.score) if score_is_number else 0.0

        profile.samples += 1
        stance = _label(event.stance) or Stance.NEUTRAL.value
        profile.stance_counts[stance] = profile.stance_counts.get(stance, 0.0) + 1
        target_id = _label(event.target_id)
        if target_id:
            profile.targets[target_id] = profile.targets.get(target_id, 0.0) + 1
        profile.score_sum += score
        profile.score_sq_sum += score * score
        if _label(event.template):
            profile.templates[event.template] = profile.templates.get(event.template, 0.0) + 1

        # Lexicon weights are counters and stay non-negative.
        weight = max(0.0, score) if score_is_number else LEXICON_DEFAULT_WEIGHT
        self._accumulate_lexicon(profile, event.lexicon, weight)

        source = _label(event.source_type) or "internal"
        profile.source_counts[source] = profile.source_counts.get(source, 0.0) + 1
        channels = event.channels if isinstance(event.channels, (list, tuple)) else []
        for channel in channels:
            if not _label(channel):
                continue
            profile.channel_counts[channel] = profile.channel_counts.get(channel, 0.0) + 1

        if isinstance(event.snapshot, Mapping):
            self._accumulate_snapshot(profile, event.snapshot)

    @staticmethod
    def _accumulate_lexicon(profile: AgentProfile, lexicon: Any, weight: float) -> None:
        if not isinstance(lexicon, Mapping):
            return
        for category in LEXICAL_CATEGORY_VALUES:
            tokens = lexicon.get(category)
            if not isinstance(tokens, (list, tuple)):
                continue
            bucket = profile.lexicon_counts[category]
            for token in tokens:
                if not _label(token):
                    continue
                bucket[token] = bucket.get(token, 0.0) + weight

    @staticmethod
    def _accumulate_snapshot(profile: AgentProfile, snapshot: Mapping[str, Any]) -> None:
        r = profile.relational
        for dim in r.DIMENSIONS:
            value = snapshot.get(dim)
            if is_number(value):
                r.add(dim, float(value))

        band = _label(snapshot.get("stance_band"))
        if not band and _label(snapshot.get("stance")):
            band = map_relational_stance_to_band(snapshot.get("stance"))
        if band:
            r.stance_band_counts[band] = r.stance_band_counts.get(band, 0.0) + 1

    # ---- Reads ----

    def get_agent_profile(self, agent_id: str) -> Optional[AgentProfile]:
        """Return the live profile or None. Callers must not mutate it."""
        return self._store.get(agent_id)

    def agent_ids(self) -> List[str]:
        return self._store.agent_ids()

    def get_funnel_bias(self, agent_id: str) -> FunnelBias:
        """Derive the agent's bias vector. Does not mutate or decay the profile."""
        profile = self._store.get(agent_id)
        if profile is None or profile.samples <= 0:
            return NEUTRAL_BIAS
        with self._store.lock_for(agent_id):
            balance = self._stats.stance_balance(profile)
            levels = self._stats.relational_levels(profile)
            lexical = self._stats.lexical_signals(profile)
            return self._mapper.map(
                net_tone=balance.net_tone,
                energy_level=levels.energy,
                novelty=lexical.novelty,
                template_richness=lexical.template_richness,
                samples=profile.samples,
            )

    def get_statistics(self, agent_id: str) -> Optional[Dict[str, Any]]:
        """All intermediate signals for an agent, for diagnostics."""
        profile = self._store.get(agent_id)
        if profile is None:
            return None
        with self._store.lock_for(agent_id):
            balance = self._stats.stance_balance(profile)
            levels = self._stats.relational_levels(profile)
            lexical = self._stats.lexical_signals(profile)
            return {
                "stance_balance": asdict(balance),
                "relational_levels": asdict(levels),
                "lexical_signals": asdict(lexical),
                "warmup": self._mapper.warmup_factor(profile.samples),
                "score_mean": profile.score_mean,
                "score_variance": profile.score_variance,
            }

    def apply_funnel_bias(self, agent_id: str) -> FunnelBias:
        """Compute the bias, hand it to funnels if possible, and return it."""
        bias = self.get_funnel_bias(agent_id)
        forwarded = self._collaborators.funnels.apply_bias(agent_id, bias)
        if self._event_log:
            log_bias(agent_id, bias=bias, forwarded=forwarded)
        return bias

    # ---- Generation ----

    def get_generation_overrides(
        self,
        speaker_id: str,
        target_id: Optional[str] = None,
        fallback: Optional[Mapping[str, Any]] = None,
    ) -> GenerationOverrides:
        """Ask the merger for stance/templates/lexicon, degrading to ``fallback``."""
        fallback = fallback if isinstance(fallback, Mapping) else {}
        f_stance = fallback.get("stance") or Stance.NEUTRAL.value
        f_templates = fallback.get("templates")
        f_lexicon = fallback.get("lexicon")

        merger = self._collaborators.merger
        if not merger.provides_generation_config:
            return GenerationOverrides(f_stance, f_templates, f_lexicon, OverrideSource.NO_MERGER.value)

        try:
            cfg = merger.get_generation_config(
                speaker_id,
                target_id,
                {"stance": f_stance, "templates": f_templates or [], "lexicon": f_lexicon or {}},
            )
        except Exception as exc:
            logger.warning(
                "Swallowed %s from merger.get_generation_config for %s: %s",
                type(exc).__name__,
                speaker_id,
                exc,
            )
            return GenerationOverrides(f_stance, f_templates, f_lexicon, OverrideSource.ERROR.value)

        if not isinstance(cfg, Mapping):
            cfg = {}
        templates = cfg.get("templates")
        lexicon = cfg.get("lexicon")
        return GenerationOverrides(
            stance=cfg.get("stance") or f_stance,
            templates=templates if isinstance(templates, list) else f_templates,
            lexicon=lexicon if isinstance(lexicon, Mapping) else f_lexicon,
            source=OverrideSource.MERGER.value,
        )

    # ---- Configuration ----

    def apply_parameters(self, parameters: Optional[Mapping[str, Any]] = None) -> None:
        """Apply ``{recall, funnels}`` fragments.

        ``recall`` updates this engine's config; ``funnels`` is forwarded
        verbatim to the funnels collaborator when it can take it.
        """
        if not isinstance(parameters, Mapping):
            return
        recall_fragment = parameters.get("recall")
        if isinstance(recall_fragment, Mapping):
            changed = self.config.update(recall_fragment)
            if changed:
                logger.info("Recall parameters updated: %s", ", ".join(sorted(changed)))
        funnels_fragment = parameters.get("funnels")
        if funnels_fragment:
            if not self._collaborators.funnels.apply_parameters(funnels_fragment):
                logger.debug("Funnels cannot take parameters; fragment ignored")

    def apply_persona(self, persona: Any) -> None:
        """Store the persona, hand it to the merger, apply embedded parameters."""
        if not isinstance(persona, Mapping):
            return
        self.persona = persona
        self._collaborators.merger.apply_persona(persona)
        if persona.get("parameters"):
            self.apply_parameters(persona["parameters"])

    def apply_lexicon_syntax_overrides(self, overrides: Optional[Mapping[str, Any]] = None) -> None:
        overrides = overrides if isinstance(overrides, Mapping) else {}
        self._collaborators.merger.apply_lexicon_syntax_overrides(
            {"lexicon": overrides.get("lexicon"), "syntax": overrides.get("syntax")}
        )

    def apply_theme(self, theme: Any) -> None:
        """Apply a theme's ``recall`` fragment and pass the theme on."""
        if not isinstance(theme, Mapping):
            return
        if isinstance(theme.get("recall"), Mapping):
            self.apply_parameters({"recall": theme["recall"]})
        self._collaborators.relational.apply_theme(theme)
        self._collaborators.funnels.apply_theme(theme)


def create_recall_module(
    relational: Any = None,
    merger: Any = None,
    funnels: Any = None,
    options: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Recall]:
    """Build a ``Recall`` engine and return it as ``{"recall": engine}``."""
    return {"recall": Recall(relational, merger, funnels, options)}
