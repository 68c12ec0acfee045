"""Collaborator adapters.

Each adapter inspects its collaborator once, at construction, and fixes the
dispatch path for every operation recall forwards. Later calls never
look again; an unavailable capability is a no-op that reports ``False``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


def resolve_method(collaborator: Any, name: str) -> Optional[Callable[..., Any]]:
    """Return the bound method if the collaborator exposes a callable ``name``."""
    if collaborator is None:
        return None
    method = getattr(collaborator, name, None)
    return method if callable(method) else None


def _split_persona(persona: Mapping[str, Any]) -> Dict[str, Any]:
    return {"lexicon": persona.get("lexicon"), "syntax": persona.get("syntax")}


class MergerAdapter:
    """Fixed dispatch onto a merger collaborator."""

    def __init__(self, merger: Any = None) -> None:
        self.merger = merger
        self._get_generation_config = resolve_method(merger, "get_generation_config")
        apply_persona = resolve_method(merger, "apply_persona")
        apply_overrides = resolve_method(merger, "apply_lexicon_syntax_overrides")
        self._get_debug_bucket = resolve_method(merger, "get_debug_bucket")

        # Persona: whole persona first, else its lexicon/syntax split.
        if apply_persona is not None:
            self._persona_strategy = apply_persona
        elif apply_overrides is not None:
            self._persona_strategy = lambda persona: apply_overrides(_split_persona(persona))
        else:
            self._persona_strategy = None

        # Overrides: dedicated method first, else passed as a persona.
        if apply_overrides is not None:
            self._overrides_strategy = apply_overrides
        elif apply_persona is not None:
            self._overrides_strategy = apply_persona
        else:
            self._overrides_strategy = None

        if merger is not None and self._get_generation_config is None:
            logger.warning(
                "Merger %s has no get_generation_config; overrides use fallback values",
                type(merger).__name__,
            )

    @property
    def provides_generation_config(self) -> bool:
        return self._get_generation_config is not None

    def get_generation_config(
        self, speaker_id: str, target_id: Optional[str], fallback: Mapping[str, Any]
    ) -> Any:
        """Call the merger. Exceptions propagate to the caller."""
        if self._get_generation_config is None:
            raise LookupError("merger does not provide get_generation_config")
        return self._get_generation_config(speaker_id, target_id, fallback)

    def apply_persona(self, persona: Mapping[str, Any]) -> bool:
        if self._persona_strategy is None:
            return False
        self._persona_strategy(persona)
        return True

    def apply_lexicon_syntax_overrides(self, overrides: Mapping[str, Any]) -> bool:
        if self._overrides_strategy is None:
            return False
        self._overrides_strategy(dict(overrides))
        return True

    def get_debug_bucket(self, name: str) -> Any:
        if self._get_debug_bucket is None:
            return None
        return self._get_debug_bucket(name)


class FunnelsAdapter:
    """Fixed dispatch onto a funnels collaborator.

    ``apply_bias`` is the one required capability. A funnels object without
    it is reported once and bias forwarding stays off.
    """

    def __init__(self, funnels: Any = None) -> None:
        self.funnels = funnels
        self._apply_bias = resolve_method(funnels, "apply_bias")
        self._apply_theme = resolve_method(funnels, "apply_theme")
        self._parameters_strategy = resolve_method(funnels, "apply_parameters") or self._apply_theme

        if funnels is not None and self._apply_bias is None:
            logger.warning(
                "Funnels %s has no apply_bias; subclass recall.protocols.BaseFunnels "
                "for the default implementation",
                type(funnels).__name__,
            )

    @property
    def accepts_bias(self) -> bool:
        return self._apply_bias is not None

    def apply_bias(self, agent_id: str, bias: Any) -> bool:
        if self._apply_bias is None:
            return False
        self._apply_bias(agent_id, bias)
        return True

    def apply_parameters(self, fragment: Any) -> bool:
        if self._parameters_strategy is None:
            return False
        self._parameters_strategy(fragment)
        return True

    def apply_theme(self, theme: Any) -> bool:
        if self._apply_theme is None:
            return False
        self._apply_theme(theme)
        return True


class RelationalAdapter:
    """Fixed dispatch onto the relational engine's optional theme hook."""

    def __init__(self, relational: Any = None) -> None:
        self.relational = relational
        self._apply_theme = resolve_method(relational, "apply_theme")

    def apply_theme(self, theme: Any) -> bool:
        if self._apply_theme is None:
            return False
        self._apply_theme(theme)
        return True


@dataclass
class Collaborators:
    """The resolved adapters recall forwards to."""

    relational: RelationalAdapter
    merger: MergerAdapter
    funnels: FunnelsAdapter

    @classmethod
    def resolve(cls, relational: Any = None, merger: Any = None, funnels: Any = None) -> "Collaborators":
        return cls(
            relational=RelationalAdapter(relational),
            merger=MergerAdapter(merger),
            funnels=FunnelsAdapter(funnels),
        )
