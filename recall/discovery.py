"""
Collaborator discovery for the recall CLI.

Collaborator factories are registered under the ``recall.collaborators``
entry point group, or named directly as ``module:attr``. A factory is called
with ``user_id`` and ``agent_id`` keyword arguments and returns a
``CollaboratorBundle`` (or a mapping with the same keys).
"""

import importlib
import importlib.metadata
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from recall.protocols import ENTRY_POINT_GROUP_COLLABORATORS, BaseFunnels, CollaboratorError

logger = logging.getLogger(__name__)


@dataclass
class DiscoveredFactory:
    """Metadata about a registered collaborator factory."""

    name: str
    module: str
    attr: str
    dist_name: Optional[str] = None
    dist_version: Optional[str] = None

    @property
    def qualname(self) -> str:
        """Full qualified reference: 'module:attr'."""
        return f"{self.module}:{self.attr}"


@dataclass
class CollaboratorBundle:
    """The collaborators an interactive session runs against."""

    relational: Any
    merger: Any
    acquisition: Any
    funnels: Any = None

    @classmethod
    def coerce(cls, value: Any) -> "CollaboratorBundle":
        if isinstance(value, CollaboratorBundle):
            bundle = value
        elif isinstance(value, Mapping):
            missing = [k for k in ("relational", "merger", "acquisition") if value.get(k) is None]
            if missing:
                raise CollaboratorError(f"Collaborator factory did not provide: {', '.join(missing)}")
            bundle = cls(
                relational=value["relational"],
                merger=value["merger"],
                acquisition=value["acquisition"],
                funnels=value.get("funnels"),
            )
        else:
            raise CollaboratorError(
                f"Collaborator factory returned {type(value).__name__}, expected a bundle or mapping"
            )
        if bundle.funnels is None:
            bundle.funnels = BaseFunnels()
        return bundle


def _get_entry_points() -> list:
    try:
        return list(importlib.metadata.entry_points(group=ENTRY_POINT_GROUP_COLLABORATORS))
    except Exception as exc:
        logger.warning(
            "Failed to read entry points for group '%s': %s", ENTRY_POINT_GROUP_COLLABORATORS, exc
        )
        return []


def discover_factories() -> list:
    """List registered collaborator factories.

    Returns:
        List of DiscoveredFactory, one per entry point.
    """
    found = []
    for ep in _get_entry_points():
        module, _, attr = (ep.value or "").partition(":")
        found.append(
            DiscoveredFactory(
                name=ep.name,
                module=module.strip(),
                attr=attr.strip(),
                dist_name=ep.dist.name if ep.dist is not None else None,
                dist_version=ep.dist.version if ep.dist is not None else None,
            )
        )
    return found


def load_factory(reference: str) -> Callable[..., Any]:
    """Resolve a factory by entry point name or ``module:attr`` path.

    Raises:
        CollaboratorError: If the reference cannot be resolved to a callable.
    """
    if ":" in reference:
        module_name, _, attr_path = reference.partition(":")
        try:
            target: Any = importlib.import_module(module_name)
            for part in attr_path.split("."):
                target = getattr(target, part)
        except (ImportError, AttributeError) as exc:
            raise CollaboratorError(f"Cannot load collaborator factory '{reference}': {exc}") from exc
    else:
        matches = [ep for ep in _get_entry_points() if ep.name == reference]
        if not matches:
            raise CollaboratorError(
                f"No collaborator factory named '{reference}' in '{ENTRY_POINT_GROUP_COLLABORATORS}'"
            )
        if len(matches) > 1:
            raise CollaboratorError(
                f"Ambiguous collaborator factory '{reference}': {len(matches)} matches found"
            )
        try:
            target = matches[0].load()
        except Exception as exc:
            raise CollaboratorError(
                f"Failed to load collaborator factory '{reference}': {exc}"
            ) from exc

    if not callable(target):
        raise CollaboratorError(f"Collaborator factory '{reference}' is not callable")
    return target


def build_collaborators(reference: str, *, user_id: str, agent_id: str) -> CollaboratorBundle:
    """Load a factory and build the session's collaborators."""
    factory = load_factory(reference)
    return CollaboratorBundle.coerce(factory(user_id=user_id, agent_id=agent_id))
