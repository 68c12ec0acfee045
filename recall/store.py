"""Profile store.

Owns the mapping from agent id to its single mutable ``AgentProfile``.
Profiles are created lazily on first use and live for the process lifetime.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from recall.types import AgentProfile

logger = logging.getLogger(__name__)


class ProfileStore:
    """In-memory profile store with one lock per agent.

    Mutations of a profile (decay followed by increments) must run while
    holding ``lock_for(agent_id)`` so concurrent reports for the same agent
    cannot interleave.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._profiles: Dict[str, AgentProfile] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def ensure(self, agent_id: str) -> AgentProfile:
        """Return the agent's profile, creating a zeroed one if absent."""
        profile = self._profiles.get(agent_id)
        if profile is not None:
            return profile
        with self._guard:
            profile = self._profiles.get(agent_id)
            if profile is None:
                profile = AgentProfile(agent_id=agent_id, last_updated=self._clock())
                self._profiles[agent_id] = profile
                self._locks.setdefault(agent_id, threading.RLock())
                logger.debug("Created recall profile for %s", agent_id)
        return profile

    def get(self, agent_id: str) -> Optional[AgentProfile]:
        """Return the agent's profile or None. Never creates."""
        return self._profiles.get(agent_id)

    def lock_for(self, agent_id: str) -> threading.RLock:
        """Return the agent's lock, creating it if needed."""
        lock = self._locks.get(agent_id)
        if lock is None:
            with self._guard:
                lock = self._locks.setdefault(agent_id, threading.RLock())
        return lock

    def agent_ids(self) -> List[str]:
        return list(self._profiles)
