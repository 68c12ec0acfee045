"""Interactive conversation loop wired to recall.

Each user line goes through the acquisition gate; accepted utterances are
recorded and the speaker's bias pushed to funnels. The agent replies using
recall's generation overrides, and its reply is acquired the same way.
"""

from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from recall.cli.commands.helpers import options_from_args
from recall.discovery import CollaboratorBundle, build_collaborators
from recall.engine import Recall
from recall.logging_config import setup_recall_logging
from recall.serializers import bias_to_dict, overrides_to_dict, profile_to_dict
from recall.validation import clean_utterance

logger = logging.getLogger(__name__)

COMMANDS = {
    "/bias": "show current recall bias for the agent",
    "/funnels": "show current funnels global state",
    "/rel": "show relational snapshot (you -> agent)",
    "/stats": "show acquisition stats",
    "/lex": "show latest stance/template/lexicon for you and agent",
    "/exit": "quit",
}
CHANNELS = ["cli"]
PROMPT = "\n" + "*" * 50 + "\nMe: "


async def _resolve(value: Any) -> Any:
    """Await collaborator results that are coroutines; pass others through."""
    if inspect.isawaitable(value):
        return await value
    return value


def _pr(obj: Any) -> str:
    return json.dumps(obj, indent=2, default=str)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


class InteractiveSession:
    """One user talking to one agent through the collaborators."""

    def __init__(
        self,
        recall: Recall,
        bundle: CollaboratorBundle,
        *,
        user_id: str = "Me",
        agent_id: str = "Agent",
        rng: Optional[random.Random] = None,
        out: Callable[[str], None] = print,
    ) -> None:
        self.recall = recall
        self.bundle = bundle
        self.user_id = user_id
        self.agent_id = agent_id
        self.rng = rng or random.Random()
        self.out = out
        self.last_merge: Dict[str, Dict[str, Any]] = {}

    async def acquire_and_remember(
        self, *, text: str, speaker_id: str, target_id: str, source_type: str, direction: str
    ) -> Dict[str, Any]:
        result = await _resolve(
            self.bundle.acquisition.consider(
                {
                    "text": text,
                    "speaker_id": speaker_id,
                    "target_id": target_id,
                    "direction": direction,
                    "source_type": source_type,
                    "channels": list(CHANNELS),
                }
            )
        )
        merger_result = _field(result, "merger_result")
        if _field(result, "decision") == "accept" and merger_result:
            merge = {
                "stance": _field(merger_result, "stance"),
                "template": _field(merger_result, "template"),
                "lexicon": _field(merger_result, "lexicon"),
            }
            self.last_merge[speaker_id] = merge
            self.recall.record_acquisition(
                {
                    "speaker_id": speaker_id,
                    "target_id": target_id,
                    **merge,
                    "score": _field(result, "score", 0),
                    "source_type": source_type,
                    "channels": list(CHANNELS),
                    "snapshot": _field(result, "snapshot"),
                }
            )
            return {"result": result, "bias": self.recall.apply_funnel_bias(speaker_id)}
        return {"result": result, "bias": None}

    async def handle_command(self, cmd: str) -> None:
        if cmd == "/bias":
            profile = self.recall.get_agent_profile(self.agent_id)
            bias = self.recall.get_funnel_bias(self.agent_id)
            self.out(f"\n[Recall bias for agent] {self.agent_id}")
            self.out(_pr({"bias": bias.to_dict(), "samples": profile.samples if profile else 0}))
        elif cmd == "/funnels":
            self.out("\n[Funnels global state]")
            self.out(_pr(self.bundle.funnels.get_global_state()))
        elif cmd == "/rel":
            try:
                rel = self.bundle.relational.get_interaction(self.user_id, self.agent_id)
                self.out("\n[Relational snapshot you -> agent]")
                self.out(_pr(_field(rel, "state")))
            except Exception as exc:
                logger.debug("Relational snapshot unavailable: %s", exc)
                self.out("\n[Relational snapshot not available yet]")
        elif cmd == "/stats":
            self.out("\n[Acquisition stats]")
            self.out(_pr(self.bundle.acquisition.get_stats()))
        elif cmd == "/lex":
            merger = self.recall.collaborators.merger
            self.out("\n[Most recent merged stance/template/lexicon]")
            self.out(
                _pr(
                    {
                        "agent": self.last_merge.get(self.agent_id) or "(none yet)",
                        "user": self.last_merge.get(self.user_id) or "(none yet)",
                    }
                )
            )
            self.out("\n[Merger buckets - learned templates and lexicon samples]")
            self.out(
                _pr(
                    {
                        name: merger.get_debug_bucket(name) or "(empty)"
                        for name in ("neutral", "supportive", "defensive")
                    }
                )
            )
        else:
            self.out("Unknown command.")

    async def handle_turn(self, user_text: str) -> Dict[str, Any]:
        await self.acquire_and_remember(
            text=user_text,
            speaker_id=self.user_id,
            target_id=self.agent_id,
            source_type="user",
            direction="incoming",
        )
        overrides = self.recall.get_generation_overrides(
            self.agent_id, self.user_id, {"stance": "neutral"}
        )
        turn = await _resolve(
            self.bundle.relational.process_turn(
                self.agent_id,
                user_text,
                from_user_id=self.user_id,
                generation_config=overrides.to_dict(),
            )
        )
        agent_text = _field(_field(turn, "base_response") or {}, "text") or "(no text generated)"
        self.out(f"\n{self.agent_id}: {agent_text}")

        agent_acq = await self.acquire_and_remember(
            text=agent_text,
            speaker_id=self.agent_id,
            target_id=self.user_id,
            source_type="internal",
            direction="outgoing",
        )
        turn_count = self.rng.randint(1, 6)
        self.bundle.funnels.update(turn_count)
        bias = self.recall.get_funnel_bias(self.agent_id)
        score = _field(agent_acq["result"], "score", 0) or 0
        telemetry = {
            "agent_acquisition": {
                "decision": _field(agent_acq["result"], "decision"),
                "score": round(float(score), 3),
            },
            "recall_bias": bias_to_dict(bias, digits=3),
            "funnels_energy_mean": _field(self.bundle.funnels.get_global_state(), "energy_mean"),
            "generation_config": overrides_to_dict(overrides, template_sample=3),
        }
        self.out(f"\n[Turn telemetry x {turn_count}]")
        self.out(_pr(telemetry))
        return telemetry

    async def run(self, read_line: Callable[[str], Awaitable[Optional[str]]]) -> None:
        """Loop until ``/exit`` or end of input."""
        self.out(f"You are talking to agent: {self.agent_id}")
        self.out("Type messages and press enter. Commands:\n")
        for cmd, help_text in COMMANDS.items():
            self.out(f"  {cmd:<10} - {help_text}")
        while True:
            line = await read_line(PROMPT)
            if line is None:
                break
            trimmed = line.strip()
            if not trimmed:
                continue
            if trimmed == "/exit":
                break
            if trimmed.startswith("/"):
                await self.handle_command(trimmed)
                continue
            try:
                text = clean_utterance(trimmed)
            except ValueError as exc:
                self.out(f"Message ignored: {exc}")
                continue
            await self.handle_turn(text)
        self.final_diagnostics()

    def final_diagnostics(self) -> None:
        self.out("\nFinal diagnostics:")
        self.out("\n[Acquisition stats]")
        self.out(_pr(self.bundle.acquisition.get_stats()))
        self.out(f"\n[Recall profile for agent] {self.agent_id}")
        profile = self.recall.get_agent_profile(self.agent_id)
        self.out(_pr(profile_to_dict(profile, digits=4) if profile else {}))
        self.out("\n[Funnels global state]")
        self.out(_pr(self.bundle.funnels.get_global_state()))
        self.out("\n[Network social dynamics]")
        self.out(_pr(self.bundle.relational.get_social_dynamics()))


async def _stdin_line(prompt: str) -> Optional[str]:
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, input, prompt)
    except EOFError:
        return None


def cmd_interactive(args: argparse.Namespace) -> int:
    """Run the interactive loop against a collaborator factory."""
    setup_recall_logging(agent_id=args.agent_id, level=args.log_level)
    bundle = build_collaborators(args.collaborators, user_id=args.user_id, agent_id=args.agent_id)
    engine = Recall(
        bundle.relational,
        bundle.merger,
        bundle.funnels,
        options_from_args(args),
        event_log=True,
    )
    session = InteractiveSession(engine, bundle, user_id=args.user_id, agent_id=args.agent_id)
    asyncio.run(session.run(_stdin_line))
    return 0
