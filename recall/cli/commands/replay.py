"""Replay recorded acquisition events through a fresh engine."""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict

from recall.cli.commands.helpers import options_from_args, print_json
from recall.engine import Recall
from recall.protocols import BaseFunnels
from recall.serializers import bias_to_dict
from recall.types import normalize_event_payload
from recall.validation import validate_event

logger = logging.getLogger(__name__)


def cmd_replay(args: argparse.Namespace) -> int:
    """Feed a JSON Lines event file to recall and report per-agent bias."""
    funnels = BaseFunnels() if args.apply_bias else None
    engine = Recall(funnels=funnels, options=options_from_args(args))

    accepted = 0
    skipped = 0
    with open(Path(args.events), encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Line %d: invalid JSON (%s); skipped", lineno, exc.msg)
                skipped += 1
                continue
            if isinstance(payload, dict):
                payload = normalize_event_payload(payload)
            errors = validate_event(payload)
            if errors:
                logger.warning("Line %d: %s; skipped", lineno, "; ".join(errors))
                skipped += 1
                continue
            engine.record_acquisition(payload)
            accepted += 1
            if funnels is not None:
                engine.apply_funnel_bias(payload["speaker_id"])

    agent_ids = [args.agent] if args.agent else sorted(engine.agent_ids())
    report: Dict[str, Any] = {"accepted": accepted, "skipped": skipped, "agents": {}}
    for agent_id in agent_ids:
        profile = engine.get_agent_profile(agent_id)
        report["agents"][agent_id] = {
            "samples": round(profile.samples, 4) if profile else 0,
            "bias": bias_to_dict(engine.get_funnel_bias(agent_id), digits=4),
            "statistics": engine.get_statistics(agent_id),
        }
    if funnels is not None:
        report["funnels"] = funnels.get_global_state()

    if args.json:
        print_json(report)
        return 0

    print(f"Replayed {accepted} events ({skipped} skipped)")
    for agent_id, entry in report["agents"].items():
        bias = entry["bias"]
        pref = bias["state_preference"]
        print()
        print(f"  {agent_id}  samples={entry['samples']}")
        print(
            f"    energy={bias['energy_scale']:.3f}  novelty={bias['novelty_scale']:.3f}  "
            f"expressiveness={bias['expressiveness_scale']:.3f}"
        )
        print(
            f"    rut={pref['rut']:.3f}  emerging={pref['emerging']:.3f}  "
            f"growing={pref['growing']:.3f}"
        )
    if funnels is not None:
        state = report["funnels"]
        print()
        print(f"  funnels energy_mean={state['energy_mean']:.4f}")
    return 0
