"""
Recall CLI - behavioral memory and funnel bias for conversational agents.

Usage:
    recall replay EVENTS.jsonl [--config FILE] [--agent ID] [--apply-bias] [--json]
    recall interactive --collaborators NAME|module:attr [--user ID] [--agent ID]
    recall discover [--json]
"""

import argparse
import logging
import sys
from typing import List, Optional

from recall.cli.commands import cmd_discover, cmd_interactive, cmd_replay
from recall.cli.commands.helpers import non_negative_float, positive_float
from recall.protocols import RecallError

logger = logging.getLogger(__name__)


def _add_tuning_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", "-c", help="JSON file with recall options")
    parser.add_argument(
        "--min-samples",
        dest="min_samples_for_bias",
        type=positive_float,
        help="Samples at which warmup saturates",
    )
    parser.add_argument("--max-energy-scale", dest="max_energy_scale", type=non_negative_float)
    parser.add_argument("--max-novelty-bias", dest="max_novelty_bias", type=non_negative_float)
    parser.add_argument(
        "--learning-aggressiveness", dest="learning_aggressiveness", type=non_negative_float
    )
    parser.add_argument(
        "--decay-rate", dest="decay_rate", type=non_negative_float, help="Decay rate per second"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recall",
        description="Behavioral memory and funnel bias for conversational agents",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # replay
    p_replay = subparsers.add_parser("replay", help="Replay a JSON Lines event file")
    p_replay.add_argument("events", help="Path to a .jsonl file of acquisition events")
    p_replay.add_argument("--agent", "-a", help="Only report this agent")
    p_replay.add_argument(
        "--apply-bias", action="store_true", help="Push bias into default funnels after each event"
    )
    p_replay.add_argument("--json", "-j", action="store_true")
    _add_tuning_arguments(p_replay)

    # interactive
    p_interactive = subparsers.add_parser("interactive", help="Talk to an agent")
    p_interactive.add_argument(
        "--collaborators",
        required=True,
        help="Collaborator factory: entry point name or module:attr",
    )
    p_interactive.add_argument("--user", dest="user_id", default="Me")
    p_interactive.add_argument("--agent", dest="agent_id", default="Agent")
    _add_tuning_arguments(p_interactive)

    # discover
    p_discover = subparsers.add_parser("discover", help="List collaborator factories")
    p_discover.add_argument("--json", "-j", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.getLevelName(str(args.log_level).upper())
    logging.basicConfig(level=level if isinstance(level, int) else logging.WARNING)

    try:
        if args.command == "replay":
            return cmd_replay(args)
        elif args.command == "interactive":
            return cmd_interactive(args)
        elif args.command == "discover":
            return cmd_discover(args)
    except RecallError as e:
        logger.error("%s", e)
        return 1
    except (ValueError, TypeError, OSError) as e:
        logger.error("Input error: %s", e)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
