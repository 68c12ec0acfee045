"""Shared helper functions for CLI commands."""

import argparse
import json
from pathlib import Path
from typing import Any, Dict, Optional


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def non_negative_float(value: str) -> float:
    """argparse type for limits and rates."""
    try:
        fvalue = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected a number, got '{value}'")
    if fvalue != fvalue or fvalue in (float("inf"), float("-inf")):
        raise argparse.ArgumentTypeError(f"Expected a finite number, got '{value}'")
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"Expected a non-negative number, got {fvalue}")
    return fvalue


def positive_float(value: str) -> float:
    fvalue = non_negative_float(value)
    if fvalue == 0:
        raise argparse.ArgumentTypeError("Expected a positive number, got 0")
    return fvalue


def load_options_file(path: Optional[str]) -> Dict[str, Any]:
    """Load recall options from a JSON file.

    The file may hold the options directly or under a ``recall`` key.

    Raises:
        ValueError: If the file is not a JSON object.
    """
    if not path:
        return {}
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")
    recall_section = data.get("recall")
    return dict(recall_section) if isinstance(recall_section, dict) else data


def options_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Merge an options file with explicit CLI overrides (CLI wins)."""
    options = load_options_file(getattr(args, "config", None))
    for name in (
        "min_samples_for_bias",
        "max_energy_scale",
        "max_novelty_bias",
        "learning_aggressiveness",
        "decay_rate",
    ):
        value = getattr(args, name, None)
        if value is not None:
            options[name] = value
    return options
