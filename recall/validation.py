"""Input validation for recall.

Acquisition payloads arriving from outside the process (replay files, the
interactive CLI) are checked against ``ACQUISITION_EVENT_SCHEMA`` before they
reach the engine. The engine itself stays lenient and never raises on
malformed input; validation happens at these outer edges.

Helpers:
- ``clean_utterance``: control-char stripping and length check for typed text
- ``validate_event``: JSON Schema check of one acquisition payload
"""

import logging
import re
from typing import Any, Dict, List

from jsonschema import Draft7Validator

from recall.types import LEXICAL_CATEGORY_VALUES

logger = logging.getLogger(__name__)

# Longest utterance the interactive loop accepts.
MAX_UTTERANCE_LENGTH = 4000

# Control characters other than tab and newline.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_TOKEN_LIST = {"type": "array", "items": {"type": ["string", "null"]}}

ACQUISITION_EVENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["speaker_id"],
    "properties": {
        "speaker_id": {"type": "string", "minLength": 1},
        "target_id": {"type": ["string", "null"]},
        "stance": {"type": "string"},
        "template": {"type": "string"},
        "lexicon": {
            "type": "object",
            "properties": {category: _TOKEN_LIST for category in LEXICAL_CATEGORY_VALUES},
        },
        "score": {"type": "number"},
        "source_type": {"type": "string"},
        "channels": {"type": "array", "items": {"type": ["string", "null"]}},
        "snapshot": {
            "type": ["object", "null"],
            "properties": {
                "trust": {"type": "number"},
                "comfort": {"type": "number"},
                "alignment": {"type": "number"},
                "energy": {"type": "number"},
                "stance_band": {"type": ["string", "null"]},
                "stance": {"type": ["string", "null"]},
            },
        },
        "timestamp": {"type": ["number", "string"]},
    },
}

Draft7Validator.check_schema(ACQUISITION_EVENT_SCHEMA)
_EVENT_VALIDATOR = Draft7Validator(ACQUISITION_EVENT_SCHEMA)


def validate_event(payload: Any) -> List[str]:
    """Return human-readable schema errors for an acquisition payload.

    An empty list means the payload is valid.
    """
    errors = sorted(_EVENT_VALIDATOR.iter_errors(payload), key=lambda err: list(err.path))
    messages = []
    for err in errors:
        location = ".".join(str(p) for p in err.path) or "<root>"
        messages.append(f"{location}: {err.message}")
    return messages


def clean_utterance(text: Any, max_length: int = MAX_UTTERANCE_LENGTH) -> str:
    """Strip control characters from a typed utterance.

    Raises:
        ValueError: If nothing printable is left or the text is too long.
    """
    if not isinstance(text, str):
        raise ValueError(f"utterance must be a string, got {type(text).__name__}")
    cleaned = _CONTROL_CHARS.sub("", text).strip()
    if not cleaned:
        raise ValueError("utterance is empty")
    if len(cleaned) > max_length:
        raise ValueError(f"utterance too long ({len(cleaned)} characters, max {max_length})")
    return cleaned
