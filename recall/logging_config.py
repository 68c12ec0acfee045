"""Logging setup for recall.

``setup_recall_logging`` configures the ``recall`` logger with a daily file
handler. ``log_recall_event`` writes one line per engine event to a separate
daily event log, which is what the CLI tails during a session.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATA_DIR = Path.home() / ".recall"


def get_log_dir() -> Path:
    """Return the log directory, honoring RECALL_DATA_DIR."""
    data_dir = os.environ.get("RECALL_DATA_DIR")
    base = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
    return base / "logs"


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def setup_recall_logging(agent_id: str = "default", level: str = "INFO") -> logging.Logger:
    """Configure the ``recall`` logger.

    Args:
        agent_id: Agent the session is for (recorded in the first log line)
        level: Level name, case-insensitive; invalid names fall back to INFO

    Returns:
        The configured ``recall`` logger
    """
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger("recall")
    logger.setLevel(numeric_level)

    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"local-{_today()}.log"

    has_file = any(
        isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path
        for h in logger.handlers
    )
    if not has_file:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)

    if numeric_level <= logging.DEBUG:
        has_console = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in logger.handlers
        )
        if not has_console:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(console)

    logger.debug("Recall logging initialized for agent=%s", agent_id)
    return logger


def log_recall_event(event_type: str, details: str, agent_id: str = "default") -> None:
    """Append one line to the daily recall event log."""
    log_dir = get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    path = log_dir / f"recall-events-{_today()}.log"
    timestamp = datetime.now(timezone.utc).isoformat()
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(f"{timestamp} | {event_type} | agent={agent_id} | {details}\n")


def log_acquisition(agent_id: str, *, stance: str, samples: float, score: float = 0.0) -> None:
    log_recall_event(
        "acquisition",
        f"stance={stance}, samples={samples:.3f}, score={score:.3f}",
        agent_id=agent_id,
    )


def log_bias(agent_id: str, *, bias, forwarded: bool) -> None:
    log_recall_event(
        "bias",
        f"energy={bias.energy_scale:.3f}, novelty={bias.novelty_scale:.3f}, "
        f"expressiveness={bias.expressiveness_scale:.3f}, forwarded={forwarded}",
        agent_id=agent_id,
    )
