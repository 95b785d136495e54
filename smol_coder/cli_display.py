import logging
import os
from datetime import datetime

ICONS = {
    "applied": "✔",
    "failed":  "✘",
    "skipped": "–",
}


def setup_logger(log_dir: str = ".smol/logs") -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"smol_{timestamp}.log")

    logger = logging.getLogger("smol_coder")
    logger.setLevel(logging.DEBUG)

    # One log file per process: replace the handler of an earlier call
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()

    # Everything at DEBUG goes to the file
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)

    return logger


def format_outcome(outcome) -> str:
    """One status line for an ``ApplyOutcome``."""
    icon = ICONS.get(outcome.status, "?")
    line = f"  {icon} {outcome.path}"
    if outcome.applied and outcome.diff is not None:
        line += f"  (+{outcome.diff.added} -{outcome.diff.removed})"
    elif outcome.reason:
        line += f"  [{outcome.reason}] {outcome.message}"
    return line
