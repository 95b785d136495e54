"""
Edit metrics — one JSONL line per file outcome, plus rolling stats.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def log_edit_metric(data: dict, metrics_path: str) -> None:
    """Append a single edit metric entry to the JSONL log.

    Parameters
    ----------
    data:
        Metric fields to log (path, status, reason, added, removed, ...).
    metrics_path:
        The JSONL file; its directory is created on demand.
    """
    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(os.path.abspath(metrics_path)), exist_ok=True)
        with open(metrics_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Edit] Failed to write metrics: %s", exc)


def read_edit_stats(metrics_path: str, last_n: int = 50) -> dict:
    """Compute rolling statistics from the metrics log.

    Returns
    -------
    dict
        ``total``, ``applied_rate``, ``skipped_rate``, ``failed_rate``
        (percentages), ``reasons`` (reason -> count) and
        ``avg_lines_changed`` over applied edits.
    """
    entries: list[dict] = []
    if os.path.isfile(metrics_path):
        try:
            with open(metrics_path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        try:
                            entries.append(json.loads(line))
                        except json.JSONDecodeError:
                            continue
        except OSError as exc:
            logger.warning("[Edit] Failed to read metrics: %s", exc)

    entries = entries[-last_n:]

    if not entries:
        return {
            "total": 0,
            "applied_rate": 0.0,
            "skipped_rate": 0.0,
            "failed_rate": 0.0,
            "reasons": {},
            "avg_lines_changed": 0.0,
        }

    total = len(entries)
    statuses = Counter(e.get("status", "unknown") for e in entries)
    reasons = Counter(e["reason"] for e in entries if e.get("reason"))
    changed = [
        e.get("added", 0) + e.get("removed", 0)
        for e in entries if e.get("status") == "applied"
    ]

    return {
        "total": total,
        "applied_rate": statuses["applied"] / total * 100,
        "skipped_rate": statuses["skipped"] / total * 100,
        "failed_rate": statuses["failed"] / total * 100,
        "reasons": dict(reasons.most_common()),
        "avg_lines_changed": sum(changed) / len(changed) if changed else 0.0,
    }
