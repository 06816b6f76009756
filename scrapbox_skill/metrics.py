"""
Patch metrics — records every patch run in a JSONL log file.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def log_patch_metric(data: dict, path: str) -> None:
    """Append a single patch metric entry to the JSONL log at *path*.

    Parameters
    ----------
    data:
        Metric fields to log (page, strategy, groups, outcome, etc.).
    path:
        Metrics file; parent directories are created as needed.
    """
    entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
    entry.update(data)

    try:
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("[Metrics] Failed to write metrics: %s", exc)


def read_patch_stats(path: str, last_n: int = 50) -> dict:
    """Compute rolling statistics from the metrics log.

    Parameters
    ----------
    path:
        Metrics file written by :func:`log_patch_metric`.
    last_n:
        Number of most-recent entries to include.

    Returns
    -------
    dict
        ``total_patches``, ``success_rate``, ``fast_path_rate``,
        ``avg_groups``, ``dry_runs`` and ``error_kinds``.
    """
    entries: list[dict] = []
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(json.loads(line))
                    except json.JSONDecodeError:
                        continue
        except OSError as exc:
            logger.warning("[Metrics] Failed to read metrics: %s", exc)

    entries = entries[-last_n:]
    total = len(entries)
    if total == 0:
        return {
            "total_patches": 0,
            "success_rate": 0.0,
            "fast_path_rate": 0.0,
            "avg_groups": 0.0,
            "dry_runs": 0,
            "error_kinds": {},
        }

    applied = [e for e in entries if e.get("outcome") == "applied"]
    succeeded = sum(1 for e in entries
                    if e.get("outcome") in ("applied", "unchanged", "dry_run"))
    fast = sum(1 for e in applied if e.get("strategy") == "bridge")
    errors = Counter(e.get("error_kind") for e in entries if e.get("error_kind"))

    return {
        "total_patches": total,
        "success_rate": round(succeeded / total * 100, 1),
        "fast_path_rate": round(fast / len(applied) * 100, 1) if applied else 0.0,
        "avg_groups": round(sum(e.get("groups", 0) for e in applied) / len(applied), 1)
        if applied else 0.0,
        "dry_runs": sum(1 for e in entries if e.get("outcome") == "dry_run"),
        "error_kinds": dict(errors),
    }
