import logging
import os
import sys
from datetime import datetime


def setup_logger(log_dir: str = ".scrapbox-skill/logs",
                 verbose: bool = False) -> logging.Logger:
    """Creates a file logger. All verbose output goes here.

    With *verbose*, INFO and above are echoed to stderr as well.
    """
    logger = logging.getLogger("scrapbox_skill")
    logger.setLevel(logging.DEBUG)

    # File handler — captures everything
    try:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(log_dir, f"scrapbox_{timestamp}.log")
        fh = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        print(f"  [WARN] Cannot write logs to {log_dir}: {exc}", file=sys.stderr)
    else:
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
        ))
        logger.addHandler(fh)

    if verbose:
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(logging.INFO)
        sh.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(sh)

    return logger


def format_stats(stats: dict) -> str:
    """Render :func:`~scrapbox_skill.metrics.read_patch_stats` output."""
    lines = [
        f"Patches:        {stats['total_patches']}",
        f"Success rate:   {stats['success_rate']}%",
        f"Fast path rate: {stats['fast_path_rate']}%",
        f"Avg groups:     {stats['avg_groups']}",
        f"Dry runs:       {stats['dry_runs']}",
    ]
    if stats["error_kinds"]:
        lines.append("Errors:")
        for kind, count in sorted(stats["error_kinds"].items(),
                                  key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"  {kind}: {count}")
    return "\n".join(lines)
