"""
Operation scheduler — merges operations per anchor index and orders the
groups for execution against a live page.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .models import InsertOp, OperationGroup, PatchOperation, RemoveOp

logger = logging.getLogger(__name__)


def group_operations(ops: Iterable[PatchOperation]) -> dict[int, OperationGroup]:
    """Merge operations sharing an anchor index.

    Remove counts are summed and insert lines concatenated in discovery
    order. A removal and an insertion at the same index merge into the
    same group whichever is seen first.
    """
    groups: dict[int, OperationGroup] = {}
    for op in ops:
        group = groups.setdefault(op.index, OperationGroup(index=op.index))
        if isinstance(op, RemoveOp):
            group.remove_count += op.count
        elif isinstance(op, InsertOp):
            group.insert_lines.extend(op.lines)
        else:
            raise TypeError(f"Unknown patch operation: {op!r}")
    return groups


def schedule(groups: dict[int, OperationGroup]) -> list[OperationGroup]:
    """Return groups in descending index order, dropping empty ones.

    Executing the highest anchor first means no group ever runs after a
    mutation below it, so each anchor is still a valid position on the
    live page when its turn comes.
    """
    ordered = [groups[index] for index in sorted(groups, reverse=True)
               if not groups[index].is_empty]
    logger.debug("[Plan] Execution order: %s",
                 [(g.index, g.remove_count, len(g.insert_lines)) for g in ordered])
    return ordered


def build_schedule(ops: Iterable[PatchOperation]) -> list[OperationGroup]:
    """Group *ops* and return them in execution order."""
    return schedule(group_operations(ops))
