"""
Line planner — turns (original text, target text) into anchored
remove/insert operations over the original line sequence.
"""

from __future__ import annotations

import difflib
import logging

from .models import InsertOp, PatchOperation, RemoveOp

logger = logging.getLogger(__name__)


def split_lines(text: str) -> list[str]:
    """Split on ``\\n``, dropping the empty artifact of a final newline."""
    if text == "":
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def plan_operations(original_text: str, target_text: str) -> list[PatchOperation]:
    """Compute the operations that turn *original_text* into *target_text*.

    Every ``index`` is a position in the original line sequence. Removed
    runs consume original lines and added runs do not, so a replaced block
    yields a removal and an insertion anchored at the same index.
    """
    original = split_lines(original_text)
    target = split_lines(target_text)

    ops: list[PatchOperation] = []
    matcher = difflib.SequenceMatcher(None, original, target, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if tag in ("delete", "replace"):
            ops.append(RemoveOp(index=i1, count=i2 - i1))
        if tag in ("insert", "replace"):
            ops.append(InsertOp(index=i1, lines=tuple(target[j1:j2])))

    logger.debug(
        "[Plan] %d original lines -> %d target lines, %d operations",
        len(original), len(target), len(ops),
    )
    return ops


def apply_operations(lines: list[str], ops: list[PatchOperation]) -> list[str]:
    """Apply *ops* to a copy of *lines* and return the result.

    Operations are applied from the highest anchor down so that every
    index still refers to the original sequence when it is used; at one
    anchor, removals happen before insertions.
    """
    result = list(lines)
    ordered = sorted(
        enumerate(ops),
        key=lambda item: (-item[1].index, isinstance(item[1], InsertOp), item[0]),
    )
    inserted_at: dict[int, int] = {}
    for _, op in ordered:
        if isinstance(op, RemoveOp):
            del result[op.index:op.index + op.count]
        else:
            pos = op.index + inserted_at.get(op.index, 0)
            result[pos:pos] = list(op.lines)
            inserted_at[op.index] = inserted_at.get(op.index, 0) + len(op.lines)
    return result
