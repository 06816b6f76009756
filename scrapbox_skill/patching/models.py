"""
Data model shared by the patch pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass
class LineRecord:
    """One line of a page as last observed."""
    text: str
    id: Optional[str] = None


@dataclass
class PageSnapshot:
    """Ordered lines of a page plus its revision token."""
    title: str
    lines: list[LineRecord] = field(default_factory=list)
    revision: Any = None

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


@dataclass(frozen=True)
class RemoveOp:
    """Remove ``count`` lines starting at original position ``index``."""
    index: int
    count: int


@dataclass(frozen=True)
class InsertOp:
    """Insert ``lines`` immediately before original position ``index``."""
    index: int
    lines: tuple[str, ...]


PatchOperation = Union[RemoveOp, InsertOp]


@dataclass
class OperationGroup:
    """All operations anchored at one original index."""
    index: int
    remove_count: int = 0
    insert_lines: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.remove_count == 0 and not self.insert_lines


@dataclass(frozen=True)
class LineRef:
    """Logical reference to a line on the live page."""
    index: int
    id: Optional[str] = None
    text: Optional[str] = None


@dataclass
class PatchOptions:
    """Knobs for a single patch invocation."""
    fuzz: int = 0
    check_staleness: bool = False
    settle_delay_ms: int = 100
    wait_ms: int = 1500
    dry_run: bool = False


@dataclass
class PatchPlan:
    """Everything an apply strategy needs for one page."""
    snapshot: PageSnapshot
    target_lines: list[str]
    groups: list[OperationGroup]
    settle_delay_ms: int = 100

    @property
    def original_lines(self) -> list[str]:
        return [line.text for line in self.snapshot.lines]
