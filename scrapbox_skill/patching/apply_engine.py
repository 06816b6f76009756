"""
Apply engine — executes a patch plan against a live page.

Two strategies are tried in priority order:

* :class:`StructuredBridgeStrategy` rewrites lines through the page's own
  line API when the page exposes one (fast path).
* :class:`SimulatedInputStrategy` replays the scheduled operation groups
  as focus/selection/keystroke input (slow path).

A strategy reports :data:`UNAVAILABLE` only when it could not start
without touching the page; the engine then moves on to the next one.
Anything that fails after the page has been touched propagates.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import PatchError
from .locator import LineLocator
from .models import LineRecord, LineRef, OperationGroup, PatchPlan
from .surface import InputSurface, KeyAction, MutationBridge

logger = logging.getLogger(__name__)

APPLIED = "applied"
UNAVAILABLE = "unavailable"


@dataclass
class AttemptResult:
    """Outcome of one strategy attempt."""
    status: str
    strategy: str
    mutations: int = 0
    reason: str = ""

    @property
    def applied(self) -> bool:
        return self.status == APPLIED


class MutationStrategy(ABC):
    """One way of turning a :class:`PatchPlan` into page edits."""

    name: str = ""

    @abstractmethod
    def attempt(self, plan: PatchPlan) -> AttemptResult:
        """Apply *plan*, or report :data:`UNAVAILABLE` without side effects."""


# ----------------------------------------------------------------------
# Fast path
# ----------------------------------------------------------------------

class StructuredBridgeStrategy(MutationStrategy):
    """Rewrite the page line by line through the host's line API.

    When the target is shorter than the page, the excess trailing lines
    are blanked rather than removed; the host API offers no line removal.
    """

    name = "bridge"

    def __init__(self, bridge: Optional[MutationBridge]) -> None:
        self._bridge = bridge

    def attempt(self, plan: PatchPlan) -> AttemptResult:
        if self._bridge is None:
            return AttemptResult(UNAVAILABLE, self.name, reason="no bridge")

        try:
            self._bridge.probe()
            current = self._bridge.line_texts()
        except Exception as exc:
            logger.info("[Apply] Line API unavailable: %s", exc)
            return AttemptResult(UNAVAILABLE, self.name, reason=str(exc))

        target = plan.target_lines
        mutations = 0
        try:
            overlap = min(len(current), len(target))
            for i in range(overlap):
                if current[i] != target[i]:
                    self._bridge.update_line(target[i], i)
                    mutations += 1
            for i in range(len(current), len(target)):
                self._bridge.insert_line(target[i], i)
                mutations += 1
            for i in range(len(target), len(current)):
                if current[i] != "":
                    self._bridge.update_line("", i)
                    mutations += 1
            self._bridge.wait_for_commit()
        except Exception as exc:
            if mutations == 0:
                logger.info("[Apply] Line API failed before any edit: %s", exc)
                return AttemptResult(UNAVAILABLE, self.name, reason=str(exc))
            logger.error(
                "[Apply] Line API failed after %d edits, page left partially "
                "edited: %s", mutations, exc,
            )
            raise

        logger.info("[Apply] Line API applied %d line edits", mutations)
        return AttemptResult(APPLIED, self.name, mutations=mutations)


# ----------------------------------------------------------------------
# Slow path
# ----------------------------------------------------------------------

class SimulatedInputStrategy(MutationStrategy):
    """Replay operation groups as simulated editing input.

    Groups must arrive in descending index order (see
    :func:`~scrapbox_skill.patching.scheduler.schedule`): every index is
    then still a valid live position when its group runs.
    """

    name = "input"

    def __init__(self, surface: InputSurface,
                 locator: Optional[LineLocator] = None) -> None:
        self._surface = surface
        self._locator = locator or LineLocator(surface)
        self._edits = 0

    def attempt(self, plan: PatchPlan) -> AttemptResult:
        records = plan.snapshot.lines
        settle = plan.settle_delay_ms
        self._edits = 0
        live_count = len(records)

        try:
            for group in plan.groups:
                self._run_group(group, records, live_count, settle)
                live_count += len(group.insert_lines) - group.remove_count
        except PatchError as exc:
            exc.document_modified = exc.document_modified or self._edits > 0
            raise
        except Exception as exc:
            if self._edits:
                logger.error(
                    "[Apply] Input failed after %d edits, page left partially "
                    "edited: %s", self._edits, exc,
                )
            raise

        logger.info("[Apply] Simulated input applied %d groups (%d edits)",
                    len(plan.groups), self._edits)
        return AttemptResult(APPLIED, self.name, mutations=self._edits)

    def _run_group(self, group: OperationGroup, records: list[LineRecord],
                   live_count: int, settle: int) -> None:
        logger.debug("[Apply] Group at %d: remove %d, insert %d",
                     group.index, group.remove_count, len(group.insert_lines))
        # A page always keeps one line; clearing every line leaves it empty
        clears_page = group.index == 0 and group.remove_count >= live_count
        for k in range(group.remove_count):
            last = clears_page and k == group.remove_count - 1
            self._remove_line(group.index, _ref(records, group.index + k, group.index),
                              collapse=not last)
            self._surface.wait(settle)

        if group.insert_lines:
            if clears_page and group.remove_count:
                self._focus(LineRef(index=0))
            else:
                self._open_line(group, records)
            self._surface.type_text("\n".join(group.insert_lines))
            self._edits += 1
            self._surface.wait(settle)

    def _remove_line(self, index: int, ref: LineRef, collapse: bool = True) -> None:
        element = self._focus(ref)
        if ref.text is not None:
            has_text = ref.text != ""
        else:
            has_text = self._surface.text_of(element) != ""
        self._surface.select_content(element)
        if has_text:
            self._edit(KeyAction.DELETE)
        if collapse:
            # Merge the now-empty line into its neighbour
            self._edit(KeyAction.DELETE if index > 0 else KeyAction.DELETE_FORWARD)

    def _open_line(self, group: OperationGroup, records: list[LineRecord]) -> None:
        """Put the caret on a fresh line where the group's lines belong."""
        if group.index == 0:
            # Open a line above whatever is now the first line
            record_index = min(group.remove_count, len(records) - 1)
            self._focus(_ref(records, record_index, 0))
            self._surface.press(KeyAction.LINE_START)
            self._edit(KeyAction.LINE_BREAK)
            self._surface.press(KeyAction.LINE_UP)
        else:
            self._focus(_ref(records, group.index - 1, group.index - 1))
            self._surface.press(KeyAction.LINE_END)
            self._edit(KeyAction.LINE_BREAK)

    def _focus(self, ref: LineRef):
        element = self._locator.locate(ref)
        self._surface.scroll_into_view(element)
        self._surface.focus(element)
        return element

    def _edit(self, action: str) -> None:
        self._surface.press(action)
        self._edits += 1


def _ref(records: Sequence[LineRecord], record_index: int, live_index: int) -> LineRef:
    """Reference the live line at *live_index*, described by a snapshot record."""
    if 0 <= record_index < len(records):
        record = records[record_index]
        return LineRef(index=live_index, id=record.id, text=record.text)
    return LineRef(index=live_index)


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------

class ApplyEngine:
    """Try mutation strategies in order until one applies the plan."""

    def __init__(self, strategies: Sequence[MutationStrategy]) -> None:
        self._strategies = list(strategies)

    @classmethod
    def for_page(cls, surface: InputSurface,
                 bridge: Optional[MutationBridge] = None) -> "ApplyEngine":
        """Fast path through *bridge* when present, else simulated input."""
        return cls([StructuredBridgeStrategy(bridge), SimulatedInputStrategy(surface)])

    def apply(self, plan: PatchPlan) -> AttemptResult:
        for strategy in self._strategies:
            result = strategy.attempt(plan)
            if result.applied:
                return result
            logger.info("[Apply] Strategy %s unavailable (%s), falling back",
                        strategy.name, result.reason)
        raise PatchError("No mutation strategy could apply the patch")
