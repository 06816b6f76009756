"""
Page patcher — the full patch pipeline for one page.

read snapshot -> apply diff to its text -> plan line operations ->
schedule -> open the live page -> (staleness check) -> edit -> verify.
"""

from __future__ import annotations

import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .apply_engine import ApplyEngine
from .diff_parser import DiffParser
from .errors import ConcurrentModification, PatchError
from .line_planner import plan_operations, split_lines
from .models import PageSnapshot, PatchOptions, PatchPlan
from .scheduler import build_schedule
from .surface import InputSurface, MutationBridge
from .verifier import verify

logger = logging.getLogger(__name__)


class PageSource(Protocol):
    """Reads page state; implemented by :class:`~scrapbox_skill.client.ScrapboxClient`."""

    def read_snapshot(self, title: str) -> PageSnapshot: ...

    def read_revision(self, title: str) -> Any: ...

    def read_text(self, title: str) -> str: ...


class PageEditor(Protocol):
    """An open live page."""
    surface: InputSurface
    bridge: Optional[MutationBridge]


EditorOpener = Callable[[str, int], AbstractContextManager]
EngineFactory = Callable[[InputSurface, Optional[MutationBridge]], ApplyEngine]


@dataclass
class PatchReport:
    """What the last :meth:`PagePatcher.patch` call did."""
    title: str
    operations: int = 0
    groups: int = 0
    strategy: str = ""
    mutations: int = 0
    dry_run: bool = False
    outcome: str = "pending"
    error_kind: str = ""
    document_modified: bool = False
    duration_s: float = 0.0

    def as_metric(self) -> dict:
        return {
            "page": self.title,
            "operations": self.operations,
            "groups": self.groups,
            "strategy": self.strategy,
            "mutations": self.mutations,
            "dry_run": self.dry_run,
            "outcome": self.outcome,
            "error_kind": self.error_kind,
            "document_modified": self.document_modified,
            "duration_s": round(self.duration_s, 3),
        }


class PagePatcher:
    """Apply unified diffs to live pages.

    Parameters
    ----------
    source:
        Reads snapshots, revisions and canonical text.
    open_editor:
        ``open_editor(title, wait_ms)`` returns a context manager yielding
        a :class:`PageEditor` for the live page.
    engine_factory:
        Builds the :class:`ApplyEngine` for an open page.
    """

    def __init__(
        self,
        source: PageSource,
        open_editor: EditorOpener,
        engine_factory: EngineFactory = ApplyEngine.for_page,
        parser: Optional[DiffParser] = None,
    ) -> None:
        self._source = source
        self._open_editor = open_editor
        self._engine_factory = engine_factory
        self._parser = parser or DiffParser()
        self.last_report: Optional[PatchReport] = None

    def patch(self, title: str, diff_text: str,
              options: Optional[PatchOptions] = None) -> Optional[str]:
        """Apply *diff_text* to page *title*.

        Returns the patched text on a dry run, otherwise ``None`` once the
        page has been edited and verified.

        Raises
        ------
        PatchError
            One of its subclasses; see :mod:`scrapbox_skill.patching.errors`.
        """
        options = options or PatchOptions()
        report = PatchReport(title=title, dry_run=options.dry_run)
        self.last_report = report
        started = time.monotonic()
        try:
            result = self._run(title, diff_text, options, report)
            if report.outcome == "pending":
                report.outcome = "dry_run" if options.dry_run else "applied"
            return result
        except PatchError as exc:
            report.outcome = "failed"
            report.error_kind = type(exc).__name__
            report.document_modified = exc.document_modified
            raise
        except Exception as exc:
            report.outcome = "failed"
            report.error_kind = type(exc).__name__
            raise
        finally:
            report.duration_s = time.monotonic() - started

    def _run(self, title: str, diff_text: str, options: PatchOptions,
             report: PatchReport) -> Optional[str]:
        snapshot = self._source.read_snapshot(title)
        original_text = snapshot.text
        target_text = self._parser.apply_diff(original_text, diff_text, fuzz=options.fuzz)

        if options.dry_run:
            logger.info("[Patch] Dry run for %r, page left untouched", title)
            return target_text

        ops = plan_operations(original_text, target_text)
        report.operations = len(ops)
        if not ops:
            logger.info("[Patch] %r already matches the patched text", title)
            report.outcome = "unchanged"
            return None

        plan = PatchPlan(
            snapshot=snapshot,
            target_lines=split_lines(target_text),
            groups=build_schedule(ops),
            settle_delay_ms=options.settle_delay_ms,
        )
        report.groups = len(plan.groups)
        logger.info("[Patch] %r: %d operations in %d groups",
                    title, len(ops), len(plan.groups))

        with self._open_editor(title, options.wait_ms) as editor:
            engine = self._engine_factory(editor.surface, editor.bridge)
            if options.check_staleness:
                self._check_revision(title, snapshot.revision)
            attempt = engine.apply(plan)
            report.strategy = attempt.strategy
            report.mutations = attempt.mutations
            report.document_modified = attempt.mutations > 0
            if options.wait_ms > 0:
                editor.surface.wait(options.wait_ms)

        verify(lambda: self._source.read_text(title), target_text)
        return None

    def _check_revision(self, title: str, revision: Any) -> None:
        current = self._source.read_revision(title)
        if current != revision:
            raise ConcurrentModification(
                f"Page {title!r} changed since it was read "
                f"(revision {revision!r} -> {current!r})"
            )
