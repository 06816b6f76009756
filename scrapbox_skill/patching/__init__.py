"""Diff-driven page patching — plan line edits and replay them on a live page."""

from .errors import (
    PatchError, NoPatchFound, PatchApplyFailed, ConcurrentModification,
    LineNotFound, VerificationFailed,
)
from .models import (
    LineRecord, PageSnapshot, RemoveOp, InsertOp, OperationGroup, LineRef,
    PatchOptions, PatchPlan,
)
from .diff_parser import DiffParser, FilePatch, DiffHunk
from .line_planner import plan_operations, apply_operations, split_lines
from .scheduler import group_operations, schedule, build_schedule
from .surface import InputSurface, MutationBridge, BridgeUnavailable, KeyAction
from .locator import LineLocator
from .apply_engine import (
    ApplyEngine, AttemptResult, MutationStrategy, StructuredBridgeStrategy,
    SimulatedInputStrategy,
)
from .verifier import verify
from .patcher import PagePatcher, PatchReport

__all__ = [
    "PatchError", "NoPatchFound", "PatchApplyFailed", "ConcurrentModification",
    "LineNotFound", "VerificationFailed",
    "LineRecord", "PageSnapshot", "RemoveOp", "InsertOp", "OperationGroup",
    "LineRef", "PatchOptions", "PatchPlan",
    "DiffParser", "FilePatch", "DiffHunk",
    "plan_operations", "apply_operations", "split_lines",
    "group_operations", "schedule", "build_schedule",
    "InputSurface", "MutationBridge", "BridgeUnavailable", "KeyAction",
    "LineLocator",
    "ApplyEngine", "AttemptResult", "MutationStrategy",
    "StructuredBridgeStrategy", "SimulatedInputStrategy",
    "verify",
    "PagePatcher", "PatchReport",
]
