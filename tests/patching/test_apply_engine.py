"""Tests for the ApplyEngine strategies."""

import random

import pytest

from scrapbox_skill.patching.apply_engine import (
    APPLIED, UNAVAILABLE, ApplyEngine, SimulatedInputStrategy,
    StructuredBridgeStrategy,
)
from scrapbox_skill.patching.errors import LineNotFound, PatchError
from scrapbox_skill.patching.line_planner import plan_operations, split_lines
from scrapbox_skill.patching.models import LineRecord, PageSnapshot, PatchPlan
from scrapbox_skill.patching.scheduler import build_schedule
from scrapbox_skill.patching.surface import KeyAction


def _plan(records, target_text, settle=25):
    snapshot = PageSnapshot(title="page", lines=records, revision="r1")
    ops = plan_operations(snapshot.text, target_text)
    return PatchPlan(
        snapshot=snapshot,
        target_lines=split_lines(target_text),
        groups=build_schedule(ops),
        settle_delay_ms=settle,
    )


class TestSimulatedInput:
    def test_replace_middle_line(self, fake_editor, records):
        recs = records("a", "b", "c")
        editor = fake_editor(recs)
        result = SimulatedInputStrategy(editor).attempt(_plan(recs, "a\nx\nc"))

        assert result.status == APPLIED
        assert editor.texts == ["a", "x", "c"]

    def test_new_first_line_anchors_at_line_start(self, fake_editor, records):
        recs = records("a", "b")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "h\na\nb"))

        assert editor.texts == ["h", "a", "b"]
        assert editor.actions[:3] == [
            KeyAction.LINE_START, KeyAction.LINE_BREAK, KeyAction.LINE_UP,
        ]

    def test_insert_after_anchor_uses_line_end(self, fake_editor, records):
        recs = records("t", "a")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "t\na\nb\nc"))

        assert editor.texts == ["t", "a", "b", "c"]
        assert editor.actions == [KeyAction.LINE_END, KeyAction.LINE_BREAK, ("type", "b\nc")]

    def test_removal_uses_two_deletions(self, fake_editor, records):
        recs = records("t", "a", "b")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nb"))

        assert editor.texts == ["t", "b"]
        assert editor.actions == [KeyAction.DELETE, KeyAction.DELETE]

    def test_removing_blank_line_skips_selection_delete(self, fake_editor, records):
        recs = records("t", "", "b")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nb"))

        assert editor.texts == ["t", "b"]
        assert editor.actions == [KeyAction.DELETE]

    def test_removing_first_line_deletes_forward(self, fake_editor, records):
        recs = records("a", "b", "c")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "c"))

        assert editor.texts == ["c"]
        assert KeyAction.DELETE_FORWARD in editor.actions

    def test_several_groups_in_descending_order(self, fake_editor, records):
        recs = records("t", "a", "b", "c", "d")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nA\nb\nd\ne"))
        assert editor.texts == ["t", "A", "b", "d", "e"]

    def test_settle_delay_after_each_mutation(self, fake_editor, records):
        recs = records("t", "a", "b", "c")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nx\nc", settle=40))
        # Two removals and one insertion
        assert editor.waits == [40, 40, 40]

    def test_random_edits_below_title(self, fake_editor):
        rng = random.Random(99)
        alphabet = ["a", "b", "c", "", "dd"]
        for _ in range(200):
            body = [rng.choice(alphabet) for _ in range(rng.randint(0, 7))]
            target = ["title"] + [rng.choice(alphabet) for _ in range(rng.randint(0, 7))]
            original = split_lines("\n".join(["title"] + body))
            recs = [LineRecord(text=t, id=f"id{i}") for i, t in enumerate(original)]
            editor = fake_editor(recs)
            target_text = "\n".join(target)
            SimulatedInputStrategy(editor).attempt(_plan(recs, target_text))
            assert editor.texts == split_lines(target_text)

    def test_replacing_every_line_types_into_emptied_line(self, fake_editor, records):
        recs = records("a", "b")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "x\ny"))

        assert editor.texts == ["x", "y"]
        assert editor.actions == [
            KeyAction.DELETE, KeyAction.DELETE_FORWARD, KeyAction.DELETE, ("type", "x\ny"),
        ]

    def test_rewriting_single_line_page(self, fake_editor, records):
        recs = records("old title")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, "new title"))
        assert editor.texts == ["new title"]

    def test_clearing_page_leaves_one_empty_line(self, fake_editor, records):
        recs = records("a", "b", "c")
        editor = fake_editor(recs)
        SimulatedInputStrategy(editor).attempt(_plan(recs, ""))
        assert editor.texts == [""]

    def test_removal_trusts_snapshot_text_over_rendering(self, fake_editor, records):
        recs = records("t", "[image.png]", "b")
        editor = fake_editor(recs)
        # Image-only lines render no text
        editor.text_of = lambda element: ""
        SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nb"))

        assert editor.texts == ["t", "b"]
        assert editor.actions == [KeyAction.DELETE, KeyAction.DELETE]

    def test_random_edits_anywhere(self, fake_editor):
        rng = random.Random(4242)
        alphabet = ["a", "b", "c", "", "dd"]
        for _ in range(300):
            original = [rng.choice(alphabet) for _ in range(rng.randint(0, 6))] + ["e"]
            target = [rng.choice(alphabet) for _ in range(rng.randint(0, 6))]
            if target:
                target.append(rng.choice(["a", "x"]))
            recs = [LineRecord(text=t, id=f"id{i}") for i, t in enumerate(original)]
            editor = fake_editor(recs)
            target_text = "\n".join(target)
            SimulatedInputStrategy(editor).attempt(_plan(recs, target_text))
            # An emptied page still shows one blank line
            assert editor.texts == (split_lines(target_text) or [""])

    def test_line_not_found_before_any_edit(self, fake_editor, records):
        recs = records("t", "a", "b")
        editor = fake_editor([])
        with pytest.raises(LineNotFound) as info:
            SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nb"))
        assert info.value.document_modified is False

    def test_failure_after_edits_marks_document_modified(self, fake_editor, records):
        recs = records("t", "a", "b", "c", "d")
        editor = fake_editor(recs)
        original_focus = editor.focus
        calls = []

        def flaky_focus(element):
            calls.append(element)
            if len(calls) > 1:
                raise LineNotFound("line vanished")
            original_focus(element)

        editor.focus = flaky_focus
        with pytest.raises(LineNotFound) as info:
            SimulatedInputStrategy(editor).attempt(_plan(recs, "t\nb\nd"))
        assert info.value.document_modified is True


class TestStructuredBridge:
    def test_updates_only_changed_lines(self, fake_bridge):
        bridge = fake_bridge(["a", "b", "c"])
        plan = _plan([LineRecord("a"), LineRecord("b"), LineRecord("c")], "a\nx\nc")
        result = StructuredBridgeStrategy(bridge).attempt(plan)

        assert result.status == APPLIED
        assert bridge.calls == [("update", "x", 1)]
        assert bridge.committed is True

    def test_appends_extra_lines(self, fake_bridge):
        bridge = fake_bridge(["a"])
        StructuredBridgeStrategy(bridge).attempt(_plan([LineRecord("a")], "a\nb\nc"))
        assert bridge.lines == ["a", "b", "c"]
        assert bridge.calls == [("insert", "b", 1), ("insert", "c", 2)]

    def test_shrink_blanks_trailing_lines(self, fake_bridge):
        bridge = fake_bridge(["a", "b", "c"])
        plan = _plan([LineRecord("a"), LineRecord("b"), LineRecord("c")], "a")
        StructuredBridgeStrategy(bridge).attempt(plan)
        assert bridge.lines == ["a", "", ""]

    def test_missing_api_is_unavailable(self, fake_bridge):
        bridge = fake_bridge(["a"], available=False)
        result = StructuredBridgeStrategy(bridge).attempt(_plan([LineRecord("a")], "b"))
        assert result.status == UNAVAILABLE
        assert bridge.calls == []

    def test_probe_error_is_unavailable(self, fake_bridge):
        bridge = fake_bridge(["a"], probe_error=RuntimeError("evaluate failed"))
        result = StructuredBridgeStrategy(bridge).attempt(_plan([LineRecord("a")], "b"))
        assert result.status == UNAVAILABLE
        assert "evaluate failed" in result.reason

    def test_no_bridge_is_unavailable(self):
        result = StructuredBridgeStrategy(None).attempt(_plan([LineRecord("a")], "b"))
        assert result.status == UNAVAILABLE

    def test_failure_before_first_edit_is_unavailable(self, fake_bridge):
        bridge = fake_bridge(["a"], fail_after=0)
        result = StructuredBridgeStrategy(bridge).attempt(_plan([LineRecord("a")], "b"))
        assert result.status == UNAVAILABLE

    def test_failure_after_edits_propagates(self, fake_bridge):
        bridge = fake_bridge(["a", "b"], fail_after=1)
        plan = _plan([LineRecord("a"), LineRecord("b")], "x\ny")
        with pytest.raises(RuntimeError, match="bridge went away"):
            StructuredBridgeStrategy(bridge).attempt(plan)


class TestApplyEngine:
    def test_prefers_fast_path(self, fake_editor, fake_bridge, records):
        recs = records("a", "b")
        editor = fake_editor(recs)
        bridge = fake_bridge(["a", "b"])
        result = ApplyEngine.for_page(editor, bridge).apply(_plan(recs, "a\nc"))

        assert result.strategy == "bridge"
        assert bridge.lines == ["a", "c"]
        assert editor.actions == []

    def test_falls_back_when_probe_throws(self, fake_editor, fake_bridge, records):
        recs = records("a", "b")
        editor = fake_editor(recs)
        bridge = fake_bridge(["a", "b"], probe_error=RuntimeError("no scrapbox"))
        result = ApplyEngine.for_page(editor, bridge).apply(_plan(recs, "a\nc"))

        assert result.strategy == "input"
        assert editor.texts == ["a", "c"]

    def test_falls_back_without_bridge(self, fake_editor, records):
        recs = records("a", "b")
        editor = fake_editor(recs)
        result = ApplyEngine.for_page(editor).apply(_plan(recs, "a\nb\nc"))
        assert result.strategy == "input"
        assert editor.texts == ["a", "b", "c"]

    def test_no_strategy_applies(self):
        with pytest.raises(PatchError):
            ApplyEngine([StructuredBridgeStrategy(None)]).apply(
                _plan([LineRecord("a")], "b"))
