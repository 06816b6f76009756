"""In-memory stand-ins for the live page used by the patching tests."""

import re
from contextlib import contextmanager
from types import SimpleNamespace

import pytest

from scrapbox_skill.patching.models import LineRecord, PageSnapshot
from scrapbox_skill.patching.surface import (
    BridgeUnavailable, InputSurface, KeyAction, MutationBridge,
)

_ID_SELECTOR = re.compile(r'^#L(\w+)$')


class FakeLine:
    def __init__(self, text, id=None):
        self.text = text
        self.id = id

    def __repr__(self):
        return f"FakeLine({self.text!r}, id={self.id!r})"


class FakeEditor(InputSurface):
    """A line editor with a caret, a selection flag and Scrapbox-like keys.

    Lines created by a line break get no id, like freshly inserted lines
    on a real page.
    """

    def __init__(self, records):
        self.lines = [FakeLine(r.text, r.id) for r in records]
        self.row = 0
        self.col = 0
        self.selected = False
        self.actions = []
        self.waits = []
        self.queries = []

    @property
    def texts(self):
        return [line.text for line in self.lines]

    def _index_of(self, element):
        for i, line in enumerate(self.lines):
            if line is element:
                return i
        raise AssertionError(f"{element!r} is no longer on the page")

    # InputSurface -------------------------------------------------------

    def query(self, selector):
        self.queries.append(selector)
        match = _ID_SELECTOR.match(selector)
        if not match:
            return []
        return [line for line in self.lines if line.id == match.group(1)]

    def line_elements(self):
        return list(self.lines)

    def text_of(self, element):
        return element.text

    def scroll_into_view(self, element):
        self._index_of(element)

    def focus(self, element):
        self.row = self._index_of(element)
        self.col = len(element.text)
        self.selected = False

    def select_content(self, element):
        self.row = self._index_of(element)
        self.col = len(element.text)
        # Selecting an empty line selects nothing
        self.selected = element.text != ""

    def press(self, action):
        assert action in KeyAction.ALL
        self.actions.append(action)
        line = self.lines[self.row]

        if action in (KeyAction.DELETE, KeyAction.DELETE_FORWARD) and self.selected:
            line.text = ""
            self.col = 0
        elif action == KeyAction.DELETE:
            if self.col > 0:
                line.text = line.text[:self.col - 1] + line.text[self.col:]
                self.col -= 1
            elif self.row > 0:
                prev = self.lines[self.row - 1]
                self.col = len(prev.text)
                prev.text += line.text
                del self.lines[self.row]
                self.row -= 1
        elif action == KeyAction.DELETE_FORWARD:
            if self.col < len(line.text):
                line.text = line.text[:self.col] + line.text[self.col + 1:]
            elif self.row + 1 < len(self.lines):
                line.text += self.lines[self.row + 1].text
                del self.lines[self.row + 1]
        elif action == KeyAction.LINE_START:
            self.col = 0
        elif action == KeyAction.LINE_END:
            self.col = len(line.text)
        elif action == KeyAction.LINE_UP:
            self.row = max(self.row - 1, 0)
            self.col = min(self.col, len(self.lines[self.row].text))
        elif action == KeyAction.LINE_BREAK:
            self._line_break()
        self.selected = False

    def _line_break(self):
        line = self.lines[self.row]
        rest = line.text[self.col:]
        line.text = line.text[:self.col]
        self.lines.insert(self.row + 1, FakeLine(rest))
        self.row += 1
        self.col = 0

    def type_text(self, text):
        self.actions.append(("type", text))
        for i, chunk in enumerate(text.split("\n")):
            if i:
                self._line_break()
            line = self.lines[self.row]
            line.text = line.text[:self.col] + chunk + line.text[self.col:]
            self.col += len(chunk)

    def wait(self, ms):
        self.waits.append(ms)


class FakeBridge(MutationBridge):
    def __init__(self, lines, available=True, probe_error=None, fail_after=None):
        self.lines = list(lines)
        self.available = available
        self.probe_error = probe_error
        self.fail_after = fail_after
        self.calls = []
        self.committed = False

    def _record(self, call):
        if self.fail_after is not None and len(self.calls) >= self.fail_after:
            raise RuntimeError("bridge went away")
        self.calls.append(call)

    def probe(self):
        if self.probe_error is not None:
            raise self.probe_error
        if not self.available:
            raise BridgeUnavailable("no line API")

    def line_texts(self):
        return list(self.lines)

    def update_line(self, text, index):
        self._record(("update", text, index))
        self.lines[index] = text

    def insert_line(self, text, index):
        self._record(("insert", text, index))
        self.lines.insert(index, text)

    def wait_for_commit(self):
        self.committed = True


class FakeSource:
    """Page source whose canonical text is whatever the editor shows."""

    def __init__(self, records, revisions=("r1",), title="page"):
        self.records = list(records)
        self.revisions = list(revisions)
        self.title = title
        self.editor = FakeEditor(self.records)
        self.text_reads = 0

    def read_snapshot(self, title):
        return PageSnapshot(title=title, lines=[LineRecord(r.text, r.id) for r in self.records],
                            revision=self.revisions[0])

    def read_revision(self, title):
        if len(self.revisions) > 1:
            self.revisions.pop(0)
        return self.revisions[0]

    def read_text(self, title):
        self.text_reads += 1
        return "\n".join(self.editor.texts)


def make_records(*texts):
    """Line records for *texts* with ids ``id0, id1, ...``."""
    return [LineRecord(text=t, id=f"id{i}") for i, t in enumerate(texts)]


@pytest.fixture
def records():
    return make_records


@pytest.fixture
def fake_editor():
    return FakeEditor


@pytest.fixture
def fake_bridge():
    return FakeBridge


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def editor_opener():
    """``opener(source, bridge=None)`` -> (open_editor, opened list)."""

    def _make(source, bridge=None):
        opened = []

        @contextmanager
        def open_editor(title, wait_ms):
            opened.append((title, wait_ms))
            yield SimpleNamespace(surface=source.editor, bridge=bridge)

        return open_editor, opened

    return _make
