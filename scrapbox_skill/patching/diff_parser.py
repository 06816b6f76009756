"""
Diff parser — parses unified diff text into a file patch and applies its
hunks to a base text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from .errors import NoPatchFound, PatchApplyFailed

logger = logging.getLogger(__name__)

# Patterns
_OLD_FILE = re.compile(r"^--- (.*)$")
_NEW_FILE = re.compile(r"^\+\+\+ (.*)$")
_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

_NO_NEWLINE = "\\"


@dataclass
class DiffHunk:
    """A single ``@@`` hunk, lines kept with their one-character prefix."""
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: list[str] = field(default_factory=list)

    @property
    def old_lines(self) -> list[str]:
        """Context and removed lines, i.e. what the base must contain."""
        return [l[1:] for l in self.lines if l[:1] in (" ", "-")]

    @property
    def new_lines(self) -> list[str]:
        return [l[1:] for l in self.lines if l[:1] in (" ", "+")]

    @property
    def header(self) -> str:
        return (f"@@ -{self.old_start},{self.old_count} "
                f"+{self.new_start},{self.new_count} @@")

    def eof_markers(self) -> tuple[bool, bool]:
        """Return ``(old_has_no_newline, new_has_no_newline)``."""
        old_missing = new_missing = False
        for prev, line in zip(self.lines, self.lines[1:]):
            if not line.startswith(_NO_NEWLINE):
                continue
            kind = prev[:1]
            if kind in (" ", "-"):
                old_missing = True
            if kind in (" ", "+"):
                new_missing = True
        return old_missing, new_missing


@dataclass
class FilePatch:
    """All hunks for one file of a unified diff."""
    old_name: Optional[str] = None
    new_name: Optional[str] = None
    hunks: list[DiffHunk] = field(default_factory=list)


class DiffParser:
    """Parse unified diffs and apply them to plain text."""

    def parse(self, diff_text: str) -> FilePatch:
        """Return the first file patch found in *diff_text*.

        Raises
        ------
        NoPatchFound
            If the text holds no hunk at all, or a hunk body is malformed.
        """
        patches = self.parse_all(diff_text)
        if not patches:
            raise NoPatchFound("No patch found in diff text")
        if len(patches) > 1:
            logger.debug(
                "[Diff] %d file patches found, using the first (%s)",
                len(patches), patches[0].new_name or patches[0].old_name,
            )
        return patches[0]

    def parse_all(self, diff_text: str) -> list[FilePatch]:
        """Parse every file patch in *diff_text*, in order."""
        lines = diff_text.split("\n")
        patches: list[FilePatch] = []
        current: FilePatch | None = None
        i = 0

        while i < len(lines):
            line = lines[i].rstrip("\r")

            old_match = _OLD_FILE.match(line)
            if old_match and i + 1 < len(lines) and _NEW_FILE.match(lines[i + 1]):
                if current is not None and current.hunks:
                    patches.append(current)
                new_match = _NEW_FILE.match(lines[i + 1].rstrip("\r"))
                current = FilePatch(
                    old_name=_strip_file_name(old_match.group(1)),
                    new_name=_strip_file_name(new_match.group(1)),
                )
                i += 2
                continue

            header = _HUNK_HEADER.match(line)
            if header:
                if current is None:
                    current = FilePatch()
                hunk, i = self._parse_hunk(lines, i, header)
                current.hunks.append(hunk)
                continue

            i += 1

        if current is not None and current.hunks:
            patches.append(current)
        return patches

    def apply(self, base_text: str, patch: FilePatch, fuzz: int = 0) -> str:
        """Apply *patch* to *base_text* and return the resulting text.

        Parameters
        ----------
        base_text:
            The text the diff was made against.
        patch:
            File patch from :meth:`parse`.
        fuzz:
            Number of context lines per hunk allowed to differ from the
            base. Removed lines must always match exactly.

        Raises
        ------
        PatchApplyFailed
            If a hunk fits nowhere in the base within the fuzz tolerance.
        """
        if fuzz < 0:
            raise ValueError("fuzz must be >= 0")

        result, trailing_newline = _split_text(base_text)
        offset = 0
        min_pos = 0

        for hunk in patch.hunks:
            old_len = len(hunk.old_lines)
            declared = hunk.old_start - 1 if hunk.old_count else hunk.old_start
            want = max(declared + offset, 0)

            pos = self._find_position(result, hunk, want, min_pos, fuzz)
            if pos is None:
                raise PatchApplyFailed(
                    f"Hunk {hunk.header} does not apply (fuzz={fuzz})"
                )
            if pos != want:
                logger.debug(
                    "[Diff] Hunk %s applied at line %d (offset %+d)",
                    hunk.header, pos + 1, pos - want,
                )

            segment = self._merge_segment(result[pos:pos + old_len], hunk)
            result[pos:pos + old_len] = segment
            offset += (pos - want) + len(segment) - old_len
            min_pos = pos + len(segment)

            old_missing, new_missing = hunk.eof_markers()
            if new_missing:
                trailing_newline = False
            elif old_missing:
                trailing_newline = True

        text = "\n".join(result)
        if trailing_newline:
            text += "\n"
        return text

    def apply_diff(self, base_text: str, diff_text: str, fuzz: int = 0) -> str:
        """Parse *diff_text* and apply its first file patch to *base_text*."""
        return self.apply(base_text, self.parse(diff_text), fuzz=fuzz)

    # ------------------------------------------------------------------
    # Internal parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_hunk(lines: list[str], start: int,
                    header: re.Match) -> tuple[DiffHunk, int]:
        hunk = DiffHunk(
            old_start=int(header.group(1)),
            old_count=int(header.group(2)) if header.group(2) is not None else 1,
            new_start=int(header.group(3)),
            new_count=int(header.group(4)) if header.group(4) is not None else 1,
        )
        old_left = hunk.old_count
        new_left = hunk.new_count
        i = start + 1

        while i < len(lines) and (old_left > 0 or new_left > 0):
            line = lines[i].rstrip("\r")
            # Some tools drop the single space of an empty context line
            if line == "":
                line = " "
            kind = line[0]
            if kind == " ":
                old_left -= 1
                new_left -= 1
            elif kind == "-":
                old_left -= 1
            elif kind == "+":
                new_left -= 1
            elif kind != _NO_NEWLINE:
                break
            hunk.lines.append(line)
            i += 1

        if old_left != 0 or new_left != 0:
            raise NoPatchFound(
                f"Malformed hunk {hunk.header}: body does not match header counts"
            )

        if i < len(lines) and lines[i].startswith(_NO_NEWLINE):
            hunk.lines.append(lines[i].rstrip("\r"))
            i += 1
        return hunk, i

    # ------------------------------------------------------------------
    # Hunk placement
    # ------------------------------------------------------------------

    def _find_position(self, lines: list[str], hunk: DiffHunk, want: int,
                       min_pos: int, fuzz: int) -> int | None:
        """Search outward from *want* for a position where *hunk* fits."""
        max_pos = len(lines) - len(hunk.old_lines)
        if max_pos < min_pos:
            return None
        want = min(max(want, min_pos), max_pos)

        for distance in range(0, max(want - min_pos, max_pos - want) + 1):
            candidates = (want + distance, want - distance) if distance else (want,)
            for pos in candidates:
                if min_pos <= pos <= max_pos and self._fits(lines, pos, hunk, fuzz):
                    return pos
        return None

    @staticmethod
    def _fits(lines: list[str], pos: int, hunk: DiffHunk, fuzz: int) -> bool:
        mismatches = 0
        j = pos
        for line in hunk.lines:
            kind, text = line[:1], line[1:]
            if kind == "-":
                if lines[j] != text:
                    return False
                j += 1
            elif kind == " ":
                if lines[j] != text:
                    mismatches += 1
                    if mismatches > fuzz:
                        return False
                j += 1
        return True

    @staticmethod
    def _merge_segment(base: list[str], hunk: DiffHunk) -> list[str]:
        """New lines for the hunk; fuzzed context lines keep the base text."""
        out: list[str] = []
        j = 0
        for line in hunk.lines:
            kind = line[:1]
            if kind == " ":
                out.append(base[j])
                j += 1
            elif kind == "-":
                j += 1
            elif kind == "+":
                out.append(line[1:])
        return out


def _split_text(text: str) -> tuple[list[str], bool]:
    """Split into lines, reporting whether the text ended with a newline."""
    if text == "":
        return [], False
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
        return lines, True
    return lines, False


def _strip_file_name(raw: str) -> str:
    """Drop the timestamp some tools append after a tab."""
    return raw.split("\t", 1)[0].strip()
