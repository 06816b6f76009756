"""
Patch errors — every failure kind a patch invocation can end with.

All of them are terminal for the invocation; nothing is retried here.
"""

from __future__ import annotations


class PatchError(Exception):
    """Base class for patch failures.

    ``document_modified`` is True when the live page had already been
    mutated before the failure, i.e. the page may be partially edited.
    """

    def __init__(self, message: str, document_modified: bool = False) -> None:
        super().__init__(message)
        self.document_modified = document_modified


class NoPatchFound(PatchError):
    """The diff text contains no applicable file patch."""


class PatchApplyFailed(PatchError):
    """A hunk could not be reconciled with the base text within the fuzz."""


class ConcurrentModification(PatchError):
    """The page revision changed between the initial read and the edit."""


class LineNotFound(PatchError):
    """No locator strategy could resolve a line on the live page."""


class VerificationFailed(PatchError):
    """The page text after editing does not match the target text."""

    def __init__(self, message: str, expected: str = "", actual: str = "",
                 document_modified: bool = True) -> None:
        super().__init__(message, document_modified=document_modified)
        self.expected = expected
        self.actual = actual
