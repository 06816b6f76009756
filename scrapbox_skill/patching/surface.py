"""
Live page collaborators — the two ways the apply engine can touch a page.

:class:`InputSurface` is the simulated-input provider (slow path) and
:class:`MutationBridge` the structured line API (fast path). Concrete
Playwright implementations live in :mod:`scrapbox_skill.browser`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class KeyAction:
    """Named editing keys understood by :meth:`InputSurface.press`."""
    DELETE = "delete"
    DELETE_FORWARD = "delete-forward"
    LINE_START = "line-start"
    LINE_END = "line-end"
    LINE_UP = "line-up"
    LINE_BREAK = "line-break"

    ALL = (DELETE, DELETE_FORWARD, LINE_START, LINE_END, LINE_UP, LINE_BREAK)


class InputSurface(ABC):
    """Element lookup and keyboard primitives over a rendered page."""

    @abstractmethod
    def query(self, selector: str) -> list[Any]:
        """Return all elements matching a CSS *selector*, in page order."""

    @abstractmethod
    def line_elements(self) -> list[Any]:
        """Return the page's line elements in rendering order."""

    @abstractmethod
    def text_of(self, element: Any) -> str:
        """Return the visible text of a line element."""

    @abstractmethod
    def scroll_into_view(self, element: Any) -> None: ...

    @abstractmethod
    def focus(self, element: Any) -> None:
        """Put the caret into *element*."""

    @abstractmethod
    def select_content(self, element: Any) -> None:
        """Select the whole text of the focused line."""

    @abstractmethod
    def press(self, action: str) -> None:
        """Issue one :class:`KeyAction`."""

    @abstractmethod
    def type_text(self, text: str) -> None:
        """Type literal text; ``\\n`` produces a line break."""

    @abstractmethod
    def wait(self, ms: int) -> None: ...


class BridgeUnavailable(Exception):
    """The page does not expose the structured line API."""


class MutationBridge(ABC):
    """Structured line-editing API exposed by the host page."""

    @abstractmethod
    def probe(self) -> None:
        """Raise :class:`BridgeUnavailable` unless the API can be used."""

    @abstractmethod
    def line_texts(self) -> list[str]:
        """Current line texts as the host sees them."""

    @abstractmethod
    def update_line(self, text: str, index: int) -> None: ...

    @abstractmethod
    def insert_line(self, text: str, index: int) -> None: ...

    @abstractmethod
    def wait_for_commit(self) -> None:
        """Block until the host has saved the pending changes."""
