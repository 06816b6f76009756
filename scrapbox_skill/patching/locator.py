"""
Line locator — resolves a logical line reference to an element on the
live page.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from .errors import LineNotFound
from .models import LineRef
from .surface import InputSurface

logger = logging.getLogger(__name__)

# Attribute conventions a line id may be rendered under, tried in order
ID_SELECTORS: tuple[str, ...] = (
    "#L{id}",
    '[id="L{id}"]',
    '[data-id="{id}"]',
    '[data-line-id="{id}"]',
)


class LineLocator:
    """Find line elements by id, then position, then exact text.

    Every lookup goes to the live page; elements may have been
    re-rendered since the snapshot was taken.
    """

    def __init__(self, surface: InputSurface,
                 id_selectors: Sequence[str] = ID_SELECTORS) -> None:
        self._surface = surface
        self._id_selectors = tuple(id_selectors)

    def locate(self, ref: LineRef) -> Any:
        """Return the element for *ref*.

        Raises
        ------
        LineNotFound
            If no strategy resolves the reference.
        """
        if ref.id:
            element = self._by_id(ref.id)
            if element is not None:
                return element

        elements = self._surface.line_elements()
        if 0 <= ref.index < len(elements):
            logger.debug("[Locate] Line %d resolved by position", ref.index)
            return elements[ref.index]

        if ref.text is not None:
            for element in elements:
                if self._surface.text_of(element) == ref.text:
                    logger.debug("[Locate] Line %d resolved by text", ref.index)
                    return element

        raise LineNotFound(
            f"Line {ref.index} (id={ref.id!r}) not found on page "
            f"({len(elements)} lines rendered)"
        )

    def _by_id(self, line_id: str) -> Any | None:
        for template in self._id_selectors:
            selector = template.format(id=line_id)
            matches = self._surface.query(selector)
            if matches:
                logger.debug("[Locate] Line id %s resolved by %s", line_id, selector)
                return matches[0]
        return None
