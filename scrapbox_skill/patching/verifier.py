"""
Verifier — confirms the page's canonical text matches the target text.
"""

from __future__ import annotations

import difflib
import logging
from typing import Callable

from .errors import VerificationFailed

logger = logging.getLogger(__name__)


def verify(read_text: Callable[[], str], target_text: str) -> None:
    """Re-read the page via *read_text* and compare with *target_text*.

    Raises
    ------
    VerificationFailed
        If the texts differ. The exception carries both texts.
    """
    actual = read_text()
    if actual == target_text:
        logger.info("[Verify] Page matches target (%d chars)", len(target_text))
        return

    summary = "\n".join(difflib.unified_diff(
        target_text.split("\n"), actual.split("\n"),
        fromfile="expected", tofile="actual", lineterm="", n=1,
    ))
    logger.warning("[Verify] Page does not match target:\n%s", summary)
    raise VerificationFailed(
        "Page text after editing does not match the patched text:\n" + summary,
        expected=target_text,
        actual=actual,
    )
