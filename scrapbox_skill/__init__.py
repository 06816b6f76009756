"""Scrapbox/Cosense page client with diff-based editing."""

from .client import ScrapboxClient, ScrapboxAPIError
from .patching import PagePatcher, PatchOptions, PatchError

__all__ = [
    "ScrapboxClient", "ScrapboxAPIError",
    "PagePatcher", "PatchOptions", "PatchError",
]
