"""
Browser layer — Playwright implementations of the live page collaborators.

:class:`BrowserSession` owns one Chromium instance and its context;
:class:`PlaywrightSurface` and :class:`PlaywrightBridge` drive a single
open page for the slow and fast apply paths.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from playwright.sync_api import Browser, BrowserContext, Locator, Page, Playwright
from playwright.sync_api import sync_playwright

from .patching.surface import BridgeUnavailable, InputSurface, KeyAction, MutationBridge

logger = logging.getLogger(__name__)

LINE_SELECTOR = ".lines .line"

_KEYS = {
    KeyAction.DELETE: "Backspace",
    KeyAction.DELETE_FORWARD: "Delete",
    KeyAction.LINE_START: "Home",
    KeyAction.LINE_END: "End",
    KeyAction.LINE_UP: "ArrowUp",
    KeyAction.LINE_BREAK: "Enter",
}

_PROBE_JS = """() => {
  const p = window.scrapbox && window.scrapbox.Page;
  return !!(p && typeof p.updateLine === 'function'
    && typeof p.insertLine === 'function'
    && typeof p.waitForSave === 'function');
}"""
_LINES_JS = "() => window.scrapbox.Page.lines.map(line => line.text)"
_UPDATE_JS = "([text, index]) => window.scrapbox.Page.updateLine(text, index)"
_INSERT_JS = "([text, index]) => window.scrapbox.Page.insertLine(text, index)"
_SAVE_JS = "() => window.scrapbox.Page.waitForSave()"


class PlaywrightSurface(InputSurface):
    """Simulated input against a rendered Scrapbox page."""

    def __init__(self, page: Page, line_selector: str = LINE_SELECTOR) -> None:
        self._page = page
        self._line_selector = line_selector

    def query(self, selector: str) -> list[Locator]:
        return self._page.locator(selector).all()

    def line_elements(self) -> list[Locator]:
        return self._page.locator(self._line_selector).all()

    def text_of(self, element: Locator) -> str:
        return element.inner_text().rstrip("\n")

    def scroll_into_view(self, element: Locator) -> None:
        element.scroll_into_view_if_needed()

    def focus(self, element: Locator) -> None:
        element.click()

    def select_content(self, element: Locator) -> None:
        self._page.keyboard.press("End")
        self._page.keyboard.press("Shift+Home")

    def press(self, action: str) -> None:
        try:
            key = _KEYS[action]
        except KeyError:
            raise ValueError(f"Unknown key action: {action!r}") from None
        self._page.keyboard.press(key)

    def type_text(self, text: str) -> None:
        self._page.keyboard.type(text)

    def wait(self, ms: int) -> None:
        if ms > 0:
            self._page.wait_for_timeout(ms)


class PlaywrightBridge(MutationBridge):
    """The page's ``window.scrapbox.Page`` line API, called via ``evaluate``."""

    def __init__(self, page: Page) -> None:
        self._page = page

    def probe(self) -> None:
        if not self._page.evaluate(_PROBE_JS):
            raise BridgeUnavailable("window.scrapbox.Page line API not exposed")

    def line_texts(self) -> list[str]:
        return list(self._page.evaluate(_LINES_JS))

    def update_line(self, text: str, index: int) -> None:
        self._page.evaluate(_UPDATE_JS, [text, index])

    def insert_line(self, text: str, index: int) -> None:
        self._page.evaluate(_INSERT_JS, [text, index])

    def wait_for_commit(self) -> None:
        self._page.evaluate(_SAVE_JS)


@dataclass
class PlaywrightEditor:
    """An open page with both apply collaborators."""
    page: Page
    surface: PlaywrightSurface
    bridge: Optional[PlaywrightBridge]

    @classmethod
    def for_page(cls, page: Page, use_bridge: bool = True) -> "PlaywrightEditor":
        return cls(
            page=page,
            surface=PlaywrightSurface(page),
            bridge=PlaywrightBridge(page) if use_bridge else None,
        )


class BrowserSession:
    """Owns a Playwright Chromium browser and its context.

    Created lazily by :class:`~scrapbox_skill.client.ScrapboxClient`;
    :meth:`close` releases everything it started.
    """

    def __init__(self, host: str, sid: Optional[str] = None,
                 headless: bool = True) -> None:
        self._host = host
        self._sid = sid
        self._headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

    @property
    def started(self) -> bool:
        return self._context is not None

    def start(self) -> None:
        if self.started:
            return
        logger.debug("[Browser] Launching Chromium (headless=%s)", self._headless)
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self._headless)
        self._context = self._browser.new_context()
        if self._sid:
            self._context.add_cookies([{
                "name": "connect.sid",
                "value": self._sid,
                "domain": urlparse(self._host).hostname,
                "path": "/",
                "httpOnly": True,
                "secure": True,
                "sameSite": "Lax",
            }])

    def new_page(self) -> Page:
        self.start()
        return self._context.new_page()

    def close(self) -> None:
        if self._context is not None:
            self._context.close()
        if self._browser is not None:
            self._browser.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._context = None
        self._browser = None
        self._playwright = None
