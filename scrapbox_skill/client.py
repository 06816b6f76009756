"""
Scrapbox client — REST reads over ``requests`` and browser-driven edits
over Playwright, for one project.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional
from urllib.parse import quote, urlencode

import requests

from .browser import LINE_SELECTOR, BrowserSession, PlaywrightEditor
from .patching.models import LineRecord, PageSnapshot, PatchOptions
from .patching.patcher import PagePatcher, PatchReport

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://scrapbox.io"


class ScrapboxAPIError(Exception):
    """Raised when a Scrapbox REST request returns a non-2xx status."""

    def __init__(self, status: int, reason: str, url: str) -> None:
        super().__init__(f"Request failed: {status} {reason} ({url})")
        self.status = status
        self.reason = reason
        self.url = url


def normalize_host(host: str) -> str:
    return host.rstrip("/")


def encode_segment(value: str) -> str:
    """Percent-encode one URL path segment (``/`` included)."""
    return quote(value, safe="")


class ScrapboxClient:
    """Client for one Scrapbox/Cosense project.

    The HTTP session is created eagerly, the browser only when a page has
    to be opened. Use as a context manager, or call :meth:`close`.
    """

    def __init__(
        self,
        project: str,
        host: str = DEFAULT_HOST,
        sid: Optional[str] = None,
        headless: bool = True,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        browser: Optional[BrowserSession] = None,
    ) -> None:
        self.project = project
        self.host = normalize_host(host)
        self.timeout = timeout
        self._session = session or requests.Session()
        if sid:
            self._session.cookies.set("connect.sid", sid)
        self._browser = browser or BrowserSession(self.host, sid=sid, headless=headless)
        self.last_report: Optional[PatchReport] = None

    def __enter__(self) -> "ScrapboxClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._browser.close()
        self._session.close()

    # ------------------------------------------------------------------
    # REST reads
    # ------------------------------------------------------------------

    def _api_url(self, title: Optional[str] = None, suffix: str = "") -> str:
        url = f"{self.host}/api/pages/{encode_segment(self.project)}"
        if title is not None:
            url += f"/{encode_segment(title)}"
        return url + suffix

    def _get(self, url: str, params: Optional[dict] = None) -> requests.Response:
        logger.debug("[Client] GET %s %s", url, params or "")
        response = self._session.get(url, params=params, timeout=self.timeout)
        if not response.ok:
            raise ScrapboxAPIError(response.status_code, response.reason, url)
        return response

    def read_text(self, title: str) -> str:
        """Return the page's plain text, title line first."""
        return self._get(self._api_url(title, "/text")).text

    def read_json(self, title: str) -> dict:
        """Return the page's JSON document."""
        return self._get(self._api_url(title)).json()

    def read_snapshot(self, title: str) -> PageSnapshot:
        """Return the page's lines (with ids) and its revision token."""
        data = self.read_json(title)
        lines = [
            LineRecord(text=line.get("text", ""), id=line.get("id"))
            for line in data.get("lines", [])
        ]
        return PageSnapshot(title=title, lines=lines, revision=_revision_of(data))

    def read_revision(self, title: str) -> Any:
        return _revision_of(self.read_json(title))

    def list_pages(self, limit: int = 100, skip: int = 0) -> dict:
        """Return one page of the project's page list."""
        return self._get(self._api_url(), params={"limit": limit, "skip": skip}).json()

    # ------------------------------------------------------------------
    # Browser edits
    # ------------------------------------------------------------------

    def page_url(self, title: str, **params: str) -> str:
        url = f"{self.host}/{encode_segment(self.project)}/{encode_segment(title)}"
        if params:
            url += "?" + urlencode(params)
        return url

    def append(self, title: str, body: str, wait_ms: int = 1500) -> None:
        """Append *body* to the page by opening it with a ``body`` parameter."""
        page = self._browser.new_page()
        try:
            page.goto(self.page_url(title, body=body), wait_until="domcontentloaded")
            if wait_ms > 0:
                page.wait_for_timeout(wait_ms)
        finally:
            page.close()
        logger.info("[Client] Appended %d chars to %r", len(body), title)

    @contextmanager
    def open_editor(self, title: str, wait_ms: int = 1500) -> Iterator[PlaywrightEditor]:
        """Open the page in the browser and yield its editing collaborators."""
        page = self._browser.new_page()
        try:
            page.goto(self.page_url(title), wait_until="domcontentloaded")
            page.wait_for_selector(LINE_SELECTOR)
            if wait_ms > 0:
                page.wait_for_timeout(wait_ms)
            yield PlaywrightEditor.for_page(page)
        finally:
            page.close()

    def patch(
        self,
        title: str,
        diff_text: str,
        fuzz: int = 0,
        check_staleness: bool = False,
        wait_ms: int = 1500,
        settle_delay_ms: int = 100,
        dry_run: bool = False,
    ) -> Optional[str]:
        """Apply a unified diff to the page; see :class:`PagePatcher`."""
        patcher = PagePatcher(self, self.open_editor)
        options = PatchOptions(
            fuzz=fuzz,
            check_staleness=check_staleness,
            settle_delay_ms=settle_delay_ms,
            wait_ms=wait_ms,
            dry_run=dry_run,
        )
        try:
            return patcher.patch(title, diff_text, options)
        finally:
            self.last_report = patcher.last_report


def _revision_of(data: dict) -> Any:
    return data.get("commitId", data.get("updated"))
