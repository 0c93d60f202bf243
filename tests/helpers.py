# tests/helpers.py

import json
import os
from email.message import Message
from typing import Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from wotstats.database import Database
from wotstats.models import StatisticEntry, StatKind

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def load_fixture(filename: str) -> str:
    with open(os.path.join(FIXTURES_DIR, filename), "r", encoding="utf-8") as f:
        return f.read()


def metric(name: str, value: str, anchor_id: str, image: Optional[bytes] = None) -> StatisticEntry:
    return StatisticEntry(kind=StatKind.TEXT_METRIC, name=name, value=value, anchor_id=anchor_id, image=image)


def chart(name: str, anchor_id: str, image: Optional[bytes] = None) -> StatisticEntry:
    return StatisticEntry(kind=StatKind.VEHICLE_CHART, name=name, anchor_id=anchor_id, image=image)


def add_user(db: Database, user_id: int, telegram_id: int, nickname: Optional[str] = None,
             wargaming_id: Optional[int] = None) -> None:
    """Insert a user row with a fixed primary key."""
    db.conn.execute(
        "INSERT INTO users (id, telegram_id, nickname, wargaming_id) VALUES (?, ?, ?, ?)",
        (user_id, telegram_id, nickname, wargaming_id),
    )
    db.conn.commit()


# --- urllib doubles ---

class FakeResponse:
    def __init__(self, body: bytes, charset: str = "utf-8"):
        self._body = body
        self.headers = Message()
        self.headers["Content-Type"] = f"text/html; charset={charset}"

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeOpener:
    """Stands in for urllib's OpenerDirector; records requests."""

    def __init__(self, body=b"", error: Optional[BaseException] = None, charset: str = "utf-8"):
        if isinstance(body, str):
            body = body.encode("utf-8")
        elif isinstance(body, (list, dict)):
            body = json.dumps(body).encode("utf-8")
        self.body = body
        self.error = error
        self.charset = charset
        self.requests = []
        self.timeouts = []

    def open(self, req, timeout=None):
        self.requests.append(req)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return FakeResponse(self.body, charset=self.charset)


# --- Playwright doubles ---

class FakeLocator:
    def __init__(self, page: "FakePage", selector: str):
        self.page = page
        self.selector = selector

    @property
    def first(self) -> "FakeLocator":
        return self

    def _element_id(self) -> str:
        # selector looks like [id="wn8"]
        return self.selector[len('[id="'):-len('"]')]

    def wait_for(self, state: str = "visible", timeout: Optional[float] = None) -> None:
        self.page.calls.append(("wait_for", self.selector, state))
        element_id = self._element_id()
        if element_id in self.page.slow:
            self.page.clock.advance(self.page.slow[element_id])
            raise PlaywrightTimeoutError(f"Timeout waiting for {self.selector}")
        if element_id not in self.page.elements:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")

    def screenshot(self, type: str = "png", timeout: Optional[float] = None) -> bytes:
        self.page.calls.append(("screenshot", self.selector))
        return self.page.elements[self._element_id()]


class FakePage:
    def __init__(self, elements: Dict[str, bytes], clock: "FakeClock",
                 goto_error: Optional[BaseException] = None, slow: Optional[Dict[str, float]] = None):
        self.elements = elements
        self.clock = clock
        self.goto_error = goto_error
        self.slow = slow or {}
        self.calls: List[tuple] = []
        self.url = None

    def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        self.calls.append(("goto", url))
        if self.goto_error is not None:
            raise self.goto_error
        self.url = url

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)


class FakeContext:
    def __init__(self, page: FakePage):
        self.page = page

    def new_page(self) -> FakePage:
        return self.page


class FakeBrowser:
    def __init__(self, page: FakePage):
        self.page = page
        self.viewport = None
        self.closed = False

    def new_context(self, viewport=None) -> FakeContext:
        self.viewport = viewport
        return FakeContext(self.page)

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Replaces CdpConnector; hands out one FakeBrowser."""

    def __init__(self, browser: Optional[FakeBrowser] = None, error: Optional[BaseException] = None):
        self.browser = browser
        self.error = error
        self.endpoints: List[str] = []
        self.closed_with = []

    def connect(self, endpoint: str, timeout_ms: float):
        self.endpoints.append(endpoint)
        if self.error is not None:
            raise self.error
        return self.browser

    def close(self, browser) -> None:
        self.closed_with.append(browser)
        if browser is not None:
            browser.close()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


