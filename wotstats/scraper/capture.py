# wotstats/scraper/capture.py
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from playwright.sync_api import Error as PlaywrightError

from wotstats.config import CapturePolicy, XvmSettings
from wotstats.errors import BrowserError, BrowserSessionError, CaptureError
from .session import CdpConnector, discover_debugger_url

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    ENDPOINT_DISCOVERY = "endpoint_discovery"
    SESSION_OPEN = "session_open"
    NAVIGATED = "navigated"
    CAPTURING = "capturing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    CaptureState.ENDPOINT_DISCOVERY: {CaptureState.SESSION_OPEN},
    CaptureState.SESSION_OPEN: {CaptureState.NAVIGATED},
    CaptureState.NAVIGATED: {CaptureState.CAPTURING},
    CaptureState.CAPTURING: {CaptureState.DONE},
    CaptureState.DONE: set(),
    CaptureState.FAILED: set(),
}


class Deadline:
    """Overall time budget for one browser automation run."""

    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return self._expires_at - self._clock()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def remaining_ms(self, cap: Optional[float] = None) -> float:
        """Remaining budget in milliseconds, optionally capped at ``cap`` seconds."""
        remaining = self.remaining()
        if remaining <= 0:
            raise BrowserSessionError("Browser automation deadline exceeded")
        if cap is not None:
            remaining = min(remaining, cap)
        return remaining * 1000.0


class CaptureSession:
    """
    State of one ``capture_all`` run.

    A session is created per call and never shared; it records the state
    machine progress, the captured images and the anchors that failed.
    """

    def __init__(self, account_id: int, anchors: Sequence[str]):
        self.account_id = account_id
        self.anchors: List[str] = list(dict.fromkeys(anchors))
        self.state = CaptureState.ENDPOINT_DISCOVERY
        self.history: List[CaptureState] = [self.state]
        self.images: Dict[str, bytes] = {}
        self.failed: List[str] = []

    def advance(self, state: CaptureState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise BrowserSessionError(
                f"Invalid capture transition {self.state.value} -> {state.value}"
            )
        self.state = state
        self.history.append(state)

    def fail(self) -> None:
        if self.state is not CaptureState.FAILED:
            self.state = CaptureState.FAILED
            self.history.append(CaptureState.FAILED)


class RemoteBrowserController:
    """Captures element screenshots of the stats page through a remote Chrome."""

    def __init__(
        self,
        settings: XvmSettings,
        opener=None,
        connector_factory: Callable[[], Any] = CdpConnector,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.opener = opener
        self.connector_factory = connector_factory
        self.clock = clock

    # --- Main entry points ---

    def capture_all(self, account_id: int, anchors: Sequence[str]) -> Dict[str, bytes]:
        """
        Screenshot every anchor of the stats page for ``account_id``.

        Returns:
            Mapping of anchor id to PNG bytes. Under the partial policy
            anchors that could not be captured are absent.

        Raises:
            BrowserDiscoveryError: Control plane unreachable or ambiguous
            BrowserSessionError: Session, navigation or deadline failure
            CaptureError: An element failed under the strict policy
        """
        return self.run(CaptureSession(account_id, anchors))

    def run(self, session: CaptureSession) -> Dict[str, bytes]:
        try:
            endpoint = discover_debugger_url(
                self.settings.chrome_devtools_url,
                timeout=self.settings.http_timeout,
                opener=self.opener,
            )
        except BrowserError:
            session.fail()
            raise

        deadline = Deadline(self.settings.devtools_timeout, self.clock)
        connector = self.connector_factory()
        browser = None
        try:
            session.advance(CaptureState.SESSION_OPEN)
            browser = connector.connect(endpoint, deadline.remaining_ms())
            page = self._open_page(browser)

            url = self.settings.page_url(session.account_id)
            page.goto(url, wait_until="load", timeout=deadline.remaining_ms())
            session.advance(CaptureState.NAVIGATED)

            session.advance(CaptureState.CAPTURING)
            for anchor in session.anchors:
                self._capture_one(page, anchor, session, deadline)

            session.advance(CaptureState.DONE)
        except BrowserError:
            session.fail()
            raise
        except PlaywrightError as exc:
            session.fail()
            logger.error("Remote browser session failed in state %s: %s", session.state.value, exc)
            raise BrowserSessionError(f"Remote browser session failed: {exc}") from exc
        finally:
            connector.close(browser)

        if session.failed:
            logger.warning(
                "Captured %d of %d trend images for %s; failed: %s",
                len(session.images),
                len(session.anchors),
                session.account_id,
                ", ".join(session.failed),
            )
        return session.images

    # --- Internal helpers ---

    def _open_page(self, browser):
        context = browser.new_context(
            viewport={
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            }
        )
        return context.new_page()

    def _capture_one(self, page, anchor: str, session: CaptureSession, deadline: Deadline) -> None:
        timeout_ms = deadline.remaining_ms(cap=self.settings.element_timeout)
        locator = page.locator(self._id_selector(anchor)).first
        try:
            locator.wait_for(state="visible", timeout=timeout_ms)
            session.images[anchor] = locator.screenshot(type="png", timeout=timeout_ms)
        except PlaywrightError as exc:
            if deadline.expired:
                raise BrowserSessionError("Browser automation deadline exceeded") from exc
            if self.settings.capture_policy is CapturePolicy.STRICT:
                logger.error("Error capturing %s: %s", anchor, exc)
                raise CaptureError(f"Could not capture {anchor}: {exc}") from exc
            logger.warning("Skipping trend image %s: %s", anchor, exc)
            session.failed.append(anchor)

    @staticmethod
    def _id_selector(anchor: str) -> str:
        element_id = anchor[1:] if anchor.startswith("#") else anchor
        escaped = element_id.replace("\\", "\\\\").replace('"', '\\"')
        return f'[id="{escaped}"]'
