# wotstats/scraper/session.py
"""
Remote Chrome session management.

Resolves the DevTools control plane to a single WebSocket debugger URL and
connects Playwright to it over CDP. Each connection belongs to exactly one
capture run and is closed by it.
"""

import ipaddress
import json
import logging
import socket
from typing import Any, Optional
from urllib.error import URLError
from urllib.parse import urlsplit, urlunsplit
from urllib.request import OpenerDirector, Request, build_opener

from wotstats.errors import BrowserDiscoveryError, BrowserSessionError

logger = logging.getLogger(__name__)


def resolve_control_plane_url(control_plane_url: str) -> str:
    """
    Replace the host of ``control_plane_url`` with its IP address.

    Chrome refuses DevTools requests whose Host header is not an IP address
    or localhost, so docker service names must be resolved first. IP
    literals are kept as they are. IPv4 addresses are preferred when a name
    resolves to both families.

    The lookup goes through the system resolver, whose own timeout bounds
    it; ``http_timeout`` only covers the HTTP request that follows.

    Raises:
        BrowserDiscoveryError: If the URL or host cannot be resolved
    """
    parts = urlsplit(control_plane_url)
    if not parts.scheme or not parts.hostname:
        raise BrowserDiscoveryError(f"Invalid DevTools URL: {control_plane_url!r}")

    try:
        address = ipaddress.ip_address(parts.hostname)
    except ValueError:
        address = _lookup_address(parts.hostname)

    host = f"[{address}]" if address.version == 6 else str(address)
    netloc = f"{host}:{parts.port}" if parts.port else host
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _lookup_address(hostname: str):
    try:
        infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError) as exc:
        logger.error("Error resolving DevTools host %s: %s", hostname, exc)
        raise BrowserDiscoveryError(f"Could not resolve DevTools host {hostname}") from exc

    addresses = [ipaddress.ip_address(info[4][0].split("%")[0]) for info in infos]
    if not addresses:
        raise BrowserDiscoveryError(f"Could not resolve DevTools host {hostname}")
    return min(addresses, key=lambda a: a.version)


def discover_debugger_url(
    control_plane_url: str,
    timeout: float,
    opener: Optional[OpenerDirector] = None,
) -> str:
    """
    Fetch the DevTools metadata and return the single WebSocket debugger URL.

    Accepts either a JSON list of targets (``/json/list``) or one object
    (``/json/version``). Exactly one candidate is required.

    Raises:
        BrowserDiscoveryError: If the control plane is unreachable, returns
            invalid JSON, or lists zero or several candidates
    """
    opener = opener or build_opener()
    url = resolve_control_plane_url(control_plane_url)

    req = Request(url, headers={"Accept": "application/json"}, method="GET")
    try:
        with opener.open(req, timeout=timeout) as resp:
            payload = json.loads(resp.read().decode("utf-8"))
    except (URLError, socket.timeout, OSError) as exc:
        logger.error("Error calling DevTools control plane %s: %s", url, exc)
        raise BrowserDiscoveryError(f"DevTools control plane unreachable: {exc}") from exc
    except ValueError as exc:
        logger.error("Error decoding DevTools response: %s", exc)
        raise BrowserDiscoveryError("DevTools control plane returned invalid JSON") from exc

    candidates = payload if isinstance(payload, list) else [payload]
    if len(candidates) != 1:
        logger.error("Expected exactly one DevTools target, got %d", len(candidates))
        raise BrowserDiscoveryError(
            f"Expected exactly one DevTools target, got {len(candidates)}"
        )

    target = candidates[0]
    debugger_url = target.get("webSocketDebuggerUrl") if isinstance(target, dict) else None
    if not debugger_url:
        logger.error("DevTools target has no webSocketDebuggerUrl: %r", target)
        raise BrowserDiscoveryError("DevTools target has no webSocketDebuggerUrl")

    return debugger_url


class CdpConnector:
    """Connects Playwright to a remote Chrome over CDP."""

    def __init__(self):
        self._playwright = None

    def connect(self, endpoint: str, timeout_ms: float) -> Any:
        """
        Start Playwright and attach to ``endpoint``.

        Returns:
            Playwright Browser connected over CDP

        Raises:
            BrowserSessionError: If the connection cannot be established
        """
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        try:
            self._playwright = sync_playwright().start()
            return self._playwright.chromium.connect_over_cdp(endpoint, timeout=timeout_ms)
        except PlaywrightError as exc:
            self.close(None)
            raise BrowserSessionError(f"Failed to connect to remote browser: {exc}") from exc

    def close(self, browser: Any) -> None:
        """Disconnect from the browser and stop Playwright."""
        if browser is not None:
            try:
                browser.close()
            except Exception as exc:
                logger.debug("Ignoring error while closing browser: %s", exc)
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as exc:
                logger.debug("Ignoring error while stopping Playwright: %s", exc)
        self._playwright = None
