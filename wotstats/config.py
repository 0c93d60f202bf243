# wotstats/config.py
"""
Runtime settings read from ``WOT_*`` environment variables.

Components never read the environment themselves; they receive the relevant
settings object in their constructor.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

DEFAULT_PAGE_URL_TEMPLATE = "https://stats.modxvm.com/ru/stat/players/{account_id}"
DEFAULT_WARGAMING_API_URL = "https://api.worldoftanks.ru/wot/account/list/"


class CapturePolicy(str, Enum):
    """What the browser controller does when one element screenshot fails."""

    PARTIAL = "partial"
    STRICT = "strict"


@dataclass(frozen=True)
class XvmSettings:
    chrome_devtools_url: str = "http://127.0.0.1:9222/json/version"
    http_timeout: float = 10.0
    devtools_timeout: float = 30.0
    page_url_template: str = DEFAULT_PAGE_URL_TEMPLATE
    capture_policy: CapturePolicy = CapturePolicy.PARTIAL
    viewport_width: int = 1920
    viewport_height: int = 7666
    element_timeout: float = 5.0

    def page_url(self, account_id: int) -> str:
        """Stats page URL shared by the scraper and the browser controller."""
        return self.page_url_template.format(account_id=account_id)


@dataclass(frozen=True)
class WargamingSettings:
    application_id: str = ""
    api_url: str = DEFAULT_WARGAMING_API_URL
    http_timeout: float = 10.0


@dataclass(frozen=True)
class DatabaseSettings:
    path: str = "data/wotstats.db"


@dataclass(frozen=True)
class Settings:
    xvm: XvmSettings = field(default_factory=XvmSettings)
    wargaming: WargamingSettings = field(default_factory=WargamingSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    verbose: bool = False


def _get_str(env: Mapping[str, str], name: str, default: str) -> str:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    text = raw.strip().lower()
    # Accept Go-style durations such as "10s" alongside plain seconds.
    if text.endswith("ms"):
        scale, text = 0.001, text[:-2]
    elif text.endswith("s"):
        scale, text = 1.0, text[:-1]
    else:
        scale = 1.0
    try:
        value = float(text) * scale
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_policy(env: Mapping[str, str], name: str) -> CapturePolicy:
    raw = _get_str(env, name, CapturePolicy.PARTIAL.value).lower()
    try:
        return CapturePolicy(raw)
    except ValueError:
        allowed = sorted(p.value for p in CapturePolicy)
        raise ValueError(f"{name} must be one of {allowed}, got {raw!r}")


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from ``env`` (defaults to ``os.environ``)."""
    if env is None:
        env = os.environ

    xvm = XvmSettings(
        chrome_devtools_url=_get_str(
            env, "WOT_XVM_CHROME_DEVTOOLS_URL", XvmSettings.chrome_devtools_url
        ),
        http_timeout=_get_float(env, "WOT_XVM_HTTP_TIMEOUT", XvmSettings.http_timeout),
        devtools_timeout=_get_float(
            env, "WOT_XVM_DEVTOOLS_TIMEOUT", XvmSettings.devtools_timeout
        ),
        page_url_template=_get_str(
            env, "WOT_XVM_PAGE_URL_TEMPLATE", DEFAULT_PAGE_URL_TEMPLATE
        ),
        capture_policy=_get_policy(env, "WOT_XVM_CAPTURE_POLICY"),
        element_timeout=_get_float(
            env, "WOT_XVM_ELEMENT_TIMEOUT", XvmSettings.element_timeout
        ),
    )
    wargaming = WargamingSettings(
        application_id=_get_str(env, "WOT_WARGAMING_APPLICATION_ID", ""),
        api_url=_get_str(env, "WOT_WARGAMING_API_URL", DEFAULT_WARGAMING_API_URL),
        http_timeout=_get_float(
            env, "WOT_WARGAMING_HTTP_TIMEOUT", WargamingSettings.http_timeout
        ),
    )
    database = DatabaseSettings(
        path=_get_str(env, "WOT_DATABASE_PATH", DatabaseSettings.path),
    )
    return Settings(
        xvm=xvm,
        wargaming=wargaming,
        database=database,
        verbose=_get_bool(env, "WOT_VERBOSE", False),
    )
