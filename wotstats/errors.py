# wotstats/errors.py
"""
Error kinds raised by the stats pipeline.

Every class carries a ``kind`` tag so a front end can map it to a message
without inspecting the exception text.
"""


class WotStatsError(Exception):
    """Base class for all pipeline errors."""

    kind = "internal"


class FetchError(WotStatsError):
    """Raised when the stats page cannot be downloaded."""

    kind = "fetch"


class ParseError(WotStatsError):
    """Raised when the downloaded stats page has no usable document."""

    kind = "parse"


class BrowserError(WotStatsError):
    """Base class for remote browser failures."""

    kind = "browser"


class BrowserDiscoveryError(BrowserError):
    """Raised when the DevTools control plane yields no single target."""

    kind = "browser_discovery"


class BrowserSessionError(BrowserError):
    """Raised when the CDP session, navigation or overall deadline fails."""

    kind = "browser_session"


class CaptureError(BrowserError):
    """Raised when an element screenshot fails under the strict policy."""

    kind = "capture"


class StorageError(WotStatsError):
    """Raised on any database failure."""

    kind = "storage"


class UserNotFoundError(WotStatsError):
    """Raised when no user row matches."""

    kind = "user_not_found"


class PlayerLookupError(WotStatsError):
    """Raised when the Wargaming API call fails."""

    kind = "player_lookup"


class PlayerNotFoundError(WotStatsError):
    """Raised when no player matches the nickname exactly."""

    kind = "player_not_found"


class NicknameNotSavedError(WotStatsError):
    """Raised when a user has not saved a nickname yet."""

    kind = "nickname_not_saved"


class TrendImageNotFoundError(WotStatsError):
    """Raised when no stored trend image matches the anchor id."""

    kind = "trend_image_not_found"
