# wotstats/wargaming.py
from __future__ import annotations

import json
import logging
import socket
from typing import Any, Dict, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import OpenerDirector, Request, build_opener

from wotstats.config import WargamingSettings
from wotstats.errors import PlayerLookupError, PlayerNotFoundError

logger = logging.getLogger(__name__)


class PlayerLookupClient:
    """Resolves nicknames to Wargaming account ids."""

    HEADERS = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8",
    }

    def __init__(self, settings: WargamingSettings, opener: Optional[OpenerDirector] = None):
        self.settings = settings
        self.opener = opener or build_opener()

    def find_player(self, nickname: str) -> Tuple[str, int]:
        """
        Return ``(canonical_nickname, account_id)`` for an exact nickname match.

        The search endpoint returns prefix matches, so the result is filtered
        case-insensitively to the exact nickname.
        """
        query = urlencode({
            "application_id": self.settings.application_id,
            "search": nickname,
        })
        payload = self._get_json(f"{self.settings.api_url}?{query}")

        if payload.get("status") != "ok":
            error = payload.get("error") or {}
            logger.error(
                "Wargaming API returned an error: code=%s message=%s field=%s",
                error.get("code"),
                error.get("message"),
                error.get("field"),
            )
            raise PlayerLookupError(f"Wargaming API error: {error.get('message', 'unknown')}")

        wanted = nickname.lower()
        for player in payload.get("data") or []:
            if str(player.get("nickname", "")).lower() == wanted:
                try:
                    return player["nickname"], int(player["account_id"])
                except (KeyError, TypeError, ValueError) as exc:
                    raise PlayerLookupError(f"Malformed player record: {player!r}") from exc

        raise PlayerNotFoundError(f"Player '{nickname}' not found")

    def _get_json(self, url: str) -> Dict[str, Any]:
        req = Request(url, headers=self.HEADERS, method="GET")
        try:
            with self.opener.open(req, timeout=self.settings.http_timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            logger.error("Wargaming API returned HTTP %s", exc.code)
            raise PlayerLookupError(f"Wargaming API returned HTTP {exc.code}") from exc
        except (URLError, socket.timeout, OSError) as exc:
            logger.error("Error doing Wargaming API request: %s", exc)
            raise PlayerLookupError(f"Wargaming API unreachable: {exc}") from exc
        except ValueError as exc:
            logger.error("Error decoding Wargaming API response: %s", exc)
            raise PlayerLookupError("Wargaming API returned invalid JSON") from exc

        if not isinstance(payload, dict):
            raise PlayerLookupError("Wargaming API returned an unexpected payload")
        return payload
