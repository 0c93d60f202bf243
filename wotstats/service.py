# wotstats/service.py
"""
User-facing flows built on the sync pipeline.

Returns data only; message formatting belongs to the chat front end.
"""

import logging
from typing import List, Tuple

from wotstats.errors import NicknameNotSavedError, TrendImageNotFoundError
from wotstats.models import StatisticEntry, User

logger = logging.getLogger(__name__)


class StatsService:
    def __init__(self, database, players, synchronizer):
        self.database = database
        self.players = players
        self.synchronizer = synchronizer

    def register(self, telegram_id: int) -> User:
        return self.database.upsert_user(telegram_id)

    def save_nickname(self, telegram_id: int, nickname: str) -> Tuple[User, List[StatisticEntry]]:
        """Resolve ``nickname``, store it on the user and build the first snapshot."""
        nickname, account_id = self.players.find_player(nickname)
        user = self.database.upsert_user(telegram_id, nickname=nickname, wargaming_id=account_id)

        entries = self.synchronizer.fetch(account_id, with_trend=True)
        stored = self.database.replace_stats(user.id, entries)
        logger.info("Saved nickname %s (%s) for telegram user %s", nickname, account_id, telegram_id)
        return user, stored

    def refresh(self, telegram_id: int) -> List[StatisticEntry]:
        user = self.database.get_user_by_telegram_id(telegram_id)
        if user.wargaming_id is None:
            raise NicknameNotSavedError(f"User {telegram_id} has not saved a nickname")

        entries = self.synchronizer.fetch(user.wargaming_id, with_trend=True)
        return self.database.replace_stats(user.id, entries)

    def profile(self, telegram_id: int) -> Tuple[User, List[StatisticEntry]]:
        user = self.database.get_user_by_telegram_id(telegram_id)
        if user.nickname is None or user.wargaming_id is None:
            raise NicknameNotSavedError(f"User {telegram_id} has not saved a nickname")
        return user, self.database.get_stats(user.id)

    def trend_image(self, telegram_id: int, anchor_id: str) -> bytes:
        """Return the stored trend image of ``anchor_id`` ("#wn8" or "wn8")."""
        if not anchor_id.startswith("#"):
            anchor_id = f"#{anchor_id}"

        user = self.database.get_user_by_telegram_id(telegram_id)
        for entry in self.database.get_stats(user.id):
            if entry.anchor_id == anchor_id and entry.image:
                return entry.image

        raise TrendImageNotFoundError(f"No trend image for {anchor_id}")

    def lookup(self, nickname: str) -> Tuple[str, List[StatisticEntry]]:
        """Stats of any player without touching the browser or the database."""
        nickname, account_id = self.players.find_player(nickname)
        return nickname, self.synchronizer.fetch(account_id, with_trend=False)
