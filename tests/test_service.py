# tests/test_service.py

import pytest

from wotstats.database import Database
from wotstats.errors import NicknameNotSavedError, PlayerNotFoundError, TrendImageNotFoundError, UserNotFoundError
from wotstats.service import StatsService
from tests.helpers import chart, metric


class StubPlayers:
    def __init__(self, players):
        self.players = players

    def find_player(self, nickname):
        for name, account_id in self.players.items():
            if name.lower() == nickname.lower():
                return name, account_id
        raise PlayerNotFoundError(nickname)


class StubSynchronizer:
    def __init__(self):
        self.calls = []
        self.version = 0

    def fetch(self, account_id, with_trend):
        self.calls.append((account_id, with_trend))
        self.version += 1
        image = b"png-%d" % self.version if with_trend else None
        return [
            metric("WN8", str(2500 + self.version), "#wn8", image=image),
            chart("IS-7", "#c1"),
        ]


@pytest.fixture
def db():
    database = Database(':memory:')
    yield database
    database.close()


@pytest.fixture
def sync():
    return StubSynchronizer()


@pytest.fixture
def service(db, sync):
    return StatsService(db, StubPlayers({"Straik": 5432100}), sync)


def test_save_nickname_stores_trend_snapshot(service, db, sync):
    service.register(1001)

    user, stored = service.save_nickname(1001, "straik")

    assert (user.nickname, user.wargaming_id) == ("Straik", 5432100)
    assert sync.calls == [(5432100, True)]
    assert db.get_stats(user.id) == stored
    assert stored[0].image == b"png-1"


def test_refresh_replaces_snapshot(service, db, sync):
    user, _ = service.save_nickname(1001, "Straik")

    refreshed = service.refresh(1001)

    assert [e.value for e in refreshed] == ["2502", None]
    assert db.get_stats(user.id) == refreshed


def test_refresh_without_nickname(service):
    service.register(1001)
    with pytest.raises(NicknameNotSavedError):
        service.refresh(1001)


def test_refresh_unknown_user(service):
    with pytest.raises(UserNotFoundError):
        service.refresh(404)


def test_profile(service):
    service.save_nickname(1001, "Straik")
    user, entries = service.profile(1001)
    assert user.nickname == "Straik"
    assert [e.anchor_id for e in entries] == ["#wn8", "#c1"]


def test_trend_image_lookup(service):
    service.save_nickname(1001, "Straik")

    assert service.trend_image(1001, "#wn8") == b"png-1"
    assert service.trend_image(1001, "wn8") == b"png-1"
    with pytest.raises(TrendImageNotFoundError):
        service.trend_image(1001, "#c1")
    with pytest.raises(TrendImageNotFoundError):
        service.trend_image(1001, "#nope")


def test_lookup_uses_cheap_path_and_no_storage(service, db, sync):
    nickname, entries = service.lookup("STRAIK")

    assert nickname == "Straik"
    assert sync.calls == [(5432100, False)]
    assert all(e.image is None for e in entries)
    assert db.conn.execute("SELECT COUNT(*) FROM stats").fetchone()[0] == 0


def test_lookup_unknown_player(service, sync):
    with pytest.raises(PlayerNotFoundError):
        service.lookup("nobody")
    assert sync.calls == []
