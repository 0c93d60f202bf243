from urllib.error import URLError
from urllib.parse import parse_qs, urlsplit

import pytest

from wotstats.config import WargamingSettings
from wotstats.errors import PlayerLookupError, PlayerNotFoundError
from wotstats.wargaming import PlayerLookupClient
from tests.helpers import FakeOpener


@pytest.fixture
def settings():
    return WargamingSettings(application_id="demo-app", http_timeout=4.0)


def test_find_player_exact_match_case_insensitive(settings):
    opener = FakeOpener(body={
        "status": "ok",
        "data": [
            {"nickname": "Straik_2012", "account_id": 111},
            {"nickname": "Straik", "account_id": 5432100},
        ],
    })

    nickname, account_id = PlayerLookupClient(settings, opener).find_player("straik")

    assert (nickname, account_id) == ("Straik", 5432100)
    query = parse_qs(urlsplit(opener.requests[0].full_url).query)
    assert query == {"application_id": ["demo-app"], "search": ["straik"]}
    assert opener.timeouts == [4.0]


def test_only_prefix_matches_is_not_found(settings):
    opener = FakeOpener(body={"status": "ok", "data": [{"nickname": "Straik_2012", "account_id": 1}]})
    with pytest.raises(PlayerNotFoundError):
        PlayerLookupClient(settings, opener).find_player("Straik")


def test_api_error_status(settings):
    opener = FakeOpener(body={
        "status": "error",
        "error": {"code": 407, "message": "INVALID_APPLICATION_ID", "field": "application_id"},
    })
    with pytest.raises(PlayerLookupError):
        PlayerLookupClient(settings, opener).find_player("Straik")


@pytest.mark.parametrize("opener", [
    FakeOpener(error=URLError("dns failure")),
    FakeOpener(body=b"not json"),
    FakeOpener(body=[1, 2, 3]),
])
def test_transport_and_payload_errors(settings, opener):
    with pytest.raises(PlayerLookupError):
        PlayerLookupClient(settings, opener).find_player("Straik")
