import pytest

from wotstats import cli
from wotstats.errors import PlayerNotFoundError
from wotstats.models import User
from tests.helpers import chart, metric


class StubService:
    def __init__(self, error=None):
        self.error = error

    def lookup(self, nickname):
        if self.error is not None:
            raise self.error
        return "Straik", [metric("WN8", "2500", "#wn8"), chart("IS-7", "#c1")]

    def profile(self, telegram_id):
        return User(id=1, telegram_id=telegram_id, nickname="Straik", wargaming_id=5432100), [
            metric("WN8", "2500", "#wn8", image=b"png"),
        ]

    def trend_image(self, telegram_id, anchor_id):
        return b"\x89PNG"


def test_lookup_prints_metrics_and_vehicles(capsys):
    args = cli.build_parser().parse_args(["lookup", "straik"])
    cli.run(args, StubService())

    out = capsys.readouterr().out
    assert "Player: Straik" in out
    assert "WN8: 2500" in out
    assert "Vehicles:" in out
    assert "IS-7" in out


def test_me_marks_stored_trend_images(capsys):
    args = cli.build_parser().parse_args(["me", "1001"])
    cli.run(args, StubService())
    assert "[trend]" in capsys.readouterr().out


def test_trend_writes_file(tmp_path):
    target = tmp_path / "wn8.png"
    args = cli.build_parser().parse_args(["trend", "1001", "wn8", "-o", str(target)])
    cli.run(args, StubService())
    assert target.read_bytes() == b"\x89PNG"


def test_main_reports_error_kind(monkeypatch, capsys, tmp_path):
    monkeypatch.setattr(cli, "build_service", lambda settings, database: StubService(PlayerNotFoundError("nobody")))
    code = cli.main(["--db", str(tmp_path / "cli.db"), "lookup", "nobody"])
    assert code == 1
    assert "[ERROR] player_not_found" in capsys.readouterr().out


def test_subcommand_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])
