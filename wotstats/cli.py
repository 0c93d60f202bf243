# wotstats/cli.py
"""
Command line entry point.

Usage:
    wotstats lookup Straik
    wotstats save 123456 Straik
    wotstats refresh 123456
    wotstats me 123456
    wotstats trend 123456 wn8 -o wn8.png
"""

import argparse
import logging
import sys
from typing import List, Optional

from wotstats.config import Settings, load_settings
from wotstats.database import Database
from wotstats.errors import WotStatsError
from wotstats.models import StatisticEntry, StatKind
from wotstats.scraper import RemoteBrowserController, StatsPageScraper
from wotstats.service import StatsService
from wotstats.sync import StatsSynchronizer
from wotstats.wargaming import PlayerLookupClient

logger = logging.getLogger(__name__)


def _safe_print(message: str) -> None:
    """Print with fallback for restricted terminal encodings."""
    try:
        print(message)
    except UnicodeEncodeError:
        print(message.encode("ascii", errors="replace").decode("ascii"))


def build_service(settings: Settings, database: Database) -> StatsService:
    synchronizer = StatsSynchronizer(
        scraper=StatsPageScraper(settings.xvm),
        controller=RemoteBrowserController(settings.xvm),
    )
    return StatsService(
        database=database,
        players=PlayerLookupClient(settings.wargaming),
        synchronizer=synchronizer,
    )


def _print_entries(entries: List[StatisticEntry]) -> None:
    metrics = [e for e in entries if e.kind is StatKind.TEXT_METRIC]
    charts = [e for e in entries if e.kind is StatKind.VEHICLE_CHART]

    if not entries:
        _safe_print("No stats found.")
        return

    for entry in metrics:
        marker = " [trend]" if entry.has_image else ""
        _safe_print(f"  {entry.name}: {entry.value}  ({entry.anchor_id}){marker}")
    if charts:
        _safe_print("Vehicles:")
        for entry in charts:
            marker = " [trend]" if entry.has_image else ""
            _safe_print(f"  {entry.name}  ({entry.anchor_id}){marker}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wotstats",
        description="Fetch, capture and store World of Tanks player stats from XVM",
    )
    parser.add_argument('-v', '--verbose', action='store_true', default=False, help='Verbose logs')
    parser.add_argument('--db', default=None, help='SQLite database path (default: WOT_DATABASE_PATH)')

    sub = parser.add_subparsers(dest='command', required=True)

    lookup = sub.add_parser('lookup', help='Show stats of any player (no trend images)')
    lookup.add_argument('nickname')

    save = sub.add_parser('save', help='Save a nickname for a user and store a snapshot')
    save.add_argument('telegram_id', type=int)
    save.add_argument('nickname')

    refresh = sub.add_parser('refresh', help='Refresh the stored snapshot of a user')
    refresh.add_argument('telegram_id', type=int)

    me = sub.add_parser('me', help='Show the stored snapshot of a user')
    me.add_argument('telegram_id', type=int)

    trend = sub.add_parser('trend', help='Write a stored trend image to a file')
    trend.add_argument('telegram_id', type=int)
    trend.add_argument('anchor_id')
    trend.add_argument('-o', '--output', required=True, help='PNG output path')

    return parser


def run(args: argparse.Namespace, service: StatsService) -> None:
    if args.command == 'lookup':
        nickname, entries = service.lookup(args.nickname)
        _safe_print(f"Player: {nickname}")
        _print_entries(entries)
    elif args.command == 'save':
        user, entries = service.save_nickname(args.telegram_id, args.nickname)
        _safe_print(f"Saved {user.nickname} ({len(entries)} stats)")
    elif args.command == 'refresh':
        entries = service.refresh(args.telegram_id)
        _safe_print(f"Stats refreshed ({len(entries)} stats)")
    elif args.command == 'me':
        user, entries = service.profile(args.telegram_id)
        _safe_print(f"Player: {user.nickname} ({user.wargaming_id})")
        _print_entries(entries)
    elif args.command == 'trend':
        image = service.trend_image(args.telegram_id, args.anchor_id)
        with open(args.output, 'wb') as f:
            f.write(image)
        _safe_print(f"Wrote {len(image)} bytes to {args.output}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
    except ValueError as e:
        _safe_print(f"[ERROR] config: {e}")
        return 2

    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or settings.verbose) else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    database = None
    try:
        database = Database(args.db or settings.database.path)
        run(args, build_service(settings, database))
    except WotStatsError as e:
        _safe_print(f"[ERROR] {e.kind}: {e}")
        return 1
    finally:
        if database is not None:
            database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
