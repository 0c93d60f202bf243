# wotstats/sync.py
"""
Stats synchronization: page scrape plus optional trend image capture.
"""

import logging
from typing import List

from wotstats.models import StatisticEntry

logger = logging.getLogger(__name__)


class StatsSynchronizer:
    """Combines the page scraper and the browser controller into one fetch."""

    def __init__(self, scraper, controller):
        self.scraper = scraper
        self.controller = controller

    def fetch(self, account_id: int, with_trend: bool) -> List[StatisticEntry]:
        """
        Return the player's stats in page order.

        The browser is only driven when ``with_trend`` is set. Entries whose
        anchor was not captured keep ``image=None``. Scraper and controller
        errors propagate unchanged.
        """
        entries = self.scraper.extract(account_id)
        if not with_trend:
            return entries

        if not entries:
            logger.info("No stats entries for %s, skipping trend capture", account_id)
            return entries

        images = self.controller.capture_all(account_id, [e.anchor_id for e in entries])
        for entry in entries:
            entry.image = images.get(entry.anchor_id)

        logger.debug(
            "Merged %d trend images into %d entries for %s",
            sum(1 for e in entries if e.image is not None),
            len(entries),
            account_id,
        )
        return entries
