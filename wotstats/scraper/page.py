# wotstats/scraper/page.py
from __future__ import annotations

import codecs
import logging
import re
import socket
from typing import List, Optional, Set
from urllib.error import HTTPError, URLError
from urllib.request import OpenerDirector, Request, build_opener

from bs4 import BeautifulSoup

from wotstats.config import XvmSettings
from wotstats.errors import FetchError, ParseError
from wotstats.models import StatisticEntry, StatKind

logger = logging.getLogger(__name__)


class StatsPageScraper:
    """Extracts summary metrics and vehicle chart locations from the XVM stats page."""

    USER_AGENT = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )
    HEADERS = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml",
        "Accept-Language": "ru-RU,ru;q=0.9,en;q=0.8",
    }

    SUMMARY_SELECTOR = ".stats-summary a"
    SUMMARY_NAME_SELECTOR = ".h5"
    SUMMARY_VALUE_SELECTOR = ".h2"
    VEHICLE_SECTION_ID = "vehicles-charts"
    CHART_TITLE_RE = re.compile(
        r"title\s*:\s*\{[^}]*?text\s*:\s*(?P<quote>[\"'])(?P<title>.+?)(?P=quote)",
        re.S,
    )

    def __init__(self, settings: XvmSettings, opener: Optional[OpenerDirector] = None):
        self.settings = settings
        self.opener = opener or build_opener()

    # --- Main entry point ---

    def extract(self, account_id: int) -> List[StatisticEntry]:
        """Fetch the stats page for ``account_id`` and return entries in page order."""
        url = self.settings.page_url(account_id)
        html = self._fetch(url)
        return self.parse(html)

    def parse(self, html: str) -> List[StatisticEntry]:
        soup = self._parse_document(html)

        seen: Set[str] = set()
        entries = self._parse_summary(soup, seen)
        entries.extend(self._parse_vehicle_charts(soup, seen))

        logger.debug(
            "Extracted %d stats entries (%d vehicle charts)",
            len(entries),
            sum(1 for e in entries if e.kind is StatKind.VEHICLE_CHART),
        )
        return entries

    # --- Internal helpers ---

    def _fetch(self, url: str) -> str:
        req = Request(url, headers=self.HEADERS, method="GET")
        try:
            with self.opener.open(req, timeout=self.settings.http_timeout) as resp:
                raw = resp.read()
                charset = resp.headers.get_content_charset() or "utf-8"
        except HTTPError as exc:
            logger.error("Stats page returned HTTP %s for %s", exc.code, url)
            raise FetchError(f"Stats page returned HTTP {exc.code}") from exc
        except (URLError, socket.timeout, OSError) as exc:
            logger.error("Error fetching stats page %s: %s", url, exc)
            raise FetchError(f"Could not fetch stats page: {exc}") from exc

        try:
            codecs.lookup(charset)
        except LookupError:
            logger.warning("Unknown charset %r for %s, decoding as utf-8", charset, url)
            charset = "utf-8"
        return raw.decode(charset, errors="replace")

    def _parse_document(self, html: str) -> BeautifulSoup:
        if not html or not html.strip():
            raise ParseError("Stats page is empty")

        soup = BeautifulSoup(html, "html.parser")
        if soup.find() is None:
            raise ParseError("Stats page has no HTML elements")
        return soup

    def _parse_summary(self, soup: BeautifulSoup, seen: Set[str]) -> List[StatisticEntry]:
        links = soup.select(self.SUMMARY_SELECTOR)
        if not links:
            logger.info("Stats summary section not found")
            return []

        entries: List[StatisticEntry] = []
        for link in links:
            entry = self._parse_summary_link(link)
            if entry is None:
                continue
            if entry.anchor_id in seen:
                logger.debug("Skipping duplicate summary anchor %s", entry.anchor_id)
                continue
            seen.add(entry.anchor_id)
            entries.append(entry)
        return entries

    def _parse_summary_link(self, link) -> Optional[StatisticEntry]:
        href = (link.get("href") or "").strip()
        if not href.startswith("#") or len(href) < 2:
            logger.debug("Skipping summary link without anchor: %r", href)
            return None

        name = self._text(link.select_one(self.SUMMARY_NAME_SELECTOR))
        if not name:
            logger.debug("Skipping summary link %s without a name", href)
            return None

        return StatisticEntry(
            kind=StatKind.TEXT_METRIC,
            name=name,
            value=self._text(link.select_one(self.SUMMARY_VALUE_SELECTOR)),
            anchor_id=href,
        )

    def _parse_vehicle_charts(self, soup: BeautifulSoup, seen: Set[str]) -> List[StatisticEntry]:
        section = soup.find(id=self.VEHICLE_SECTION_ID)
        if section is None:
            logger.info("Vehicle charts section #%s not found", self.VEHICLE_SECTION_ID)
            return []

        entries: List[StatisticEntry] = []
        for block in section.find_all(recursive=False):
            entry = self._parse_chart_block(block)
            if entry is None:
                continue
            if entry.anchor_id in seen:
                logger.debug("Skipping duplicate chart anchor %s", entry.anchor_id)
                continue
            seen.add(entry.anchor_id)
            entries.append(entry)
        return entries

    def _parse_chart_block(self, block) -> Optional[StatisticEntry]:
        canvas = block.find("canvas", id=True)
        canvas_id = (canvas.get("id") or "").strip() if canvas is not None else ""
        if not canvas_id:
            logger.debug("Skipping chart block without canvas id")
            return None

        title = self._chart_title(block)
        if not title:
            logger.debug("Skipping chart #%s without a title", canvas_id)
            return None

        return StatisticEntry(
            kind=StatKind.VEHICLE_CHART,
            name=title,
            anchor_id=f"#{canvas_id}",
        )

    def _chart_title(self, block) -> str:
        for script in block.find_all("script"):
            match = self.CHART_TITLE_RE.search(script.string or script.get_text() or "")
            if match:
                return match.group("title").strip()
        return ""

    @staticmethod
    def _text(node) -> str:
        if node is None:
            return ""
        return node.get_text(" ", strip=True)
