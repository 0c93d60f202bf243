# wotstats/models.py
"""
Typed records shared by the scraper, the browser controller and the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class StatKind(str, Enum):
    TEXT_METRIC = "text_metric"
    VEHICLE_CHART = "vehicle_chart"


@dataclass
class StatisticEntry:
    """
    One statistic scraped from the stats page.

    TEXT_METRIC entries carry a displayed ``value``; VEHICLE_CHART entries
    are image-only and keep ``value`` as None. ``anchor_id`` is the ``#id``
    of the DOM element used both for the text and for the screenshot.

    Storage fields (``id``, ``user_id``, ``created_at``) are excluded from
    equality so a row read back from the database compares equal to the entry
    that was written.
    """

    kind: StatKind
    name: str
    anchor_id: str
    value: Optional[str] = None
    image: Optional[bytes] = field(default=None, repr=False)
    id: Optional[int] = field(default=None, compare=False)
    user_id: Optional[int] = field(default=None, compare=False)
    created_at: Optional[str] = field(default=None, compare=False)

    @property
    def element_id(self) -> str:
        """Anchor id without the leading '#'."""
        return self.anchor_id[1:] if self.anchor_id.startswith("#") else self.anchor_id

    @property
    def has_image(self) -> bool:
        return bool(self.image)


@dataclass
class User:
    id: int
    telegram_id: int
    nickname: Optional[str] = None
    wargaming_id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
