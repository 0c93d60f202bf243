# wotstats/scraper/__init__.py
"""
Stats page scraping and trend image capture.

The page scraper reads text metrics and chart anchors over plain HTTP; the
browser controller screenshots the same anchors through a remote Chrome.
"""

from .page import StatsPageScraper
from .session import CdpConnector, discover_debugger_url, resolve_control_plane_url
from .capture import CaptureSession, CaptureState, Deadline, RemoteBrowserController

__all__ = [
    'StatsPageScraper',
    'CdpConnector',
    'discover_debugger_url',
    'resolve_control_plane_url',
    'CaptureSession',
    'CaptureState',
    'Deadline',
    'RemoteBrowserController',
]
