"""
wotstats: World of Tanks player stats scraping, trend capture and storage.
"""

__version__ = "0.3.0"
