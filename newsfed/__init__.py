"""newsfed - news discovery engine for feeds and scraped websites."""

__version__ = "0.1.0"
