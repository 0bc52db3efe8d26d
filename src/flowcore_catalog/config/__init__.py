"""Environment-driven settings for the catalog crawler."""

from flowcore_catalog.config.config import CrawlerSettings, default_headers, load_settings

__all__ = ["CrawlerSettings", "default_headers", "load_settings"]
