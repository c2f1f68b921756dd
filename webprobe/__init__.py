"""webprobe: single-page crawl-and-analyze service."""

__version__ = "0.1.0"
