"""Page Analyzer: one URL in, one :class:`AnalysisResult` out.

Pipeline (strictly sequential)::

    fetch → parse → walk → link-check → AnalysisResult

No retries happen here; the first failure propagates to the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from bs4 import BeautifulSoup, ParserRejectedMarkup

from webprobe.scraper.errors import ParseError
from webprobe.scraper.fetcher import fetch_page
from webprobe.scraper.links import check_links
from webprobe.scraper.models import AnalysisResult
from webprobe.scraper.walker import walk

logger = logging.getLogger(__name__)


def parse_page(url: str, html: str) -> BeautifulSoup:
    """Parse *html* permissively with the stdlib-backed ``html.parser`` builder.

    Raises:
        ParseError: If the parser rejects the markup outright.
    """
    try:
        return BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ParseError(url, str(exc)) from exc


def analyze_html(
    url: str,
    html: str,
    *,
    cancel: Optional[threading.Event] = None,
) -> AnalysisResult:
    """Analyse an already-fetched document located at *url*."""
    soup = parse_page(url, html)
    features = walk(soup)
    broken = check_links(soup, url, cancel=cancel)
    return AnalysisResult.from_features(url, features, broken)


def analyze_url(url: str, *, cancel: Optional[threading.Event] = None) -> AnalysisResult:
    """Fetch *url* and analyse it.

    Args:
        url: Absolute URL of the page.
        cancel: Optional stop signal polled between link probes.

    Raises:
        FetchError: The page could not be fetched.
        ParseError: The body could not be parsed.
        AnalysisCancelled: *cancel* was set during link checking.
    """
    logger.info("Analyzing URL: %s", url)
    raw = fetch_page(url)
    logger.debug("Fetched %s: HTTP %d, %d chars", url, raw.status_code, len(raw.html))
    return analyze_html(url, raw.html, cancel=cancel)
