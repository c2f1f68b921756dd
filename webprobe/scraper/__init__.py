"""Scraper package: page fetch, structural walk and link checking."""

from webprobe.scraper.analyzer import analyze_html, analyze_url
from webprobe.scraper.errors import AnalysisCancelled, AnalysisError, FetchError, ParseError
from webprobe.scraper.models import AnalysisResult, HtmlVersion, PageFeatures, RawPage

__all__ = [
    "analyze_url",
    "analyze_html",
    "AnalysisResult",
    "HtmlVersion",
    "PageFeatures",
    "RawPage",
    "AnalysisError",
    "AnalysisCancelled",
    "FetchError",
    "ParseError",
]
