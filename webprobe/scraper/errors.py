"""Exceptions raised by the page-analysis pipeline."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for failures that end a job in the ``error`` state."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class FetchError(AnalysisError):
    """The target page could not be fetched."""


class ParseError(AnalysisError):
    """The fetched body could not be parsed as HTML at all."""


class AnalysisCancelled(Exception):
    """The job was stopped while its links were being probed."""

    def __init__(self, url: str, checked: int) -> None:
        super().__init__(f"{url}: cancelled after {checked} link probe(s)")
        self.url = url
        self.checked = checked
