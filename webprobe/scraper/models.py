"""Data models for the page-analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class HtmlVersion(str, Enum):
    HTML5 = "HTML5"
    XHTML_11 = "XHTML 1.1"
    XHTML_10 = "XHTML 1.0"
    HTML_401 = "HTML 4.01"
    HTML_40 = "HTML 4.0"


@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int


@dataclass(frozen=True)
class PageFeatures:
    """Structural counts collected by one walk over a document tree.

    Instances are immutable; the walker folds each visited node into a new
    value with :func:`dataclasses.replace`.
    """

    title: Optional[str] = None
    headings: tuple[int, int, int, int, int, int] = (0, 0, 0, 0, 0, 0)
    internal_links: int = 0
    external_links: int = 0
    has_login_form: bool = False
    html_version: HtmlVersion = HtmlVersion.HTML5


@dataclass(frozen=True)
class AnalysisResult:
    """The outcome of analysing one page.

    ``inaccessible_links`` is derived from ``broken_links`` so the two can
    never disagree.
    """

    url: str
    html_version: HtmlVersion
    title: Optional[str]
    h1_count: int = 0
    h2_count: int = 0
    h3_count: int = 0
    h4_count: int = 0
    h5_count: int = 0
    h6_count: int = 0
    internal_links: int = 0
    external_links: int = 0
    broken_links: tuple[str, ...] = field(default_factory=tuple)
    has_login_form: bool = False

    @property
    def inaccessible_links(self) -> int:
        return len(self.broken_links)

    @property
    def heading_counts(self) -> tuple[int, int, int, int, int, int]:
        return (
            self.h1_count,
            self.h2_count,
            self.h3_count,
            self.h4_count,
            self.h5_count,
            self.h6_count,
        )

    @classmethod
    def from_features(
        cls, url: str, features: PageFeatures, broken_links: list[str]
    ) -> AnalysisResult:
        h1, h2, h3, h4, h5, h6 = features.headings
        return cls(
            url=url,
            html_version=features.html_version,
            title=features.title,
            h1_count=h1,
            h2_count=h2,
            h3_count=h3,
            h4_count=h4,
            h5_count=h5,
            h6_count=h6,
            internal_links=features.internal_links,
            external_links=features.external_links,
            broken_links=tuple(broken_links),
            has_login_form=features.has_login_form,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the flat JSON shape used by the API and CLI."""
        return {
            "url": self.url,
            "html_version": self.html_version.value,
            "title": self.title,
            "h1_count": self.h1_count,
            "h2_count": self.h2_count,
            "h3_count": self.h3_count,
            "h4_count": self.h4_count,
            "h5_count": self.h5_count,
            "h6_count": self.h6_count,
            "internal_links": self.internal_links,
            "external_links": self.external_links,
            "inaccessible_links": self.inaccessible_links,
            "broken_links": list(self.broken_links),
            "has_login_form": self.has_login_form,
        }
