"""Single-pass structural walk over a parsed HTML document.

The walk is a fold: every node, visited depth-first in document order, is fed
to :func:`_visit` together with the :class:`PageFeatures` collected so far and
yields the next (immutable) value.  Traversal uses an explicit stack so deeply
nested documents cannot exhaust the interpreter's recursion limit.
"""

from __future__ import annotations

from dataclasses import replace
from functools import reduce
from typing import Iterator, Optional

from bs4.element import Doctype, NavigableString, PageElement, PreformattedString, Tag

from webprobe.scraper.models import HtmlVersion, PageFeatures

_HEADING_LEVELS = {f"h{level}": level - 1 for level in range(1, 7)}

# Checked in order; the first substring found wins.
_DOCTYPE_MARKERS = (
    ("xhtml 1.1", HtmlVersion.XHTML_11),
    ("xhtml 1.0", HtmlVersion.XHTML_10),
    ("html 4.01", HtmlVersion.HTML_401),
    ("html 4.0", HtmlVersion.HTML_40),
)


def iter_preorder(root: PageElement) -> Iterator[PageElement]:
    """Yield *root* and all of its descendants, depth-first, pre-order."""
    stack: list[PageElement] = [root]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, Tag):
            stack.extend(reversed(node.contents))


def _first_text(tag: Tag) -> Optional[str]:
    if not tag.contents:
        return None
    first = tag.contents[0]
    if isinstance(first, NavigableString) and not isinstance(first, PreformattedString):
        return str(first)
    return None


def _is_login_form(form: Tag) -> bool:
    action = form.get("action")
    if isinstance(action, str) and ("login" in action or "signin" in action):
        return True
    return form.find("input", attrs={"type": "password"}) is not None


def _visit(features: PageFeatures, node: PageElement) -> PageFeatures:
    if not isinstance(node, Tag):
        return features

    name = node.name
    if name == "title":
        # First title with text wins; later ones are ignored.
        if features.title is None:
            text = _first_text(node)
            if text is not None:
                return replace(features, title=text)
        return features

    if name in _HEADING_LEVELS:
        headings = list(features.headings)
        headings[_HEADING_LEVELS[name]] += 1
        return replace(features, headings=tuple(headings))

    if name == "a":
        href = node.get("href")
        if href is None:
            return features
        # Raw prefix test, no scheme check: "httphony://x" counts as external.
        if str(href).startswith("http"):
            return replace(features, external_links=features.external_links + 1)
        return replace(features, internal_links=features.internal_links + 1)

    if name == "form" and not features.has_login_form:
        if _is_login_form(node):
            return replace(features, has_login_form=True)

    return features


def find_doctype(root: PageElement) -> Optional[str]:
    """Return the declared value of the first doctype node, if any."""
    for node in iter_preorder(root):
        if isinstance(node, Doctype):
            return str(node)
    return None


def classify_doctype(declared: Optional[str]) -> HtmlVersion:
    """Map a doctype declaration to an :class:`HtmlVersion`.

    Unknown or missing declarations fall back to ``HTML5``.
    """
    if declared is None:
        return HtmlVersion.HTML5

    declared = declared.strip()
    lowered = declared.lower()
    if "html 5" in lowered or declared == "html":
        return HtmlVersion.HTML5
    for marker, version in _DOCTYPE_MARKERS:
        if marker in lowered:
            return version
    return HtmlVersion.HTML5


def walk(root: PageElement) -> PageFeatures:
    """Collect title, heading counts, link classes, login-form flag and version."""
    features = reduce(_visit, iter_preorder(root), PageFeatures())
    return replace(features, html_version=classify_doctype(find_doctype(root)))
