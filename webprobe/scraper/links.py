"""Anchor resolution and liveness probing.

Every ``<a href>`` on the page is resolved against the page URL and probed
with a single GET.  A link is *broken* when the request fails outright or the
server answers with a 4xx/5xx status.  Repeated links are probed, and
reported, once per occurrence.
"""

from __future__ import annotations

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx
from bs4.element import PageElement, Tag

from webprobe.config import settings
from webprobe.scraper.errors import AnalysisCancelled
from webprobe.scraper.fetcher import default_headers
from webprobe.scraper.walker import iter_preorder

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_reference(base_url: str, href: str) -> Optional[str]:
    """Resolve *href* against *base_url*, or return ``None`` if it is not a URL.

    References containing control characters or malformed percent-escapes,
    and ones ``urllib`` refuses to split (e.g. a broken IPv6 host), are
    rejected.
    """
    if _CONTROL_CHARS.search(href) or _BAD_ESCAPE.search(href):
        return None
    try:
        urlsplit(href)
        return urljoin(base_url, href)
    except ValueError:
        return None


def resolve_links(root: PageElement, base_url: str) -> list[str]:
    """Return the resolved URL of every anchor, in document order."""
    resolved: list[str] = []
    for node in iter_preorder(root):
        if not isinstance(node, Tag) or node.name != "a":
            continue
        href = node.get("href")
        if href is None:
            continue
        url = resolve_reference(base_url, str(href))
        if url is None:
            logger.debug("Skipping unparsable href %r on %s", href, base_url)
            continue
        resolved.append(url)
    return resolved


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

def probe_link(client: httpx.Client, url: str) -> bool:
    """Return ``True`` if *url* answers with a non-error status.

    Only the status line and headers are awaited; the body is not downloaded.
    URLs httpx refuses to build a request for (empty host, bad IDNA label)
    count as unreachable.
    """
    try:
        with client.stream("GET", url) as response:
            return not 400 <= response.status_code <= 599
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        logger.debug("Probe failed for %s: %s", url, exc)
        return False


def _check_sequential(
    client: httpx.Client,
    urls: list[str],
    base_url: str,
    cancel: Optional[threading.Event],
) -> list[str]:
    broken: list[str] = []
    for checked, url in enumerate(urls):
        if cancel is not None and cancel.is_set():
            raise AnalysisCancelled(base_url, checked)
        if not probe_link(client, url):
            broken.append(url)
    return broken


def _check_pooled(
    client: httpx.Client,
    urls: list[str],
    base_url: str,
    cancel: Optional[threading.Event],
    workers: int,
) -> list[str]:
    def _probe(url: str) -> Optional[bool]:
        if cancel is not None and cancel.is_set():
            return None
        return probe_link(client, url)

    outcomes: list[Optional[bool]] = [None] * len(urls)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="linkcheck") as pool:
        future_to_index = {pool.submit(_probe, url): i for i, url in enumerate(urls)}
        for future in as_completed(future_to_index):
            outcomes[future_to_index[future]] = future.result()

    if None in outcomes:
        raise AnalysisCancelled(base_url, sum(o is not None for o in outcomes))
    return [url for url, ok in zip(urls, outcomes) if not ok]


def check_links(
    root: PageElement,
    base_url: str,
    *,
    cancel: Optional[threading.Event] = None,
    workers: Optional[int] = None,
    timeout: Optional[float] = None,
) -> list[str]:
    """Probe every anchor on the page and return the broken ones.

    Args:
        root: Parsed document.
        base_url: Absolute URL of the page, used to resolve relative hrefs.
        cancel: Checked before each probe; once set, probing stops and
            :class:`AnalysisCancelled` is raised.
        workers: Probe concurrency.  ``1`` probes strictly one after another.
            Defaults to ``settings.link_check_workers``.
        timeout: Per-probe timeout.  Defaults to ``settings.link_timeout``.

    Returns:
        The broken URLs, fully resolved, in document order.
    """
    urls = resolve_links(root, base_url)
    width = max(1, workers if workers is not None else settings.link_check_workers)

    with httpx.Client(
        headers=default_headers(),
        timeout=timeout if timeout is not None else settings.link_timeout,
        follow_redirects=True,
    ) as client:
        if width == 1 or len(urls) <= 1:
            broken = _check_sequential(client, urls, base_url, cancel)
        else:
            broken = _check_pooled(client, urls, base_url, cancel, width)

    logger.info("Checked %d link(s) on %s: %d broken", len(urls), base_url, len(broken))
    return broken
