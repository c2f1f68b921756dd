"""HTTP fetch of the page under analysis."""

from __future__ import annotations

import httpx

from webprobe.config import settings
from webprobe.scraper.errors import FetchError
from webprobe.scraper.models import RawPage


def default_headers() -> dict[str, str]:
    return {"User-Agent": settings.user_agent}


def fetch_page(url: str, timeout: float | None = None) -> RawPage:
    """Fetch *url* once and return a :class:`RawPage`.

    Any status code is accepted: an error page still has a document worth
    analysing.  Only a failed round trip is an error.

    Raises:
        FetchError: On connection failure, timeout, DNS failure, too many
            redirects or a URL httpx cannot request
            (including hosts IDNA rejects).
    """
    try:
        with httpx.Client(
            headers=default_headers(),
            timeout=timeout if timeout is not None else settings.page_timeout,
            follow_redirects=True,
        ) as client:
            response = client.get(url)
            html = response.text
            status_code = response.status_code
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        raise FetchError(url, str(exc) or type(exc).__name__) from exc

    return RawPage(url=url, html=html, status_code=status_code)
