"""Tests for anchor resolution and link probing.

Mocking strategy:
- ``respx`` patches ``httpx`` at the transport layer so no real network calls
  are made; every URL a test probes has a matching route.
"""

from __future__ import annotations

import threading

import httpx
import pytest
import respx
from bs4 import BeautifulSoup

from webprobe.scraper.errors import AnalysisCancelled
from webprobe.scraper.links import check_links, probe_link, resolve_links, resolve_reference

_BASE = "https://example.com/a/"


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

class TestResolveReference:
    def test_relative_path(self) -> None:
        assert resolve_reference(_BASE, "b.html") == "https://example.com/a/b.html"

    def test_root_relative(self) -> None:
        assert resolve_reference(_BASE, "/c") == "https://example.com/c"

    def test_parent_segment(self) -> None:
        assert resolve_reference(_BASE, "../d") == "https://example.com/d"

    def test_absolute_reference_wins(self) -> None:
        assert resolve_reference(_BASE, "http://other.org/x") == "http://other.org/x"

    def test_scheme_relative(self) -> None:
        assert resolve_reference(_BASE, "//cdn.example.net/lib.js") == "https://cdn.example.net/lib.js"

    def test_query_only(self) -> None:
        assert resolve_reference(_BASE, "?page=2") == "https://example.com/a/?page=2"

    def test_broken_ipv6_host_is_rejected(self) -> None:
        assert resolve_reference(_BASE, "http://[::1/") is None

    def test_bad_percent_escape_is_rejected(self) -> None:
        assert resolve_reference(_BASE, "100%zz") is None

    def test_control_character_is_rejected(self) -> None:
        assert resolve_reference(_BASE, "foo\x7fbar") is None


class TestResolveLinks:
    def test_document_order_with_duplicates(self) -> None:
        html = (
            '<a href="b.html">1</a><div><a href="/c">2</a></div>'
            '<a>no href</a><a href="b.html">3</a>'
        )
        assert resolve_links(_soup(html), _BASE) == [
            "https://example.com/a/b.html",
            "https://example.com/c",
            "https://example.com/a/b.html",
        ]

    def test_unparsable_href_is_skipped(self) -> None:
        html = '<a href="http://[::1/">bad</a><a href="ok">ok</a>'
        assert resolve_links(_soup(html), _BASE) == ["https://example.com/a/ok"]


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

class TestProbeLink:
    @pytest.mark.parametrize("status", [200, 204, 301, 399])
    def test_non_error_status_is_reachable(self, status: int) -> None:
        with respx.mock:
            respx.get("https://example.com/x").mock(return_value=httpx.Response(status))
            with httpx.Client() as client:
                assert probe_link(client, "https://example.com/x") is True

    @pytest.mark.parametrize("status", [400, 404, 410, 500, 503, 599])
    def test_error_status_is_broken(self, status: int) -> None:
        with respx.mock:
            respx.get("https://example.com/x").mock(return_value=httpx.Response(status))
            with httpx.Client() as client:
                assert probe_link(client, "https://example.com/x") is False

    def test_connection_error_is_broken(self) -> None:
        with respx.mock:
            respx.get("https://down.example.com/").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            with httpx.Client() as client:
                assert probe_link(client, "https://down.example.com/") is False

    def test_timeout_is_broken(self) -> None:
        with respx.mock:
            respx.get("https://slow.example.com/").mock(
                side_effect=httpx.ReadTimeout("timed out")
            )
            with httpx.Client() as client:
                assert probe_link(client, "https://slow.example.com/") is False

    def test_unsupported_scheme_is_broken(self) -> None:
        with httpx.Client() as client:
            assert probe_link(client, "mailto:someone@example.com") is False

    @pytest.mark.parametrize("href", ["http://", "http:///x", "http://xn--/"])
    def test_unrequestable_url_is_broken(self, href: str) -> None:
        url = resolve_reference(_BASE, href)
        assert url is not None
        with respx.mock(assert_all_called=False):
            with httpx.Client() as client:
                assert probe_link(client, url) is False


class TestCheckLinks:
    _PAGE = (
        '<a href="ok.html">ok</a>'
        '<a href="https://dead.example.org/">dead</a>'
        '<a href="/gone">gone</a>'
        '<a href="ok.html">ok again</a>'
        '<a href="https://dead.example.org/">dead again</a>'
    )

    def _mock_routes(self) -> None:
        respx.get("https://example.com/a/ok.html").mock(return_value=httpx.Response(200))
        respx.get("https://dead.example.org/").mock(side_effect=httpx.ConnectError("nxdomain"))
        respx.get("https://example.com/gone").mock(return_value=httpx.Response(404))

    def test_reports_each_broken_occurrence_in_order(self) -> None:
        with respx.mock:
            self._mock_routes()
            broken = check_links(_soup(self._PAGE), _BASE, workers=1)

        assert broken == [
            "https://dead.example.org/",
            "https://example.com/gone",
            "https://dead.example.org/",
        ]

    def test_pooled_probing_keeps_document_order(self) -> None:
        with respx.mock:
            self._mock_routes()
            broken = check_links(_soup(self._PAGE), _BASE, workers=4)

        assert broken == [
            "https://dead.example.org/",
            "https://example.com/gone",
            "https://dead.example.org/",
        ]

    def test_probes_once_per_occurrence(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/a/ok.html").mock(return_value=httpx.Response(200))
            check_links(_soup('<a href="ok.html">1</a><a href="ok.html">2</a>'), _BASE, workers=1)

        assert route.call_count == 2

    def test_redirect_to_live_page_is_reachable(self) -> None:
        with respx.mock:
            respx.get("https://example.com/old").mock(
                return_value=httpx.Response(301, headers={"Location": "https://example.com/new"})
            )
            respx.get("https://example.com/new").mock(return_value=httpx.Response(200))
            broken = check_links(_soup('<a href="/old">moved</a>'), _BASE, workers=1)

        assert broken == []

    def test_empty_host_counts_as_broken_next_to_live_link(self) -> None:
        html = '<a href="/ok">ok</a><a href="http://">empty host</a><a href="http://xn--/">bad idna</a>'
        with respx.mock(assert_all_called=False) as router:
            router.get("https://example.com/ok").mock(return_value=httpx.Response(200))
            broken = check_links(_soup(html), _BASE, workers=1)

        assert broken == ["http://", "http://xn--/"]

    def test_no_anchors(self) -> None:
        assert check_links(_soup("<p>nothing</p>"), _BASE) == []

    def test_already_cancelled_probes_nothing(self) -> None:
        cancel = threading.Event()
        cancel.set()
        with respx.mock(assert_all_called=False) as router:
            route = router.get("https://example.com/a/ok.html").mock(return_value=httpx.Response(200))
            with pytest.raises(AnalysisCancelled) as info:
                check_links(_soup('<a href="ok.html">1</a>'), _BASE, cancel=cancel, workers=1)

        assert route.call_count == 0
        assert info.value.checked == 0

    def test_cancel_between_probes(self) -> None:
        cancel = threading.Event()

        def _first_then_cancel(request: httpx.Request) -> httpx.Response:
            cancel.set()
            return httpx.Response(200)

        html = '<a href="/one">1</a><a href="/two">2</a><a href="/three">3</a>'
        with respx.mock(assert_all_called=False) as router:
            router.get("https://example.com/one").mock(side_effect=_first_then_cancel)
            second = router.get("https://example.com/two").mock(return_value=httpx.Response(200))
            router.get("https://example.com/three").mock(return_value=httpx.Response(200))
            with pytest.raises(AnalysisCancelled) as info:
                check_links(_soup(html), _BASE, cancel=cancel, workers=1)

        assert second.call_count == 0
        assert info.value.checked == 1

    def test_pooled_cancel_raises(self) -> None:
        cancel = threading.Event()
        cancel.set()
        with respx.mock(assert_all_called=False) as router:
            router.get("https://example.com/one").mock(return_value=httpx.Response(200))
            router.get("https://example.com/two").mock(return_value=httpx.Response(200))
            with pytest.raises(AnalysisCancelled):
                check_links(
                    _soup('<a href="/one">1</a><a href="/two">2</a>'),
                    _BASE,
                    cancel=cancel,
                    workers=2,
                )
