import asyncio

import aiohttp
import pytest

import pb_scraper
from fakes import FakeHeaderGenerator, FakeResponse, FakeSession, instance_page
from pb_scraper import Settings

URL = "https://a.example"


def fetch(session: FakeSession, settings: Settings = None):
    return asyncio.run(
        pb_scraper.fetch_page(session, FakeHeaderGenerator(), URL, settings or Settings())
    )


def fetch_error(page) -> pb_scraper.FetchError:
    with pytest.raises(pb_scraper.FetchError) as excinfo:
        fetch(FakeSession({URL: page}))
    return excinfo.value


def test_fetch_returns_parsed_page() -> None:
    soup = fetch(FakeSession({URL: instance_page()}))
    assert soup.select_one("select#pasteExpiration") is not None


def test_request_options() -> None:
    session = FakeSession({URL: instance_page()})
    fetch(session, Settings(site_timeout=3, max_redirects=4))

    url, kwargs = session.requested[0]
    assert url == URL
    assert kwargs["headers"] == {"User-Agent": "pytest"}
    assert kwargs["allow_redirects"] is True
    assert kwargs["max_redirects"] == 4
    assert kwargs["timeout"].total == 3


def test_timeout_is_a_fetch_error() -> None:
    errex = fetch_error(asyncio.TimeoutError())
    assert errex.err_code == "pb_error 1"
    assert errex.url == URL


def test_non_200_status_is_a_fetch_error() -> None:
    errex = fetch_error(FakeResponse(status=404, reason="Not Found"))
    assert errex.err_code == "pb_error 2"
    assert errex.err_desc == "404 Not Found"


def test_redirect_status_left_over_is_a_fetch_error() -> None:
    assert fetch_error(FakeResponse(status=302, reason="Found")).err_code == "pb_error 2"


def test_connection_error_is_a_fetch_error() -> None:
    errex = fetch_error(aiohttp.ClientConnectionError("refused"))
    assert errex.err_code == "pb_error 3"
    assert "refused" in errex.err_desc


def test_undecodable_body_is_a_fetch_error() -> None:
    body = UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
    assert fetch_error(FakeResponse(body)).err_code == "pb_error 4"


def test_truncated_body_is_a_fetch_error() -> None:
    body = aiohttp.ClientPayloadError("Response payload is not completed")
    assert fetch_error(FakeResponse(body)).err_code == "pb_error 4"


def test_parse_failure_is_a_parse_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_soup(*args, **kwargs):
        raise ValueError("bad markup")

    monkeypatch.setattr(pb_scraper, "BeautifulSoup", broken_soup)
    with pytest.raises(pb_scraper.ParseError) as excinfo:
        fetch(FakeSession({URL: instance_page()}))
    assert excinfo.value.err_code == "pb_error 5"


def test_header_generator_makes_browser_headers() -> None:
    header_gen = pb_scraper.HeaderGenerator()
    headers = header_gen.get_headers("https://a.example/")

    assert headers["User-Agent"].startswith("Mozilla/")
    assert headers["Accept"].startswith("text/html")
    assert headers["Sec-Fetch-Mode"] == "navigate"
    assert headers["Upgrade-Insecure-Requests"] == "1"
    assert "Upgrade-Insecure-Requests" not in header_gen.get_headers("http://a.example/")
