"""Stand-ins for the aiohttp session and the header generator."""

import asyncio

import aiohttp


class FakeResponse:
    def __init__(self, body: str = "", status: int = 200, reason: str = "OK") -> None:
        self.body = body
        self.status = status
        self.reason = reason

    async def text(self) -> str:
        if isinstance(self.body, BaseException):
            raise self.body
        return self.body


class FakeRequest:
    def __init__(self, session: "FakeSession", url: str) -> None:
        self.session = session
        self.url = url

    async def __aenter__(self) -> FakeResponse:
        session = self.session
        session.active += 1
        session.max_active = max(session.max_active, session.active)
        try:
            await asyncio.sleep(session.delays.get(self.url, session.delay))
        finally:
            session.active -= 1

        page = session.pages.get(self.url)
        if page is None:
            raise aiohttp.ClientConnectionError(f"no route to {self.url}")
        if isinstance(page, BaseException):
            raise page
        return page

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """Serve canned responses keyed by url and record every request."""

    def __init__(self, pages: dict, delay: float = 0.0, delays: dict = None) -> None:
        self.pages = pages
        self.delay = delay
        self.delays = delays or {}
        self.requested = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    def get(self, url: str, **kwargs) -> FakeRequest:
        self.requested.append((url, kwargs))
        return FakeRequest(self, url)

    async def __aenter__(self) -> "FakeSession":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        self.closed = True
        return False


class FakeHeaderGenerator:
    def get_headers(self, url: str) -> dict:
        return {"User-Agent": "pytest"}


def instance_page(never: bool = True, alerts: tuple = ()) -> FakeResponse:
    options = ['<option value="5min">5 minutes</option>', '<option value="1week">1 week</option>']
    if never:
        options.append('<option value="never">Never</option>')
    alert_html = "".join(
        f'<div class="alert alert-info" role="alert"><span>{text}</span></div>' for text in alerts
    )
    body = f"""<!DOCTYPE html>
<html><head><title>PrivateBin</title></head>
<body>
{alert_html}
<select id="pasteExpiration" name="pasteExpiration">{"".join(options)}</select>
</body></html>"""
    return FakeResponse(body)


def directory_row(address: str, uptime: str, columns: int = 8) -> str:
    cells = [address, "yes", "no", "DE", "yes", "no", "A+", uptime, "2024"][:columns]
    return "<tr>" + "".join(f"<td>{cell}</td>" for cell in cells) + "</tr>"


def directory_page(sections: list) -> str:
    """sections is a list of (heading text, [rows html] or None for no table)"""
    parts = ["<!DOCTYPE html><html><body><h1>Directory</h1>"]
    for heading, rows in sections:
        parts.append(f"<h5>{heading}</h5>\n")
        if rows is None:
            parts.append("<p>No instances yet.</p>")
            continue
        parts.append(
            "<table><thead><tr><th>Address</th><th>Uptime</th></tr></thead>"
            f"<tbody>{''.join(rows)}</tbody></table>"
        )
    parts.append("</body></html>")
    return "".join(parts)
