from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from acquisition import http_fetch
from acquisition import pdf as pdf_module
from acquisition.base import FetchedPage
from acquisition.cascade import ContentAcquisitionCascade
from acquisition.framework import FrameworkAwareStrategy
from acquisition.html import extract_embedded_data, extract_sections, looks_like_pdf_binary, profile_page
from acquisition.http_fetch import PlainFetchStrategy
from acquisition.pdf import DocumentStrategy, extract_pdf_text, is_pdf_url
from acquisition.pool import BrowserPool, WorkerLauncher
from acquisition.render import PooledRenderStrategy
from config.settings import FetchSettings, PoolSettings
from core.contracts import AcquisitionMethod
from monitoring.sink import MonitoringSink
from utils.exceptions import AcquisitionError

FILLER = "".join(f"<p>Absatz {index}: Informationen zu Versand, Garantie und Rückgabe.</p>" for index in range(200))

STATIC_PAGE = f"""
<html>
  <head><title>Widget Pro A123 | Beispielshop</title></head>
  <body>
    <nav>Home / Haushalt / Widgets</nav>
    <main>
      <h1>Widget Pro</h1>
      <table class="specs">
        <tr><th>Breite</th><td>550 mm</td></tr>
        <tr><th>Höhe</th><td>850 mm</td></tr>
        <tr><th>Gewicht</th><td>12 kg</td></tr>
      </table>
      <dl><dt>Farbe</dt><dd>Weiß</dd></dl>
      {FILLER}
    </main>
  </body>
</html>
"""

NEXT_DATA = {
    "props": {
        "pageProps": {
            "product": {
                "name": "Widget Pro",
                "specs": [{"label": f"Merkmal {index}", "value": f"Wert {index}"} for index in range(300)],
            }
        }
    }
}

FRAMEWORK_PAGE = (
    "<html><head><title>Widget Pro</title></head><body><div id=\"__next\"></div>"
    f"<script id=\"__NEXT_DATA__\" type=\"application/json\">{json.dumps(NEXT_DATA)}</script>"
    "</body></html>"
)

SMALL_PAGE = "<html><head><title>Mini</title></head><body><p>Breite: 550 mm</p></body></html>"


class _RecordingSink(MonitoringSink):
    def __init__(self) -> None:
        self.errors: List[tuple] = []
        self.skipped: List[tuple] = []
        self.calls: List[dict] = []

    def log_scraping_error(self, url, error, *, kind="network", method=None) -> None:
        self.errors.append((url, kind, error))

    def log_ai_api_call(self, **kwargs) -> None:
        self.calls.append(kwargs)

    def log_content_skipped(self, url, reason, *, content_type=None) -> None:
        self.skipped.append((url, reason, content_type))


def _page(url: str, html: str = "", *, content_type: str = "text/html; charset=utf-8", body: Optional[bytes] = None):
    return FetchedPage(
        url=url,
        status_code=200,
        content_type=content_type,
        text=html,
        body=body if body is not None else html.encode("utf-8"),
    )


def _install_http(monkeypatch, pages: Dict[str, object], heads: Optional[Dict[str, dict]] = None) -> List[str]:
    requested: List[str] = []

    async def _fake_get(url: str, *, headers=None, timeout: float = 12.0) -> FetchedPage:
        requested.append(url)
        outcome = pages[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def _fake_head(url: str, *, headers=None, timeout: float = 8.0) -> dict:
        return (heads or {}).get(url, {"content-type": "text/html"})

    async def _fake_range(url: str, *, headers=None, timeout: float = 5.0, end: int = 1024) -> bytes:
        return b"<html>"

    monkeypatch.setattr(http_fetch, "_http_get", _fake_get)
    monkeypatch.setattr(http_fetch, "_http_head", _fake_head)
    monkeypatch.setattr(http_fetch, "_http_get_range", _fake_range)
    return requested


def _cascade(settings: Optional[FetchSettings] = None, sink: Optional[MonitoringSink] = None):
    settings = settings or FetchSettings()
    return ContentAcquisitionCascade(
        [DocumentStrategy(settings), PlainFetchStrategy(settings), FrameworkAwareStrategy(settings)],
        monitor=sink,
    )


def test_extract_sections_prioritizes_tables_and_definition_lists() -> None:
    text = extract_sections(STATIC_PAGE, min_chars=100)
    assert "[TABLE 1]" in text
    assert "Breite | 550 mm" in text
    assert "Farbe: Weiß" in text
    assert "Home / Haushalt" not in text


def test_extract_embedded_data_reads_json_ld_and_meta() -> None:
    html = """
    <html><head>
      <meta property="product:price:amount" content="499.00">
      <script type="application/ld+json">{"@context": "https://schema.org", "@type": "Product", "name": "Widget Pro", "sku": "A123"}</script>
    </head><body></body></html>
    """
    text = extract_embedded_data(html)
    assert "[STRUCTURED DATA]" in text
    assert "sku: A123" in text
    assert "product:price:amount: 499.00" in text


def test_page_profile_and_pdf_signature() -> None:
    assert profile_page(FRAMEWORK_PAGE).framework_heavy
    assert not profile_page(STATIC_PAGE).framework_heavy
    assert profile_page(SMALL_PAGE).is_small(10000)
    assert looks_like_pdf_binary("%PDF-1.7\n1 0 obj")
    assert not looks_like_pdf_binary("Breite 550 mm")
    assert is_pdf_url("https://example.com/files/datenblatt.PDF")
    assert not is_pdf_url("https://example.com/produkt/widget")


def test_extract_pdf_text_rejects_garbage() -> None:
    with pytest.raises(AcquisitionError) as exc_info:
        extract_pdf_text(b"definitely not a pdf", max_pages=5, max_chars=5000)
    assert exc_info.value.kind == "parse-error"


@pytest.mark.asyncio
async def test_static_page_uses_plain_fetch(monkeypatch) -> None:
    url = "https://shop.example.com/widget-pro"
    _install_http(monkeypatch, {url: _page(url, STATIC_PAGE)})

    result = await _cascade().fetch(url)

    assert result.success
    assert result.method is AcquisitionMethod.PLAIN_FETCH
    assert "Gewicht | 12 kg" in result.text
    assert result.title == "Widget Pro A123 | Beispielshop"
    assert result.content_length == len(result.text)


@pytest.mark.asyncio
async def test_framework_page_escalates_to_embedded_data(monkeypatch) -> None:
    url = "https://spa.example.com/widget-pro"
    _install_http(monkeypatch, {url: _page(url, FRAMEWORK_PAGE)})

    result = await _cascade().fetch(url, title="Widget Pro")

    assert result.success
    assert result.method is AcquisitionMethod.FRAMEWORK_AWARE_FETCH
    assert "[APP DATA]" in result.text
    assert "Merkmal 7" in result.text


@pytest.mark.asyncio
async def test_thin_page_without_pool_returns_partial_text(monkeypatch) -> None:
    url = "https://tiny.example.com/p"
    _install_http(monkeypatch, {url: _page(url, SMALL_PAGE)})

    result = await _cascade().fetch(url)

    assert result.success
    assert result.method is AcquisitionMethod.PLAIN_FETCH
    assert result.text == "Breite: 550 mm"
    assert result.title == "Mini"


@pytest.mark.asyncio
async def test_pdf_detected_by_head_goes_to_document_tier(monkeypatch) -> None:
    url = "https://maker.example.com/download?id=42"
    _install_http(
        monkeypatch,
        {url: _page(url, content_type="application/pdf", body=b"%PDF-1.4 fake")},
        heads={url: {"content-type": "application/pdf"}},
    )

    def _fake_extract(pdf_bytes: bytes, *, max_pages: int, max_chars: int) -> str:
        assert pdf_bytes.startswith(b"%PDF-")
        return "[Total Pages: 2]\n\nBreite 550 mm"

    monkeypatch.setattr(pdf_module, "extract_pdf_text", _fake_extract)

    result = await _cascade().fetch(url)

    assert result.success
    assert result.method is AcquisitionMethod.DOCUMENT
    assert result.text.startswith(f"[PDF Document: {url}]")
    assert "Breite 550 mm" in result.text


@pytest.mark.asyncio
async def test_pdf_bytes_behind_html_content_type_are_recovered(monkeypatch) -> None:
    url = "https://shop.example.com/datasheet"
    requested = _install_http(
        monkeypatch,
        {url: _page(url, content_type="text/html", body=b"%PDF-1.7 binary")},
    )
    monkeypatch.setattr(
        pdf_module,
        "extract_pdf_text",
        lambda pdf_bytes, *, max_pages, max_chars: "[Total Pages: 1]\n\nHöhe 850 mm",
    )

    result = await _cascade().fetch(url)

    assert result.method is AcquisitionMethod.DOCUMENT
    assert "Höhe 850 mm" in result.text
    assert requested == [url]


@pytest.mark.asyncio
async def test_disabled_pdf_handling_skips_source(monkeypatch) -> None:
    url = "https://maker.example.com/datenblatt.pdf"
    _install_http(monkeypatch, {}, heads={url: {"content-type": "application/pdf"}})
    sink = _RecordingSink()

    result = await _cascade(FetchSettings(pdf_enabled=False), sink).fetch(url)

    assert not result.success
    assert result.error_kind == "skipped"
    assert sink.skipped == [(url, "pdf_scraper_disabled", "application/pdf")]


@pytest.mark.asyncio
async def test_blocked_fetch_fails_and_reports(monkeypatch) -> None:
    url = "https://guarded.example.com/p"
    request = httpx.Request("GET", url)
    error = httpx.HTTPStatusError("forbidden", request=request, response=httpx.Response(403, request=request))
    _install_http(monkeypatch, {url: error})
    sink = _RecordingSink()

    result = await _cascade(sink=sink).fetch(url)

    assert not result.success
    assert result.error_kind == "blocked"
    assert result.text == ""
    assert sink.errors and sink.errors[0][1] == "blocked"


@pytest.mark.asyncio
async def test_broken_sink_does_not_change_results(monkeypatch) -> None:
    url = "https://guarded.example.com/q"
    _install_http(monkeypatch, {url: httpx.ConnectError("refused")})

    class _BrokenSink(_RecordingSink):
        def log_scraping_error(self, url, error, *, kind="network", method=None) -> None:
            raise RuntimeError("sink down")

    result = await _cascade(sink=_BrokenSink()).fetch(url)

    assert not result.success
    assert result.error_kind == "network"


class _Launcher(WorkerLauncher):
    async def launch(self) -> Any:
        return object()

    async def close(self, handle: Any) -> None:
        return None


class _ScriptedRender(PooledRenderStrategy):
    def __init__(self, pool: BrowserPool, outcome: object) -> None:
        super().__init__(pool, PoolSettings(acquire_timeout=0.05), FetchSettings())
        self.outcome = outcome
        self.calls = 0

    async def _render(self, browser: Any, url: str) -> Tuple[str, str]:
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _render_cascade(render: PooledRenderStrategy, sink: Optional[MonitoringSink] = None):
    settings = FetchSettings()
    return ContentAcquisitionCascade(
        [DocumentStrategy(settings), PlainFetchStrategy(settings), FrameworkAwareStrategy(settings), render],
        monitor=sink,
    )


@pytest.mark.asyncio
async def test_render_timeout_drops_source_despite_partial_text(monkeypatch) -> None:
    url = "https://tiny.example.com/p"
    _install_http(monkeypatch, {url: _page(url, SMALL_PAGE)})
    pool = BrowserPool(_Launcher(), max_size=1, settings=PoolSettings())
    render = _ScriptedRender(pool, PlaywrightTimeoutError("Timeout 30000ms exceeded"))
    sink = _RecordingSink()

    result = await _render_cascade(render, sink).fetch(url)

    assert render.calls == 1
    assert not result.success
    assert result.text == ""
    assert result.error_kind == "timeout"
    assert result.method is AcquisitionMethod.POOLED_RENDER
    assert sink.errors == [(url, "timeout", result.error)]
    assert pool.status()["in_use"] == 0
    await pool.close()


@pytest.mark.asyncio
async def test_exhausted_pool_drops_source(monkeypatch) -> None:
    url = "https://tiny.example.com/p"
    _install_http(monkeypatch, {url: _page(url, SMALL_PAGE)})
    pool = BrowserPool(_Launcher(), max_size=1, settings=PoolSettings())
    held = await pool.acquire()
    render = _ScriptedRender(pool, ("Breite: 550 mm", "Mini"))

    result = await _render_cascade(render).fetch(url)

    assert render.calls == 0
    assert not result.success
    assert result.error_kind == "pool-exhausted"
    await pool.release(held)
    await pool.close()


@pytest.mark.asyncio
async def test_thin_page_escalates_to_render(monkeypatch) -> None:
    url = "https://tiny.example.com/p"
    _install_http(monkeypatch, {url: _page(url, SMALL_PAGE)})
    pool = BrowserPool(_Launcher(), max_size=1, settings=PoolSettings())
    rendered = "Widget Pro\nBreite | 550 mm\nHöhe | 850 mm\nGewicht | 12 kg"
    render = _ScriptedRender(pool, (rendered, "Widget Pro"))

    result = await _render_cascade(render).fetch(url)

    assert result.success
    assert result.method is AcquisitionMethod.POOLED_RENDER
    assert "Gewicht | 12 kg" in result.text
    await pool.close()
