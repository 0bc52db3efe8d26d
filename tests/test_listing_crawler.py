import asyncio

import httpx
import pytest

from flowcore_catalog.core import listing_crawler as listing_module
from flowcore_catalog.core.listing_crawler import ListingCrawler
from flowcore_catalog.core.models import DownloadLink, Provenance, Record
from flowcore_catalog.core.session_manager import SessionManager
from flowcore_catalog.utils.errors import AuthorizationDuringCrawl, TransportError

LISTING = """
<html><body>
  <div class="card"><a href="/movie/alpha"><img src="/p/alpha.jpg"></a><h3>Alpha (2021)</h3></div>
  <div class="card"><a href="/files/Beta.2020.720p.mp4"></a><h3>Beta (2020)</h3></div>
  <div class="card"><h3>1080P</h3></div>
</body></html>
"""

ALPHA_DETAIL = """
<html><body>
  <p class="synopsis">A long story.</p>
  <span class="imdb-rating">7.8</span>
  <span class="genre">Drama</span><span class="genre">Thriller</span>
  <a href="/files/Alpha.2021.1080p.x264.mkv">Alpha 1080p</a>
  <a href="https://cdn.catalog.test/Alpha.2021.720p.mp4">Alpha 720p</a>
  <a href="/files/Alpha.2021.1080p.x264.mkv">duplicate</a>
  <a href="/movie/other">Other</a>
</body></html>
"""


def _crawler(site, settings):
    return ListingCrawler(SessionManager(settings, transport=site.transport))


def test_primary_listing_extracts_and_enriches(site, settings):
    site.add("/m", LISTING)
    site.add("/movie/alpha", ALPHA_DETAIL)
    crawler = _crawler(site, settings)

    result = asyncio.run(crawler.crawl())

    titles = [record.title for record in result.records]
    assert titles == ["Alpha (2021)", "Beta (2020)"]
    alpha, beta = result.records
    assert alpha.provenance is Provenance.MAIN
    assert alpha.description == "A long story."
    assert alpha.rating == "7.8"
    assert alpha.genres == {"Drama", "Thriller"}
    assert [link.url for link in alpha.download_links] == [
        "https://catalog.test/files/Alpha.2021.1080p.x264.mkv",
        "https://cdn.catalog.test/Alpha.2021.720p.mp4",
    ]
    assert alpha.download_links[0].label == "Alpha 1080p"
    assert alpha.is_mkv is True
    # direct media records are never enriched
    assert site.hits("/files/Beta.2020.720p.mp4") == 0
    assert [link.format for link in beta.download_links] == ["MP4"]
    assert result.page is not None
    assert result.url == "https://catalog.test/m"


def test_listing_status_error_is_fatal(site, settings):
    site.add("/m", "oops", status=500)
    crawler = _crawler(site, settings)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(crawler.crawl())

    assert excinfo.value.status_code == 500
    assert not isinstance(excinfo.value, AuthorizationDuringCrawl)


def test_listing_authorization_failure_is_flagged(site, settings):
    site.add("/m", "login required", status=401)
    crawler = _crawler(site, settings)

    with pytest.raises(AuthorizationDuringCrawl):
        asyncio.run(crawler.crawl())


def test_enrichment_failure_leaves_record_untouched(site, settings):
    site.add("/movie/alpha", "boom", status=500)
    crawler = _crawler(site, settings)
    record = Record(
        title="Alpha",
        detail_url="https://catalog.test/movie/alpha",
        description="kept",
        download_links=[DownloadLink(url="https://catalog.test/a.mp4")],
    )

    asyncio.run(crawler.enrich(record))

    assert record.description == "kept"
    assert [link.url for link in record.download_links] == ["https://catalog.test/a.mp4"]


def test_enrichment_transport_error_is_not_fatal(settings):
    def _reset(request):
        raise httpx.ReadError("connection reset", request=request)

    crawler = ListingCrawler(SessionManager(settings, transport=httpx.MockTransport(_reset)))
    record = Record(title="Alpha", detail_url="https://catalog.test/movie/alpha")

    assert asyncio.run(crawler.enrich(record)) is record
    assert record.download_links == []


def test_detail_page_without_links_keeps_listing_links(site, settings):
    site.add("/movie/alpha", '<p class="description">Only text</p>')
    crawler = _crawler(site, settings)
    original = DownloadLink(url="https://catalog.test/a.mp4")
    record = Record(title="Alpha", detail_url="https://catalog.test/movie/alpha", download_links=[original])

    asyncio.run(crawler.enrich(record))

    assert record.download_links == [original]
    assert record.description == "Only text"


def test_enrichment_runs_in_batches(monkeypatch, site, make_settings):
    settings = make_settings(enrich_batch_size=5, enrich_batch_pause=1.0)
    pauses = []

    async def _fake_delay(seconds):
        pauses.append(seconds)

    monkeypatch.setattr(listing_module, "polite_delay", _fake_delay)
    for index in range(12):
        site.add(f"/movie/{index}", "<p>detail</p>")
    crawler = _crawler(site, settings)
    records = [
        Record(title=f"Movie {index}", detail_url=f"https://catalog.test/movie/{index}")
        for index in range(12)
    ]

    asyncio.run(crawler.enrich_all(records))

    assert pauses == [1.0, 1.0]
    assert len(site.requests) == 12
