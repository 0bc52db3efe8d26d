import asyncio

from flowcore_catalog.core import directory_walker as directory_module
from flowcore_catalog.core.directory_walker import DirectoryWalker, directory_links, file_records
from flowcore_catalog.core.models import Provenance
from flowcore_catalog.core.session_manager import SessionManager
from flowcore_catalog.utils.html_query import Document


def _index_page(subdirs=0, files=()):
    links = ['<a href="../">../</a>']
    links += [f'<a href="sub{n}/">sub{n}/</a>' for n in range(subdirs)]
    links += [f'<a href="{name}">{name}</a>' for name in files]
    return "<html><body><pre>" + "\n".join(links) + "</pre></body></html>"


def _walker(site, make_settings, **overrides):
    settings = make_settings(directory_probe_paths=("/Movies",), **overrides)
    return DirectoryWalker(SessionManager(settings, transport=site.transport))


def _subdir_hits(site):
    return [path for path in site.paths() if path.startswith("/Movies/sub")]


def test_directory_links_filter():
    page = Document.parse(
        '<a href="../">up</a><a href="Hindi/">Hindi</a><a href="/Movies/English/">English</a>'
        '<a href="a.b/">dotted</a><a href="file.mkv">file</a><a href="/">root</a>'
        '<a href="Hindi/">again</a>'
    )

    assert directory_links(page) == ["Hindi/", "/Movies/English/"]


def test_file_records_resolve_against_directory():
    page = Document.parse(_index_page(files=("Alpha_2021_HD.mp4", "notes.txt", "Beta.2020.mkv")))

    records = file_records(page, "https://catalog.test/Movies")

    assert [record.title for record in records] == ["Alpha", "Beta"]
    assert records[0].download_links[0].url == "https://catalog.test/Movies/Alpha_2021_HD.mp4"
    assert records[0].description == "Alpha (2021) - HD MP4"
    assert all(record.provenance is Provenance.DIRECTORY for record in records)


def test_many_subdirectories_are_not_walked(site, make_settings):
    site.add("/Movies", _index_page(subdirs=60))
    walker = _walker(site, make_settings)

    asyncio.run(walker.walk())

    assert _subdir_hits(site) == []


def test_few_subdirectories_are_walked_one_level(site, make_settings):
    site.add("/Movies", _index_page(subdirs=8))
    site.add("/Movies/sub0/", _index_page(subdirs=3, files=("Gamma.2019.720p.avi",)))
    walker = _walker(site, make_settings)

    records = asyncio.run(walker.walk())

    hits = _subdir_hits(site)
    assert len(hits) == 8
    assert set(hits) == {f"/Movies/sub{n}/" for n in range(8)}
    assert [record.title for record in records] == ["Gamma"]
    assert records[0].download_links[0].url == "https://catalog.test/Movies/sub0/Gamma.2019.720p.avi"


def test_recursion_limited_to_first_ten(site, make_settings):
    site.add("/Movies", _index_page(subdirs=30))
    walker = _walker(site, make_settings)

    asyncio.run(walker.walk())

    assert _subdir_hits(site) == [f"/Movies/sub{n}/" for n in range(10)]


def test_missing_directories_are_skipped(monkeypatch, site, make_settings):
    delays = []

    async def _fake_delay(seconds):
        delays.append(seconds)

    monkeypatch.setattr(directory_module, "polite_delay", _fake_delay)
    site.add("/files/Movies", _index_page(files=("Delta (2018) 1080p.mkv",)))
    settings = make_settings(directory_probe_paths=("/Movies", "/m/Hindi", "/files/Movies"))
    walker = DirectoryWalker(SessionManager(settings, transport=site.transport))

    records = asyncio.run(walker.walk())

    assert site.paths() == ["/Movies", "/m/Hindi", "/files/Movies"]
    assert [record.title for record in records] == ["Delta"]
    assert records[0].is_mkv is True
    assert len(delays) == 2


def test_malformed_links_on_index_pages_are_ignored(site, make_settings):
    site.add(
        "/Movies",
        '<pre><a href="http://[broken/sub/">sub/</a>\n'
        '<a href="http://[broken/Zeta.mkv">Zeta.mkv</a>\n'
        '<a href="Eta.2017.mp4">Eta.2017.mp4</a></pre>',
    )
    walker = _walker(site, make_settings)

    records = asyncio.run(walker.walk())

    assert [record.title for record in records] == ["Eta"]
    assert site.paths() == ["/Movies"]
