import json

import pytest

from conftest import PAGE_HTML, FakeSession
from local_docs_retrieval.app import DocsService
from local_docs_retrieval.config import Settings
from local_docs_retrieval.errors import (
    CacheError,
    ErrorCode,
    InvalidInputError,
    ParseError,
    SectionNotFoundError,
)
from local_docs_retrieval.sources.base import DocSource
from local_docs_retrieval.sources.local import LocalSource
from local_docs_retrieval.sources.online import OnlineSource

BASE = "https://docs.example.com/docs/"


class OfflineSource(DocSource):
    """Fails the test if anything reaches past the cache."""

    kind = "local"

    def fetch_page(self, url_or_id, version=None):
        raise AssertionError(f"unexpected fetch of {url_or_id}")

    def list_topics(self, section, version=None, limit=50):
        raise AssertionError("unexpected listing")

    def available_versions(self):
        return []

    def available_sections(self, version=None):
        return []


@pytest.fixture
def svc(settings, docs_dir):
    return DocsService(settings, source=LocalSource(docs_dir))


def test_ingest_caches_and_indexes(svc, settings, docs_dir, tmp_path):
    assert svc.ingest_path(docs_dir) == 3
    assert (tmp_path / "cache" / "local" / "lang_records.json").is_file()

    results = svc.search("locking")
    assert results[0].topic_id == "lang/records"
    assert results[0].version == "local"
    assert results[0].source == "local"
    assert {r.topic_id for r in svc.search("records")} == {"lang/records", "data/files"}


def test_ingest_logs_and_skips_parse_failures(svc, docs_dir, tmp_path, monkeypatch):
    original = LocalSource.topic_from_page

    def flaky(self, page):
        if "intro" in page.url:
            raise ParseError(page.url, page.version, "boom")
        return original(self, page)

    monkeypatch.setattr(LocalSource, "topic_from_page", flaky)
    assert svc.ingest_path(docs_dir) == 2

    lines = (tmp_path / "logs" / "ingest.log.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [e["event"] for e in events] == ["parse_error"]
    assert events[0]["file"].endswith("intro.htm")
    assert "ts" in events[0]


def test_ingest_survives_cache_write_failures(svc, docs_dir, tmp_path, monkeypatch):
    def full_disk(topic_id, version, topic):
        raise CacheError("write", "disk full", topic_id=topic_id, version=version)

    monkeypatch.setattr(svc.cache, "set", full_disk)
    assert svc.ingest_path(docs_dir) == 3
    assert svc.search("locking")[0].topic_id == "lang/records"
    assert not (tmp_path / "cache" / "local").exists()

    lines = (tmp_path / "logs" / "ingest.log.jsonl").read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [e["event"] for e in events] == ["cache_error"] * 3
    assert {e["topic_id"] for e in events} == {"lang/intro", "lang/records", "data/files"}
    assert "disk full" in events[0]["error"]


def test_load_cached_rebuilds_index(svc, settings, docs_dir):
    svc.ingest_path(docs_dir)
    fresh = DocsService(settings, source=OfflineSource())
    assert fresh.search("locking") == []
    assert fresh.load_cached() == 3
    assert fresh.search("locking")[0].topic_id == "lang/records"
    assert fresh.load_cached("other") == 0


def test_get_topic_served_from_cache(svc, settings, docs_dir):
    svc.ingest_path(docs_dir)
    offline = DocsService(settings, source=OfflineSource())
    topic = offline.get_topic("lang/records", version="local")
    assert topic.title == "Record Locking"


def test_get_topic_fetches_then_caches(svc, tmp_path):
    topic = svc.get_topic("lang/records")
    assert topic.version == "latest"
    assert (tmp_path / "cache" / "latest" / "lang_records.json").is_file()
    assert ("latest", "lang/records") in svc.index


def test_get_topic_chunk_limits(settings, docs_dir):
    body = "".join(f"<p>Paragraph number {i} has some words.</p>" for i in range(20))
    (docs_dir / "lang" / "long.html").write_text(f"<main><h1>Long</h1>{body}</main>", encoding="utf-8")
    svc = DocsService(settings, source=LocalSource(docs_dir, max_chunk_tokens=20))

    everything = svc.get_topic("lang/long", max_chunks=0)
    assert len(everything.body_chunks) > 3
    assert len(svc.get_topic("lang/long").body_chunks) == 3
    assert len(svc.get_topic("lang/long", max_chunks=2).body_chunks) == 2
    assert len(svc.get_topic("lang/long", max_chunks=0, max_tokens=25).body_chunks) == 1
    # the cached copy keeps every chunk
    assert len(svc.cache.get("lang/long", "latest").body_chunks) == len(everything.body_chunks)


def test_get_topic_input_validation(svc):
    with pytest.raises(InvalidInputError):
        svc.get_topic()
    with pytest.raises(InvalidInputError) as exc:
        svc.get_topic("lang/records", max_chunks=-1)
    assert exc.value.details["field"] == "max_chunks"


def test_get_topic_by_url_uses_normalized_key(tmp_path):
    cfg = Settings(doc_base_url=BASE, cache_dir=str(tmp_path / "cache"), log_dir=str(tmp_path / "logs"))
    session = FakeSession({BASE + "lang/records.html": PAGE_HTML})
    svc = DocsService(cfg, source=OnlineSource(BASE, session=session))

    topic = svc.get_topic(url=BASE + "lang/records.html")
    assert topic.id == "lang/records.html"
    assert all(c.topic_id == "lang/records.html" for c in topic.body_chunks)

    again = svc.get_topic("lang/records.html")
    assert again.title == topic.title
    assert len(session.calls) == 1


def test_related_topics(svc, docs_dir):
    svc.ingest_path(docs_dir)
    related = svc.related_topics("lang/records", version="local")
    assert related.previous.topic_id == "lang/intro.html"
    assert related.previous.title == "Introduction"
    assert related.next.topic_id == "https://docs.example.com/lang/unlocking.html"
    assert related.parent.topic_id == "lang"
    assert [r.topic_id for r in related.related] == ["data/files.html"]

    with pytest.raises(InvalidInputError):
        svc.related_topics("")


def test_list_section_topics(svc):
    summaries = svc.list_section_topics("lang", version="local")
    assert [s.topic_id for s in summaries] == ["lang/intro", "lang/records"]
    assert summaries[1].title == "Record Locking"


def test_list_missing_section(svc):
    with pytest.raises(SectionNotFoundError) as exc:
        svc.list_section_topics("missing", version="local")
    assert exc.value.code is ErrorCode.SECTION_NOT_FOUND
    assert exc.value.details["available_sections"] == ["data", "lang"]
    with pytest.raises(InvalidInputError):
        svc.list_section_topics("lang", limit=-1)


def test_search_validation(svc):
    with pytest.raises(InvalidInputError):
        svc.search("")
    with pytest.raises(InvalidInputError):
        svc.search("x", limit=-1)
    assert svc.search("   ") == []
    assert svc.search("x", limit=0) == []


def test_search_is_recorded_in_event_log(svc, docs_dir, tmp_path):
    svc.ingest_path(docs_dir)
    results = svc.search("locking", section="Language", limit=5)

    lines = (tmp_path / "logs" / "ingest.log.jsonl").read_text(encoding="utf-8").splitlines()
    event = json.loads(lines[-1])
    assert event["event"] == "search"
    assert event["query"] == "locking"
    assert event["section"] == "Language"
    assert event["version"] is None
    assert event["results"] == len(results)


def test_describe(svc, docs_dir):
    svc.ingest_path(docs_dir)
    desc = svc.describe()
    assert desc.source == "local"
    assert desc.versions == ["local", "data", "lang"]
    assert desc.sections == ["data", "lang"]
    assert desc.indexed_topics == 3
