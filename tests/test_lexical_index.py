import threading

from local_docs_retrieval.index.lexical import SearchIndex, tokenize
from local_docs_retrieval.index.schema import Chunk, Topic


def make_topic(id, title="Untitled", body="", summary="", version="latest", section="Language"):
    return Topic(
        id=id,
        version=version,
        title=title,
        section=section,
        summary=summary,
        url=f"https://docs.example.com/{id}",
        body_chunks=[Chunk(topic_id=id, chunk_index=0, text=body)] if body else [],
    )


def test_tokenize_symbols_and_punctuation():
    assert tokenize("C++ and C# on .NET") == ["c-plus-plus", "and", "c-sharp", "on", "dot-net"]
    assert tokenize("XFILENAME.DBR lang/records") == ["xfilename", "dbr", "lang", "records"]
    assert tokenize("%SYSCALL(arg)!") == ["syscall", "arg"]
    assert tokenize("   ") == []


def test_symbol_normalized_title_is_findable():
    idx = SearchIndex()
    idx.add_topic(make_topic("cpp", title="C++ Guide"))
    results = idx.search("c-plus-plus")
    assert [r.topic_id for r in results] == ["cpp"]
    assert idx.search("C++")[0].topic_id == "cpp"


def test_title_outranks_body():
    idx = SearchIndex()
    idx.add_topic(make_topic("body", title="Other", body="records"))
    idx.add_topic(make_topic("title", title="Records", body="other"))
    results = idx.search("records")
    assert [r.topic_id for r in results] == ["title", "body"]
    assert results[0].score == 3
    assert results[1].score == 1


def test_weighted_term_frequency():
    idx = SearchIndex()
    idx.add_topic(make_topic("a", title="lock", summary="lock lock", body="lock unlock lock"))
    assert idx.search("lock")[0].score == 3 + 2 * 2 + 2


def test_version_isolation():
    idx = SearchIndex()
    idx.add_topic(make_topic("x", title="Locking", version="v1"))
    idx.add_topic(make_topic("x", title="Locking", version="v2"))
    assert len(idx) == 2
    assert [r.version for r in idx.search("locking", version="v1")] == ["v1"]
    assert [r.version for r in idx.search("locking", version="v2")] == ["v2"]
    assert sorted(r.version for r in idx.search("locking")) == ["v1", "v2"]
    assert idx.versions() == ["v1", "v2"]


def test_same_key_replaces_entry():
    idx = SearchIndex()
    idx.add_topic(make_topic("x", title="Old words"))
    idx.add_topic(make_topic("x", title="New words"))
    assert len(idx) == 1
    assert idx.search("old") == []
    assert idx.get("x", "latest").title == "New words"


def test_section_filter():
    idx = SearchIndex()
    idx.add_topic(make_topic("a", title="files", section="Data Access"))
    idx.add_topic(make_topic("b", title="files", section="Language"))
    assert [r.topic_id for r in idx.search("files", section="Language")] == ["b"]
    assert idx.sections() == ["Data Access", "Language"]


def test_limit_contract():
    idx = SearchIndex()
    for i in range(5):
        idx.add_topic(make_topic(f"t{i}", title="record"))
    assert idx.search("record", limit=0) == []
    assert idx.search("record", limit=-5) == []
    assert len(idx.search("record", limit=2)) == 2
    assert len(idx.search("record")) == 5


def test_ties_keep_insertion_order():
    idx = SearchIndex()
    for i in range(5):
        idx.add_topic(make_topic(f"t{i}", title="record"))
    assert [r.topic_id for r in idx.search("record")] == [f"t{i}" for i in range(5)]


def test_empty_query_and_zero_scores():
    idx = SearchIndex()
    idx.add_topic(make_topic("a", title="record"))
    assert idx.search("") == []
    assert idx.search("   ") == []
    assert idx.search("nothing-matches") == []


def test_clear():
    idx = SearchIndex()
    idx.clear()
    idx.add_topic(make_topic("a", title="record"))
    idx.clear()
    assert len(idx) == 0
    assert idx.search("record") == []


def test_index_keeps_its_own_copy():
    idx = SearchIndex()
    topic = make_topic("a", title="record")
    idx.add_topic(topic)
    topic.title = "changed"
    assert idx.get("a", "latest").title == "record"
    assert ("latest", "a") in idx


def test_concurrent_adds_and_searches():
    idx = SearchIndex()

    def writer(n):
        for i in range(50):
            idx.add_topic(make_topic(f"{n}-{i}", title="record"))

    def reader():
        for _ in range(50):
            idx.search("record")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(idx.search("record")) == 200
