import json

import pytest

from local_docs_retrieval.index.schema import SearchResult
from local_docs_retrieval.utils.output import infer_format, write_output

RESULTS = [
    SearchResult(
        topic_id="lang/records",
        title="Record <Locking>",
        section="Language",
        version="latest",
        url="https://docs.example.com/lang/records",
        summary="Records are locked when read.",
        source="online",
        score=7.0,
    )
]


def test_infer_format():
    assert infer_format("x.md", None) == "md"
    assert infer_format("x.htm", None) == "html"
    assert infer_format("x.unknown", None) == "json"
    assert infer_format("x.md", "TXT") == "txt"
    assert infer_format(None, None) == "json"


def test_json_output(tmp_path):
    target = write_output("record locking", RESULTS, out_path=str(tmp_path / "r.json"))
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["query"] == "record locking"
    assert data["results"][0]["topic_id"] == "lang/records"


@pytest.mark.parametrize("fmt,needle", [("md", "[Record <Locking>]"), ("txt", "lang/records"), ("html", "Record &lt;Locking&gt;")])
def test_text_formats(tmp_path, fmt, needle):
    target = write_output("record locking", RESULTS, fmt=fmt, save_dir=str(tmp_path / "out"))
    assert target.parent == tmp_path / "out"
    assert target.suffix == f".{fmt}"
    assert "record-locking" in target.name
    assert needle in target.read_text(encoding="utf-8")


def test_empty_results_markdown(tmp_path):
    target = write_output("nothing", [], out_path=str(tmp_path / "r.md"))
    assert "No matching topics" in target.read_text(encoding="utf-8")
