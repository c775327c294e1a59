import sys
from pathlib import Path

import pytest

# Repo root = one level above tests/
REPO_ROOT = Path(__file__).resolve().parents[1]

# Ensure repo root is on sys.path so `import cli` and the package work uninstalled.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from local_docs_retrieval.config import ENV_OVERRIDES, Settings  # noqa: E402

PAGE_HTML = """<!doctype html>
<html>
<head><title>Record Locking</title></head>
<body>
  <header>Site header</header>
  <nav class="breadcrumb"><a href="/">Home</a><a href="/lang/">Language</a><span>Records</span></nav>
  <main>
    <h1>Record Locking</h1>
    <p>Records are locked when they are read for update.</p>
    <ul><li>One</li><li>Two</li></ul>
    <pre><code>READ(ch, rec, key)</code></pre>
    <p>See <a href="other.html">the other page</a> for details.</p>
  </main>
  <a rel="prev" href="/lang/intro.html">Introduction</a>
  <a rel="next" href="https://docs.example.com/lang/unlocking.html">Unlocking</a>
  <a rel="up" href="/lang/">Language</a>
  <div class="related">
    <a href="/data/files.html">Files</a>
    <a href="#top">Top</a>
    <a href="mailto:docs@example.com">Mail</a>
  </div>
  <footer>Footer text</footer>
</body>
</html>
"""


def simple_page(title: str, body: str, extra: str = "") -> str:
    return f"<html><head><title>{title}</title></head><body><main><h1>{title}</h1>{body}</main>{extra}</body></html>"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for env in ENV_OVERRIDES:
        monkeypatch.delenv(env, raising=False)


@pytest.fixture
def page_html() -> str:
    return PAGE_HTML


@pytest.fixture
def docs_dir(tmp_path) -> Path:
    root = tmp_path / "docs"
    (root / "lang").mkdir(parents=True)
    (root / "data").mkdir()
    (root / "lang" / "records.html").write_text(PAGE_HTML, encoding="utf-8")
    (root / "lang" / "intro.htm").write_text(
        simple_page("Introduction", "<p>The language reference starts here.</p>"), encoding="utf-8"
    )
    (root / "data" / "files.html").write_text(
        simple_page("Files", "<p>ISAM files store records by key.</p>"), encoding="utf-8"
    )
    return root


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(cache_dir=str(tmp_path / "cache"), log_dir=str(tmp_path / "logs"))


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, reason: str = "OK"):
        self.text = text
        self.status_code = status_code
        self.reason = reason


class FakeSession:
    """Stands in for requests.Session; ``pages`` maps URL -> HTML or FakeResponse or exception."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.headers = {}
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if isinstance(page, FakeResponse):
            return page
        if page is None:
            return FakeResponse("", 404, "Not Found")
        return FakeResponse(page)


@pytest.fixture
def fake_session():
    return FakeSession()
