"""Turn one HTML documentation page into a :class:`Topic` record.

Every heuristic below is an ordered list of selectors or small extractor
functions tried in sequence; the first non-empty result wins and a miss
falls through to a documented default. Only a document that cannot be
parsed at all raises :class:`ParseError`.
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from ..errors import ParseError
from ..index.schema import SourceKind, Topic, TopicLink
from .clean import normalize_text

logger = logging.getLogger(__name__)

SUMMARY_CHARS = 200
SUMMARY_MIN_SENTENCE_END = 100

DEFAULT_KNOWN_SECTIONS = (
    "Language",
    "General Guides",
    "Data Access",
    "Development Tools",
    "Updating",
)
GENERIC_CRUMBS = {"Home", "Documentation", "Docs"}

BREADCRUMB_SELECTORS = (
    ".breadcrumb",
    ".breadcrumbs",
    "[class*='breadcrumb']",
    "nav[aria-label='breadcrumb' i]",
    "ol.breadcrumb",
    "nav ol",
)
CRUMB_TAGS = ["a", "span", "li"]

MAIN_CONTENT_SELECTORS = (
    "main",
    ".main-content",
    ".content",
    "#content",
    "[role='main']",
    ".article",
    "article",
    ".documentation-content",
    ".doc-content",
)
CHROME_SELECTOR = "head, header, footer, nav, aside, .sidebar, .navigation, .menu"
NON_CONTENT_TAGS = ["script", "style", "noscript", "iframe", "embed", "object"]
HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]

NAV_SELECTORS = (
    ("prev", ("a[rel~='prev']", ".prev", ".previous", "[class*='prev']")),
    ("next", ("a[rel~='next']", ".next", "[class*='next']")),
    ("parent", ("a[rel~='up']", ".parent", "[class*='parent']")),
)
RELATED_SELECTORS = (
    "a[rel~='related']",
    ".related a",
    "[class*='related'] a",
    ".see-also a",
)


def _clean(el: Optional[Tag]) -> str:
    if el is None:
        return ""
    return " ".join(el.get_text().split())


def _first_non_empty(strategies: Sequence[Callable[[BeautifulSoup], str]], soup: BeautifulSoup) -> str:
    for strategy in strategies:
        value = strategy(soup)
        if value:
            return value
    return ""


# ---- title -----------------------------------------------------------------

TITLE_STRATEGIES = (
    lambda soup: _clean(soup.find("title")),
    lambda soup: _clean(soup.find("h1")),
    lambda soup: _clean(soup.select_one(".page-title, .title, [class*='title']")),
)


# ---- breadcrumbs / section -------------------------------------------------

def _extract_breadcrumbs(soup: BeautifulSoup) -> List[str]:
    for selector in BREADCRUMB_SELECTORS:
        container = soup.select_one(selector)
        if container is None:
            continue
        # leaf nodes only, so <li><a>X</a></li> yields "X" once
        leaves = [el for el in container.find_all(CRUMB_TAGS) if el.find(CRUMB_TAGS) is None]
        crumbs = [c for c in (_clean(el) for el in leaves) if c and c != "Home"]
        if crumbs:
            return crumbs
    return []


def _title_case(s: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), s)


def _extract_section(breadcrumbs: List[str], url: str, known_sections: Sequence[str]) -> str:
    for crumb in breadcrumbs:
        if crumb not in GENERIC_CRUMBS:
            return crumb

    try:
        parts = [p for p in urlsplit(url).path.split("/") if p]
    except ValueError:
        parts = []
    for part in parts:
        normalized = _title_case(part.replace("-", " "))
        if any(normalized.lower() in s.lower() for s in known_sections):
            return normalized

    return "Unknown"


# ---- body ------------------------------------------------------------------

def _main_content(soup: BeautifulSoup) -> Tag:
    """Return a detached copy of the main content region."""
    for selector in MAIN_CONTENT_SELECTORS:
        el = soup.select_one(selector)
        if el is not None:
            return copy.copy(el)

    region = copy.copy(soup.body if soup.body is not None else soup)
    for el in region.select(CHROME_SELECTOR):
        el.extract()
    return region


def _render_heading(el: Tag) -> str:
    text = el.get_text().strip()
    if not text:
        return ""
    level = int(el.name[1])
    return f"\n\n{'#' * level} {text}\n\n"


def _render_list(el: Tag) -> str:
    ordered = el.name == "ol"
    lines = []
    for i, li in enumerate(el.find_all("li", recursive=False), start=1):
        text = li.get_text().strip()
        lines.append(f"{i}. {text}" if ordered else f"- {text}")
    if not lines:
        return ""
    return "\n" + "\n".join(lines) + "\n"


def _render_code(el: Tag) -> str:
    text = el.get_text()
    is_block = el.name == "pre" or (el.parent is not None and el.parent.name == "pre")
    if is_block:
        return f"\n```\n{text}\n```\n"
    return f"`{text}`"


def _render_block(el: Tag) -> str:
    text = el.get_text().strip()
    return f"\n{text}\n" if text else ""


def _replace_each(root: Tag, names: List[str], render: Callable[[Tag], str]) -> None:
    # Re-query after every replacement: outer elements come first in document
    # order, and replacing them drops their nested matches with them.
    while True:
        el = root.find(names)
        if el is None:
            return
        text = render(el)
        if text:
            el.replace_with(text)
        else:
            el.extract()


def _html_to_text(region: Tag) -> str:
    for el in region.find_all(NON_CONTENT_TAGS):
        el.extract()

    _replace_each(region, HEADING_TAGS, _render_heading)
    _replace_each(region, ["ul", "ol"], _render_list)
    _replace_each(region, ["pre", "code"], _render_code)
    _replace_each(region, ["a"], lambda el: el.get_text().strip())
    _replace_each(region, ["p", "div"], _render_block)

    return normalize_text(region.get_text())


def _summarize(body_text: str) -> str:
    summary = body_text[:SUMMARY_CHARS].strip()
    if len(body_text) > SUMMARY_CHARS:
        last_period = summary.rfind(".")
        if last_period > SUMMARY_MIN_SENTENCE_END:
            summary = summary[: last_period + 1]
        else:
            summary = summary + "..."
    return summary


# ---- links -----------------------------------------------------------------

def _origin(parts) -> Tuple[str, str, Optional[int]]:
    default_port = {"http": 80, "https": 443}.get(parts.scheme)
    return parts.scheme, (parts.hostname or ""), parts.port or default_port


def normalize_url_to_topic_id(href: str, base_url: str, base_path: Optional[str] = None) -> str:
    """Map a link to a topic id.

    Same-origin links become a slash-trimmed relative path with ``base_path``
    (default: the base URL's own path) removed; foreign links stay absolute.
    If either URL cannot be parsed, the raw href minus one leading slash is
    returned.
    """
    try:
        base = urlsplit(base_url)
        if not base.scheme:
            raise ValueError(f"not an absolute URL: {base_url!r}")
        resolved = urlsplit(urljoin(base_url, href))
        if _origin(resolved) != _origin(base):
            return resolved.geturl()

        path = resolved.path.strip("/")
        prefix = (base.path if base_path is None else base_path).strip("/")
        if prefix and path.startswith(prefix + "/"):
            path = path[len(prefix) + 1 :]
        return path or resolved.path or "/"
    except ValueError:
        return href[1:] if href.startswith("/") else href


def _absolute(href: str, base_url: str) -> str:
    if href.startswith("http"):
        return href
    try:
        return urljoin(base_url, href)
    except ValueError:
        return href


def _make_link(kind: str, el: Tag, href: str, base_url: str, base_path: Optional[str]) -> TopicLink:
    return TopicLink(
        kind=kind,
        target_id=normalize_url_to_topic_id(href, base_url, base_path),
        title=_clean(el) or el.get("title") or None,
        url=_absolute(href, base_url),
    )


def _extract_links(soup: BeautifulSoup, base_url: str, base_path: Optional[str]) -> List[TopicLink]:
    links: List[TopicLink] = []

    for kind, selectors in NAV_SELECTORS:
        for selector in selectors:
            el = soup.select_one(selector)
            if el is None:
                continue
            href = el.get("href")
            if href:
                links.append(_make_link(kind, el, href, base_url, base_path))
                break

    seen = set()
    for selector in RELATED_SELECTORS:
        for el in soup.select(selector):
            if id(el) in seen:
                continue
            seen.add(id(el))
            href = el.get("href")
            if not href or href.startswith("#") or href.startswith("mailto:"):
                continue
            links.append(_make_link("related", el, href, base_url, base_path))

    return links


# ---- public API ------------------------------------------------------------

def extract_body_text(html: Union[str, bytes, BeautifulSoup]) -> str:
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html, "html.parser")
    return _html_to_text(_main_content(soup))


def parse_html_with_body(
    html: Union[str, bytes],
    url: str,
    version: Optional[str] = None,
    source: SourceKind = "online",
    base_path: Optional[str] = None,
    known_sections: Sequence[str] = DEFAULT_KNOWN_SECTIONS,
) -> Tuple[Topic, str]:
    """Parse a page into an unchunked topic plus its normalized body text."""
    try:
        if not isinstance(html, (str, bytes)):
            raise TypeError(f"expected HTML text, got {type(html).__name__}")
        logger.debug("Parsing HTML", extra={"url": url})

        soup = BeautifulSoup(html, "html.parser")
        title = _first_non_empty(TITLE_STRATEGIES, soup) or "Untitled"
        breadcrumbs = _extract_breadcrumbs(soup)
        section = _extract_section(breadcrumbs, url, known_sections)
        body_text = _html_to_text(_main_content(soup))
        links = _extract_links(soup, url, base_path)

        topic = Topic(
            id=normalize_url_to_topic_id(url, url, base_path),
            version=version or "latest",
            title=title,
            section=section,
            path=breadcrumbs,
            summary=_summarize(body_text),
            body_chunks=[],
            links=links,
            url=url,
            source=source,
        )
    except Exception as e:
        raise ParseError(url, version, reason=str(e)) from e

    logger.debug(
        "Parsed HTML",
        extra={
            "topic_id": topic.id,
            "section": topic.section,
            "breadcrumb_count": len(breadcrumbs),
            "link_count": len(links),
        },
    )
    return topic, body_text


def parse_html(
    html: Union[str, bytes],
    url: str,
    version: Optional[str] = None,
    source: SourceKind = "online",
    base_path: Optional[str] = None,
    known_sections: Sequence[str] = DEFAULT_KNOWN_SECTIONS,
) -> Topic:
    topic, _ = parse_html_with_body(
        html, url, version=version, source=source, base_path=base_path, known_sections=known_sections
    )
    return topic
