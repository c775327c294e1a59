from __future__ import annotations

import datetime
import html
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..index.schema import SearchResult


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def _slug(s: str, max_len: int = 60) -> str:
    s = s.strip().lower()
    s = re.sub(r"[^a-z0-9\-\s_]+", "", s)
    s = re.sub(r"[\s_]+", "-", s)
    return s[:max_len].strip("-") or "query"


def infer_format(out_path: Optional[str], fmt: Optional[str]) -> str:
    if fmt:
        return fmt.lower()
    if out_path:
        ext = Path(out_path).suffix.lower().lstrip(".")
        if ext in {"json", "md", "txt", "html", "htm"}:
            return "html" if ext in {"html", "htm"} else ext
    return "json"


def ensure_outpath(out_path: Optional[str], fmt: str, save_dir: Optional[str], query: str) -> Path:
    if out_path:
        p = Path(out_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    base_dir = Path(save_dir or "outputs")
    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir / f"{_timestamp()}_{_slug(query)}.{fmt}"


def as_markdown(obj: Dict[str, Any]) -> str:
    lines: List[str] = [f"# {obj['query']}", ""]
    results = obj.get("results") or []
    if not results:
        lines.append("_No matching topics._")
    for i, r in enumerate(results, start=1):
        lines.append(f"{i}. [{r['title']}]({r['url']}) ({r['section']}, {r['version']}) score={r['score']:g}")
        if r.get("summary"):
            lines.append(f"   {r['summary']}")
    return "\n".join(lines).strip() + "\n"


def as_text(obj: Dict[str, Any]) -> str:
    lines: List[str] = [f"QUERY: {obj['query']}", ""]
    for r in obj.get("results") or []:
        lines.append(f"- {r['topic_id']} | {r['title']} | {r['section']} | {r['version']} | {r['score']:g}")
        lines.append(f"  {r['url']}")
    return "\n".join(lines).strip() + "\n"


def as_html(obj: Dict[str, Any]) -> str:
    def esc(x):
        return html.escape(str(x)) if x is not None else ""

    lines: List[str] = []
    lines.append("<!doctype html><html><head><meta charset='utf-8'>")
    lines.append(
        "<style>body{font-family:system-ui,Segoe UI,Arial,sans-serif;max-width:900px;margin:40px auto;padding:0 16px} h1{font-size:1.6rem} .results li{margin:8px 0} .meta{color:#666}</style>"
    )
    lines.append("</head><body>")
    lines.append(f"<h1>{esc(obj['query'])}</h1>")
    lines.append("<ol class='results'>")
    for r in obj.get("results") or []:
        lines.append(
            f"<li><a href='{esc(r['url'])}'>{esc(r['title'])}</a> "
            f"<span class='meta'>{esc(r['section'])} | {esc(r['version'])} | {r['score']:g}</span>"
            f"<div>{esc(r.get('summary'))}</div></li>"
        )
    lines.append("</ol>")
    lines.append("</body></html>")
    return "\n".join(lines)


def write_output(
    query: str,
    results: Sequence[SearchResult],
    out_path: Optional[str] = None,
    fmt: Optional[str] = None,
    save_dir: Optional[str] = None,
) -> Path:
    fmt2 = infer_format(out_path, fmt)
    target = ensure_outpath(out_path, fmt2, save_dir, query)
    obj = {"query": query, "results": [r.model_dump() for r in results]}
    if fmt2 == "json":
        target.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    elif fmt2 == "md":
        target.write_text(as_markdown(obj), encoding="utf-8")
    elif fmt2 == "txt":
        target.write_text(as_text(obj), encoding="utf-8")
    elif fmt2 == "html":
        target.write_text(as_html(obj), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported format: {fmt2}")
    return target
