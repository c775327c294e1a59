from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import requests
from pyrate_limiter import BucketFullException, Duration, Limiter, Rate

from ..errors import NetworkError
from ..index.schema import Topic
from ..ingest.html_parser import DEFAULT_KNOWN_SECTIONS
from ..ingest.normalize import DEFAULT_MAX_CHUNK_TOKENS
from .base import DocSource, FetchedPage

logger = logging.getLogger(__name__)

# (connect timeout, read timeout)
TIMEOUT = (10.0, 30.0)
DEFAULT_USER_AGENT = "local-docs-retrieval/0.1.0"
RATE_LIMIT_KEY = "docs-fetch"

# blocking acquire waits up to a year before giving up
_BLOCKING_MAX_DELAY_MS = int(Duration.DAY) * 365


def make_rate_limiter(max_requests: int = 10, window: float = 5.0, block: bool = True) -> Limiter:
    """At most ``max_requests`` request starts per ``window`` seconds.

    A blocking limiter sleeps until a slot frees up; a non-blocking one
    raises ``BucketFullException`` instead.
    """
    rate = Rate(max_requests, int(window * Duration.SECOND))
    return Limiter(
        rate,
        raise_when_fail=not block,
        max_delay=_BLOCKING_MAX_DELAY_MS if block else None,
        retry_until_max_delay=block,
    )


class OnlineSource(DocSource):
    kind = "online"

    def __init__(
        self,
        base_url: str,
        default_version: str = "latest",
        versions: Sequence[str] = ("latest",),
        sections: Sequence[str] = (),
        timeouts: Tuple[float, float] = TIMEOUT,
        rate_limiter: Optional[Limiter] = None,
        cache_ttl: float = 60.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
        max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
        known_sections: Sequence[str] = DEFAULT_KNOWN_SECTIONS,
    ) -> None:
        super().__init__(max_chunk_tokens=max_chunk_tokens, known_sections=known_sections)
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.default_version = default_version
        self.versions = list(versions)
        self.sections = list(sections) or list(self.known_sections)
        self.timeouts = timeouts
        self.rate_limiter = rate_limiter if rate_limiter is not None else make_rate_limiter()
        self.cache_ttl = cache_ttl
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "text/html"})
        self._html_cache: Dict[str, Tuple[str, float]] = {}

    @classmethod
    def from_settings(cls, cfg, session: Optional[requests.Session] = None) -> "OnlineSource":
        return cls(
            base_url=cfg.doc_base_url,
            default_version=cfg.default_version,
            versions=cfg.versions,
            sections=cfg.sections,
            timeouts=cfg.timeouts,
            rate_limiter=make_rate_limiter(cfg.rate_limit_requests, cfg.rate_limit_window),
            cache_ttl=cfg.fetch_cache_ttl,
            user_agent=cfg.user_agent,
            session=session,
            max_chunk_tokens=cfg.max_chunk_tokens,
            known_sections=cfg.known_sections,
        )

    @property
    def base_path(self) -> str:
        return urlsplit(self.base_url).path

    def build_url(self, url_or_id: str, version: Optional[str] = None) -> str:
        if url_or_id.startswith(("http://", "https://")):
            return url_or_id
        if url_or_id.startswith("/"):
            parts = urlsplit(self.base_url)
            return f"{parts.scheme}://{parts.netloc}{url_or_id}"
        version = version or self.default_version
        if version == "latest":
            return f"{self.base_url}{url_or_id}"
        return f"{self.base_url}versions/{version}/{url_or_id}"

    def fetch_html(self, url: str) -> str:
        cached = self._html_cache.get(url)
        if cached is not None and time.monotonic() - cached[1] < self.cache_ttl:
            logger.debug("HTML cache hit", extra={"url": url})
            return cached[0]

        try:
            acquired = self.rate_limiter.try_acquire(RATE_LIMIT_KEY)
        except BucketFullException as e:
            raise NetworkError(url, "Rate limit exceeded") from e
        if not acquired:
            raise NetworkError(url, "Rate limit exceeded")
        logger.debug("HTTP GET", extra={"url": url})
        try:
            r = self.session.get(url, timeout=self.timeouts)
        except requests.Timeout as e:
            raise NetworkError(url, "Request timeout") from e
        except requests.RequestException as e:
            raise NetworkError(url, str(e)) from e

        if r.status_code >= 400:
            raise NetworkError(
                url, f"HTTP {r.status_code}: {r.reason}", retryable=r.status_code >= 500
            )
        html = r.text
        now = time.monotonic()
        self._html_cache = {
            k: v for k, v in self._html_cache.items() if now - v[1] < self.cache_ttl
        }
        self._html_cache[url] = (html, now)
        return html

    def fetch_page(self, url_or_id: str, version: Optional[str] = None) -> FetchedPage:
        version = version or self.default_version
        url = self.build_url(url_or_id, version)
        return FetchedPage(
            html=self.fetch_html(url),
            url=url,
            topic_id=url_or_id,
            version=version,
            source="online",
            base_path=self.base_path,
        )

    def list_topics(self, section: str, version: Optional[str] = None, limit: int = 50) -> List[Topic]:
        # the site exposes no section index to enumerate
        logger.warning(
            "Listing topics is not supported by the online source",
            extra={"section": section, "version": version or self.default_version},
        )
        return []

    def available_versions(self) -> List[str]:
        return list(self.versions)

    def available_sections(self, version: Optional[str] = None) -> List[str]:
        return list(self.sections)
