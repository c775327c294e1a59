from __future__ import annotations

import logging

from ..config import Settings
from ..errors import DocsError
from .base import DocSource
from .hybrid import HybridSource
from .local import LocalSource
from .online import OnlineSource

logger = logging.getLogger(__name__)


def make_source(cfg: Settings) -> DocSource:
    """Hybrid when a local docs directory is configured, online otherwise."""
    online = OnlineSource.from_settings(cfg)
    if cfg.local_doc_path:
        try:
            local = LocalSource(
                cfg.local_doc_path,
                max_chunk_tokens=cfg.max_chunk_tokens,
                known_sections=cfg.known_sections,
            )
        except DocsError as e:
            logger.warning("Failed to create local source, using online only", extra={"error": str(e)})
            return online
        logger.info("Using hybrid source", extra={"local_path": cfg.local_doc_path})
        return HybridSource(local, online)
    logger.info("Using online source", extra={"base_url": cfg.doc_base_url})
    return online
