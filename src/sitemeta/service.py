"""
Site metadata lookup with on-disk caching.

SiteMetadata wires the Cache Store to a producer that fetches a page and
extracts its metadata. Results are cached per URL for cache_ttl_sec.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from cache import CacheStore

from .config import SiteMetaConfig
from .extractor import extract_metadata
from .remote import get_remote_contents

logger = logging.getLogger(__name__)

Fetcher = Callable[..., str]


class SiteMetadata:
    def __init__(
        self,
        config: Optional[SiteMetaConfig] = None,
        fetch: Fetcher = get_remote_contents,
    ) -> None:
        self.config = config or SiteMetaConfig()
        self._fetch = fetch
        self._store = CacheStore(
            str(self.config.cache_dir),
            self._request_data,
            exp_time=self.config.cache_ttl_sec,
        )

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def last_error(self) -> Optional[str]:
        return self._store.last_error

    def get(self, url: str) -> Optional[Dict[str, str]]:
        """Metadata for `url`, from cache or freshly fetched. None on failure."""
        return self._store.get_data({"url": url})

    def _request_data(self, params: Dict[str, Any]) -> Dict[str, str]:
        url = params["url"]
        html = self._fetch(url, timeout=self.config.fetch_timeout_sec)
        metadata = extract_metadata(html)
        logger.info(f"Fetched metadata for {url} ({len(metadata)} fields)")
        return metadata
