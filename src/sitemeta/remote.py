"""Remote document fetch."""

from __future__ import annotations

import logging

import requests

from cache.errors import ProducerError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3  # seconds


class RemoteFetchError(ProducerError):
    """The remote document could not be fetched."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Fetch error for {url}: {message}")


def get_remote_contents(url: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """
    Fetch `url` and return the body as text.

    Anything other than a 200 response is a failure.

    Raises:
        RemoteFetchError: network error, timeout, or non-200 status
    """
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        logger.warning(f"Fetch failed for {url}: {exc}")
        raise RemoteFetchError(url, str(exc)) from exc

    if resp.status_code != 200:
        logger.warning(f"Fetch for {url} returned HTTP {resp.status_code}")
        raise RemoteFetchError(url, f"HTTP {resp.status_code}")

    return resp.content.decode("utf-8", errors="replace")
