#!/usr/bin/env python3
"""
Site Metadata Client — calls the metadata endpoint

Implements:
- get_metadata(url) -> dict | []

The endpoint URL is passed in at construction. Any failure (network error,
empty body, bad JSON) comes back as an empty list, never an exception.
"""

import logging
from typing import Any, Dict, List, Union

import requests

logger = logging.getLogger(__name__)


class MetadataClient:
    """Client for the site metadata endpoint."""

    DEFAULT_TIMEOUT = 10  # seconds

    def __init__(self, api_url: str, timeout: int = None):
        """
        Initialize client.

        Args:
            api_url: Endpoint URL, e.g. https://example.com/api/metadata/
            timeout: Request timeout in seconds
        """
        self.api_url = api_url
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def get_metadata(self, url: str) -> Union[Dict[str, Any], List[Any]]:
        """
        Look up metadata for a page.

        Args:
            url: Page to describe

        Returns:
            Metadata dict from the endpoint, or [] on any failure
        """
        try:
            resp = requests.get(self.api_url, params={"url": url}, timeout=self.timeout)
            text = resp.text
            return resp.json() if text else []
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Metadata request failed for {url}: {e}")
            return []
