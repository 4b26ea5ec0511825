"""
HTTP endpoint for site metadata.

    GET /?url=<page url>   → 200 JSON metadata
                             400 when url is missing
                             403 when the Origin is not allowed
                             502 with an empty body when the page could not be fetched
    OPTIONS /              → 200 preflight
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response

from .config import SiteMetaConfig
from .service import SiteMetadata

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def create_app(
    config: Optional[SiteMetaConfig] = None,
    metadata: Optional[SiteMetadata] = None,
) -> FastAPI:
    config = config or SiteMetaConfig()
    service = metadata or SiteMetadata(config)
    allowed = set(config.allowed_origins)

    app = FastAPI(title="Site Metadata")
    app.state.metadata = service

    @app.options("/")
    def preflight() -> Response:
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.get("/")
    def get_metadata(request: Request, url: str = "") -> Response:
        origin = request.headers.get("origin", "")
        if origin and origin not in allowed:
            logger.info(f"Rejected request from origin {origin}")
            return Response(status_code=403, headers=CORS_HEADERS)

        if not url:
            return Response(status_code=400, headers=CORS_HEADERS)

        headers = dict(CORS_HEADERS)
        if origin:
            headers["Access-Control-Allow-Origin"] = origin

        data = service.get(url)
        if data is None:
            logger.warning(f"No metadata for {url}: {service.last_error}")
            return Response(status_code=502, headers=headers)

        body = json.dumps(data, indent=4, ensure_ascii=False)
        return Response(content=body, media_type="application/json; charset=utf-8", headers=headers)

    return app
