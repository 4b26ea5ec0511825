"""
Run the site metadata endpoint.

Usage:
  python -m sitemeta                          # config/sitemeta.defaults.yml
  SITEMETA_CONFIG=/etc/sitemeta.yml python -m sitemeta
"""

import logging
import os

import uvicorn

from sitemeta.config import load_config
from sitemeta.server import create_app

logging.basicConfig(
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


def main() -> None:
    config = load_config(os.environ.get("SITEMETA_CONFIG", "config/sitemeta.defaults.yml"))
    logger.info(f"Serving site metadata on {config.host}:{config.port} (cache={config.cache_dir})")
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
