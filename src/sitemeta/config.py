"""Configuration loader for the site metadata service."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml


@dataclass(frozen=True)
class SiteMetaConfig:
    cache_dir: Path = Path("_cache")
    cache_ttl_sec: int = 24 * 60 * 60
    fetch_timeout_sec: float = 3.0
    allowed_origins: Tuple[str, ...] = field(default=("https://takty.net",))
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SiteMetaConfig":
        origins = data.get("allowed_origins", ["https://takty.net"])
        if isinstance(origins, str):
            origins = [o.strip() for o in origins.split(",") if o.strip()]
        return cls(
            cache_dir=Path(data.get("cache_dir", "_cache")),
            cache_ttl_sec=int(data.get("cache_ttl_sec", 24 * 60 * 60)),
            fetch_timeout_sec=float(data.get("fetch_timeout_sec", 3.0)),
            allowed_origins=tuple(origins or ()),
            host=data.get("host", "127.0.0.1"),
            port=int(data.get("port", 8000)),
        )


ENV_MAP = {
    "cache_dir": "SITEMETA_CACHE_DIR",
    "cache_ttl_sec": "SITEMETA_CACHE_TTL_SEC",
    "fetch_timeout_sec": "SITEMETA_FETCH_TIMEOUT_SEC",
    "allowed_origins": "SITEMETA_ALLOWED_ORIGINS",
    "host": "SITEMETA_HOST",
    "port": "SITEMETA_PORT",
}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        if key in {"cache_ttl_sec", "port"}:
            value = int(value)
        elif key == "fetch_timeout_sec":
            value = float(value)
        elif key == "allowed_origins":
            value = [o.strip() for o in value.split(",") if o.strip()]
        merged[key] = value

    return merged


def load_config(config_path: str | Path = "config/sitemeta.defaults.yml") -> SiteMetaConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return SiteMetaConfig.from_dict(data)
