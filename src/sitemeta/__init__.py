"""
Site Metadata Service

Provides:
- SiteMetadata — cached title/description/icon/Open Graph lookup per URL
- create_app — FastAPI endpoint in front of SiteMetadata
- MetadataClient — requests-based client for that endpoint
"""

from .client import MetadataClient
from .config import SiteMetaConfig, load_config
from .extractor import extract_metadata
from .remote import RemoteFetchError, get_remote_contents
from .service import SiteMetadata

__all__ = [
    'SiteMetadata', 'SiteMetaConfig', 'load_config',
    'MetadataClient', 'extract_metadata',
    'RemoteFetchError', 'get_remote_contents',
]
