"""
Site Metadata Cache Layer
File-backed memoization with TTL, shared safely between processes
Key-value store with per-key TTL in a single file
"""

from .cache import CacheStore
from .errors import (
    CacheError, DeserializeError, DirectoryCreateError,
    LockAcquisitionError, ProducerError, ResourceOpenError,
)
from .file_ops import locked_file, operate_file_atomically, operate_directory_atomically
from .key_generator import CacheKeyGenerator
from .kv_store import KeyValueStore

__all__ = [
    'CacheStore', 'CacheKeyGenerator', 'KeyValueStore',
    'locked_file', 'operate_file_atomically', 'operate_directory_atomically',
    'CacheError', 'DeserializeError', 'DirectoryCreateError',
    'LockAcquisitionError', 'ProducerError', 'ResourceOpenError',
]
