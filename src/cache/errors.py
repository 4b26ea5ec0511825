"""
Exceptions for the cache layer.

The Cache Store never lets these escape from get_data(); they mark the
failure kinds that degrade to a miss. The Key-Value Store raises
DirectoryCreateError and ResourceOpenError from its constructor, since it
cannot work without its backing file.

Usage:
    from cache.errors import ProducerError

    def produce(params):
        raise ProducerError("upstream unavailable")
"""


class CacheError(Exception):
    """Base exception for all cache layer errors."""
    pass


class LockAcquisitionError(CacheError):
    """Exclusive lock on a file or directory handle could not be acquired."""
    pass


class ResourceOpenError(CacheError):
    """
    A file or directory could not be opened.

    Raised when:
    - The Key-Value Store cannot open or create its backing file
    """

    def __init__(self, path: str, original_error: Exception = None):
        self.path = path
        self.original_error = original_error
        msg = f"Unable to open or create the file: {path}"
        if original_error:
            msg += f" (caused by: {type(original_error).__name__}: {original_error})"
        super().__init__(msg)


class DirectoryCreateError(CacheError):
    """The parent directory of a store file could not be created."""

    def __init__(self, path: str, original_error: Exception = None):
        self.path = path
        self.original_error = original_error
        msg = f"Unable to create the directory: {path}"
        if original_error:
            msg += f" (caused by: {type(original_error).__name__}: {original_error})"
        super().__init__(msg)


class DeserializeError(CacheError):
    """Stored content is malformed or does not have the expected shape."""
    pass


class ProducerError(CacheError):
    """
    The producer could not supply data for a cache miss.

    Producers raise this (or return None) to signal failure. The message
    becomes the store's last_error.
    """
    pass
