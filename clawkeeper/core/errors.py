"""
Error taxonomy shared by every component.

  - ConfigError: invalid configuration or missing credential. Fatal at
    load/render time, never retried.
  - HistoryError: the history repository could not be read or written.
  - StorageError: remote object store I/O failed (transient; the next
    scheduled run is the retry).
  - ObjectNotFound: a named remote object does not exist.
  - ArchiveError: an archive could not be built or extracted.
"""

from __future__ import annotations


class ConfigError(ValueError):
    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class HistoryError(RuntimeError):
    pass


class StorageError(RuntimeError):
    pass


class ObjectNotFound(StorageError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"object not found: {key}")


class ArchiveError(RuntimeError):
    pass
