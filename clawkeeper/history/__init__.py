"""Git-backed change history for the data directory."""

from .tracker import HistoryTracker, IGNORE_LIST, BOOTSTRAP_TAG

__all__ = ["HistoryTracker", "IGNORE_LIST", "BOOTSTRAP_TAG"]
