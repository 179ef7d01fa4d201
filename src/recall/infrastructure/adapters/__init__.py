# Storage adapters
from .json_store import JsonCardStore, JsonReviewEventLog
from .memory_store import InMemoryCardStore, InMemoryReviewEventLog

__all__ = [
    "InMemoryCardStore",
    "InMemoryReviewEventLog",
    "JsonCardStore",
    "JsonReviewEventLog",
]
