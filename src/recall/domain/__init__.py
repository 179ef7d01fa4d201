# Domain Package
from .errors import (
    CardNotFound,
    InvalidSession,
    NoCardsDue,
    RecallError,
    StorageError,
    ValidationError,
)
from .models import (
    GRADE_QUALITY,
    Card,
    CardFilters,
    Grade,
    Quality,
    ReviewEvent,
    ReviewResponse,
    ReviewSession,
    ScheduleResult,
    SchedulingState,
    SessionStats,
    SessionType,
)
from .ports import CardStore, Clock, ReviewEventLog

__all__ = [
    "Card",
    "CardFilters",
    "CardNotFound",
    "CardStore",
    "Clock",
    "GRADE_QUALITY",
    "Grade",
    "InvalidSession",
    "NoCardsDue",
    "Quality",
    "RecallError",
    "ReviewEvent",
    "ReviewEventLog",
    "ReviewResponse",
    "ReviewSession",
    "ScheduleResult",
    "SchedulingState",
    "SessionStats",
    "SessionType",
    "StorageError",
    "ValidationError",
]
