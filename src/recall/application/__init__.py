# Application Package
from .due_selector import QueueSummary, build_due_queue, is_due, limit, select_due
from .review_service import ErrorInfo, ReviewService, ServiceResult
from .scheduler import compute_next_review, preview_intervals
from .session import ReviewSessionCoordinator, SubmitOutcome

__all__ = [
    "ErrorInfo",
    "QueueSummary",
    "ReviewService",
    "ReviewSessionCoordinator",
    "ServiceResult",
    "SubmitOutcome",
    "build_due_queue",
    "compute_next_review",
    "is_due",
    "limit",
    "preview_intervals",
    "select_due",
]
