"""
Storage Factory
Centralizes the logic for selecting the card store, review log and clock.
"""

import logging

from recall.application.config import AppConfig
from recall.application.review_service import ReviewService
from recall.domain.ports import CardStore, Clock, ReviewEventLog
from recall.infrastructure.adapters.json_store import JsonCardStore, JsonReviewEventLog
from recall.infrastructure.adapters.memory_store import InMemoryCardStore, InMemoryReviewEventLog
from recall.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)


def get_card_store(config: AppConfig) -> CardStore:
    if config.backend == "memory":
        return InMemoryCardStore()
    return JsonCardStore(config.cards_path)


def get_event_log(config: AppConfig) -> ReviewEventLog:
    if config.backend == "memory":
        return InMemoryReviewEventLog()
    return JsonReviewEventLog(config.reviews_path)


def get_clock(config: AppConfig) -> Clock:
    return SystemClock(config.tzinfo)


def get_review_service(config: AppConfig) -> ReviewService:
    """Wire a ReviewService from configuration."""
    logger.debug(f"Backend: {config.backend} (data in {config.data_dir})")
    return ReviewService(
        card_store=get_card_store(config),
        event_log=get_event_log(config),
        clock=get_clock(config),
        session_size=config.session_size,
        due_limit=config.due_limit,
        default_session_type=config.default_session_type,
    )
