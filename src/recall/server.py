import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from pydantic import BaseModel, ConfigDict, Field

from recall.application.config import resolve_config
from recall.application.factory import get_review_service
from recall.application.review_service import ErrorInfo, ReviewService, ServiceResult
from recall.consts import VERSION
from recall.domain.models import CardFilters, Grade, SessionType

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("recall.server")

STATUS_BY_CODE = {
    "VALIDATION_ERROR": 400,
    "CARD_NOT_FOUND": 404,
    "NO_CARDS_DUE": 404,
    "INVALID_SESSION": 409,
    "STORAGE_ERROR": 503,
    "STORAGE_QUOTA_EXCEEDED": 507,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"recall server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("recall server shutting down...")


app = FastAPI(
    title="recall",
    description="Spaced-repetition review API.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def get_service(request: Request) -> ReviewService:
    """One ReviewService per process; it owns the single active session."""
    service = getattr(request.app.state, "service", None)
    if service is None:
        service = get_review_service(resolve_config())
        request.app.state.service = service
    return service


def unwrap(result: ServiceResult):
    if result.ok:
        return result.value
    error: ErrorInfo = result.error
    raise HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 500),
        detail={
            "code": error.code,
            "message": error.message,
            "user_message": error.user_message,
            "retryable": error.retryable,
        },
    )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    question: str
    answer: str
    notes: str | None = None
    category_id: str | None = None
    tags: list[str] = []
    ease_factor: float
    interval: int
    repetition_count: int
    last_reviewed_at: datetime | None = None
    next_review_at: datetime | None = None
    correct_count: int
    incorrect_count: int
    is_new: bool
    is_lapsed: bool


class ReviewEventModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    card_id: str
    session_id: str
    reviewed_at: datetime
    grade: Grade
    previous_interval: int
    new_interval: int
    previous_ease_factor: float
    new_ease_factor: float
    response_time_ms: int


class PreviewModel(BaseModel):
    interval: int
    ease_factor: float
    next_review_at: datetime


class AddCardRequest(BaseModel):
    question: str
    answer: str
    notes: str | None = None
    category_id: str | None = None
    tags: list[str] = []


class UpdateCardRequest(BaseModel):
    question: str | None = None
    answer: str | None = None
    notes: str | None = None
    category_id: str | None = None
    tags: list[str] | None = None


class StartSessionRequest(BaseModel):
    category_id: str | None = None
    tag_ids: list[str] = []
    max_cards: int | None = Field(default=None, ge=0)
    session_type: SessionType | None = None


class SessionResponse(BaseModel):
    id: str
    session_type: SessionType
    started_at: datetime
    cards: list[CardModel]


class SubmitReviewRequest(BaseModel):
    card_id: str
    grade: Literal["pass", "fail"]
    answer_text: str = ""
    elapsed_ms: int | None = Field(default=None, ge=0)


class SubmitReviewResponse(BaseModel):
    event: ReviewEventModel
    updated_card: CardModel
    next_card: CardModel | None
    completed: bool


class NavigateRequest(BaseModel):
    action: Literal["next", "previous", "jump"]
    index: int | None = None


class ProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_card_id: str | None
    previous_card_id: str | None = None
    next_card_id: str | None = None
    current: int
    total: int
    percentage: float


class SessionStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_cards: int
    reviewed: int
    passed: int
    failed: int
    accuracy: float


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/cards/due", response_model=list[CardModel])
async def due_cards(
    category_id: str | None = None,
    tag: list[str] = Query(default=[]),
    limit: int | None = Query(default=None, ge=0),
    service: ReviewService = Depends(get_service),
):
    filters = CardFilters(category_id=category_id, tag_ids=tuple(tag), max_cards=limit)
    cards = unwrap(await service.get_due_cards(filters))
    return [CardModel.model_validate(c) for c in cards]


@app.post("/cards", response_model=CardModel, status_code=201)
async def add_card(req: AddCardRequest, service: ReviewService = Depends(get_service)):
    card = unwrap(
        await service.add_card(
            req.question,
            req.answer,
            notes=req.notes,
            category_id=req.category_id,
            tags=tuple(req.tags),
        )
    )
    return CardModel.model_validate(card)


@app.get("/cards", response_model=list[CardModel])
async def list_cards(
    category_id: str | None = None,
    tag: list[str] = Query(default=[]),
    service: ReviewService = Depends(get_service),
):
    filters = CardFilters(category_id=category_id, tag_ids=tuple(tag))
    cards = unwrap(await service.list_cards(filters))
    return [CardModel.model_validate(c) for c in cards]


@app.get("/cards/search", response_model=list[CardModel])
async def search_cards(q: str = "", service: ReviewService = Depends(get_service)):
    cards = unwrap(await service.search_cards(q))
    return [CardModel.model_validate(c) for c in cards]


@app.patch("/cards/{card_id}", response_model=CardModel)
async def update_card(
    card_id: str, req: UpdateCardRequest, service: ReviewService = Depends(get_service)
):
    card = unwrap(
        await service.update_card(
            card_id,
            question=req.question,
            answer=req.answer,
            notes=req.notes,
            category_id=req.category_id,
            tags=tuple(req.tags) if req.tags is not None else None,
        )
    )
    return CardModel.model_validate(card)


@app.delete("/cards/{card_id}", status_code=204)
async def delete_card(card_id: str, service: ReviewService = Depends(get_service)):
    unwrap(await service.delete_card(card_id))
    return Response(status_code=204)


@app.get("/cards/{card_id}/preview", response_model=dict[str, PreviewModel])
async def preview_card(card_id: str, service: ReviewService = Depends(get_service)):
    outcomes = unwrap(await service.preview_next_intervals(card_id))
    return {
        quality.name.lower(): PreviewModel(
            interval=o.interval, ease_factor=o.ease_factor, next_review_at=o.next_review_at
        )
        for quality, o in outcomes.items()
    }


@app.post("/sessions", response_model=SessionResponse, status_code=201)
async def start_session(req: StartSessionRequest, service: ReviewService = Depends(get_service)):
    logger.info(f"Session requested via API: {req}")
    filters = CardFilters(
        category_id=req.category_id, tag_ids=tuple(req.tag_ids), max_cards=req.max_cards
    )
    started = unwrap(await service.start_review_session(filters, req.session_type))
    return SessionResponse(
        id=started.session.id,
        session_type=started.session.session_type,
        started_at=started.session.started_at,
        cards=[CardModel.model_validate(c) for c in started.cards],
    )


@app.get("/sessions/current", response_model=ProgressResponse)
async def session_progress(service: ReviewService = Depends(get_service)):
    progress = unwrap(await service.get_session_progress())
    return ProgressResponse.model_validate(progress)


@app.get("/sessions/current/stats", response_model=SessionStatsResponse)
async def session_stats(service: ReviewService = Depends(get_service)):
    stats = unwrap(await service.get_session_stats())
    return SessionStatsResponse.model_validate(stats)


@app.post("/sessions/current/reviews", response_model=SubmitReviewResponse)
async def submit_review(req: SubmitReviewRequest, service: ReviewService = Depends(get_service)):
    outcome = unwrap(
        await service.submit_review(req.card_id, req.grade, req.answer_text, req.elapsed_ms)
    )
    return SubmitReviewResponse(
        event=ReviewEventModel.model_validate(outcome.event),
        updated_card=CardModel.model_validate(outcome.updated_card),
        next_card=CardModel.model_validate(outcome.next_card) if outcome.next_card else None,
        completed=outcome.completed,
    )


@app.post("/sessions/current/navigate", response_model=ProgressResponse)
async def navigate(req: NavigateRequest, service: ReviewService = Depends(get_service)):
    if req.action == "next":
        result = await service.next_card()
    elif req.action == "previous":
        result = await service.previous_card()
    else:
        result = await service.jump_to_card(req.index)
    return ProgressResponse.model_validate(unwrap(result))


@app.post("/sessions/current/end", response_model=SessionStatsResponse)
async def end_session(service: ReviewService = Depends(get_service)):
    stats = unwrap(await service.end_review_session())
    return SessionStatsResponse.model_validate(stats)


@app.get("/reviews", response_model=list[ReviewEventModel])
async def review_history(
    card_id: str | None = None,
    limit: int = Query(default=100, ge=0),
    service: ReviewService = Depends(get_service),
):
    events = unwrap(await service.get_review_history(card_id, limit))
    return [ReviewEventModel.model_validate(e) for e in events]
