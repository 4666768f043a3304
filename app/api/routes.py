"""HTTP routes for the session protocol and breaker administration."""

from fastapi import APIRouter, Depends

from app.api.deps import enforce_rate_limit, get_breaker, get_flow, verify_admin_token
from app.api.schemas import (
    AnswerRequest,
    FeedbackRequest,
    StartRequest,
    domain_to_dict,
    turn_to_dict,
)
from app.core.domains import list_domains
from app.core.flow import SessionFlow
from app.logging import get_logger
from app.resilience.breaker import CircuitBreaker

logger = get_logger(__name__)

router = APIRouter(prefix="/api")
admin_router = APIRouter(prefix="/api/admin", dependencies=[Depends(verify_admin_token)])


@router.get("/domains")
async def get_domains() -> dict:
    """List the configured recommendation domains."""
    return {"domains": [domain_to_dict(d) for d in list_domains()]}


@router.post("/start", dependencies=[Depends(enforce_rate_limit)])
async def start_session(
    payload: StartRequest,
    flow: SessionFlow = Depends(get_flow),
) -> dict:
    """Create a session and return its first question."""
    turn = await flow.start(payload.domain, payload.context)
    return turn_to_dict(turn)


@router.post("/answer/{session_id}", dependencies=[Depends(enforce_rate_limit)])
async def answer_question(
    session_id: str,
    payload: AnswerRequest,
    flow: SessionFlow = Depends(get_flow),
) -> dict:
    """Record an answer; returns the next question or the recommendations."""
    turn = await flow.answer(
        session_id,
        payload.question_id,
        payload.choice,
        response_time_ms=payload.response_time_ms,
    )
    return turn_to_dict(turn)


@router.post("/feedback/{session_id}", dependencies=[Depends(enforce_rate_limit)])
async def submit_feedback(
    session_id: str,
    payload: FeedbackRequest,
    flow: SessionFlow = Depends(get_flow),
) -> dict:
    """Record feedback on a question the session was asked."""
    return await flow.feedback(
        session_id,
        question_id=payload.question_id,
        actual_info_gain=payload.actual_info_gain,
        satisfaction=payload.satisfaction,
        rating=payload.rating,
    )


@admin_router.get("/breaker")
async def breaker_status(breaker: CircuitBreaker = Depends(get_breaker)) -> dict:
    """Current state of the generation-service breaker."""
    snapshot = await breaker.snapshot()
    return {"ok": True, "name": breaker.name, **snapshot.to_dict()}


@admin_router.post("/breaker/reset")
async def reset_breaker(breaker: CircuitBreaker = Depends(get_breaker)) -> dict:
    """Force the breaker closed."""
    logger.info(f"Admin reset of breaker '{breaker.name}'")
    await breaker.reset()
    snapshot = await breaker.snapshot()
    return {"ok": True, "name": breaker.name, **snapshot.to_dict()}
