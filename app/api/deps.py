"""FastAPI dependencies: per-request engine wiring, rate limiting and admin auth."""

from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Config
from app.core.flow import SessionFlow
from app.core.orchestrator import RecommendationOrchestrator
from app.errors import RateLimitExceeded
from app.logging import get_logger
from app.resilience.breaker import CircuitBreaker
from app.resilience.rate_limiter import RateLimiter
from app.storage import CacheRepo, EventsRepo, QuestionsRepo, SessionsRepo

logger = get_logger(__name__)


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_breaker(request: Request) -> CircuitBreaker:
    return request.app.state.breaker


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as session:
        yield session


def client_key(request: Request) -> str:
    """Client identity for rate limiting: first ``X-Forwarded-For`` hop, else the peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Reject the request when the client's window is spent.

    Raises:
        RateLimitExceeded: Carries the seconds until the window resets
    """
    key = client_key(request)
    decision = await limiter.check_limit(key)
    if not decision.allowed:
        logger.info(
            f"Rate limited for {decision.retry_after}s", extra={"client_key": key}
        )
        raise RateLimitExceeded(decision.retry_after)


async def get_flow(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    cfg: Config = Depends(get_config),
    breaker: CircuitBreaker = Depends(get_breaker),
) -> SessionFlow:
    """Assemble the session protocol for one request."""
    events = EventsRepo(session)
    orchestrator = RecommendationOrchestrator(
        cache=CacheRepo(session),
        breaker=breaker,
        generator=request.app.state.generator,
        cfg=cfg,
        events=events,
    )
    return SessionFlow(
        sessions=SessionsRepo(session),
        questions=QuestionsRepo(session),
        orchestrator=orchestrator,
        cfg=cfg,
        events=events,
    )


async def verify_admin_token(
    request: Request,
    authorization: str | None = Header(None, alias="Authorization"),
) -> None:
    """Verify admin token for protected endpoints.

    Args:
        request: Incoming request
        authorization: Authorization header value

    Raises:
        HTTPException: If token is invalid or missing
    """
    admin_token = request.app.state.config.admin_token
    if not admin_token:
        raise HTTPException(
            status_code=503,
            detail="Admin endpoints not configured (ADMIN_TOKEN not set)",
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Support "Bearer <token>" or just "<token>"
    token = authorization
    if authorization.startswith("Bearer "):
        token = authorization[7:]

    if token != admin_token:
        raise HTTPException(status_code=403, detail="Invalid admin token")
