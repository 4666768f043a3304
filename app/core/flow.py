"""Session protocol: start, answer and feedback turns.

Each turn loads the session from the store, applies one transition and
writes it back; nothing is kept in process memory between turns.

    ELICITING --answer--> ELICITING        (next question)
    ELICITING --answer--> FINALIZING       (entropy low, budget spent,
                                            branch exhausted or catalog down)
    FINALIZING --orchestrator--> FINALIZED (result attached, kept until TTL)
"""

import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from app.config import Config
from app.core.context import build_context
from app.core.contracts import Choice, Question, RecommendationResult, SessionState
from app.core.domains import DomainSpec, get_domain
from app.core.orchestrator import RecommendationOrchestrator
from app.core.selector import QuestionSelector
from app.errors import CatalogUnavailable, InternalError, SessionNotFound, ValidationError
from app.logging import get_logger
from app.storage.repo_events import EventsRepo
from app.storage.repo_questions import QuestionsRepo
from app.storage.repo_sessions import SessionsRepo

logger = get_logger(__name__)

IDENTIFIER_RE = re.compile(r"^[a-z0-9_]{1,64}$")
SESSION_ID_RE = re.compile(r"^[a-f0-9]{32}$")
MAX_RESPONSE_TIME_MS = 3_600_000


@dataclass
class TurnResult:
    """What a turn hands back to the caller: a question or recommendations."""

    session_id: str
    domain: str
    question: Question | None = None
    result: RecommendationResult | None = None
    progress: int = 0
    entropy: float = 0.0
    question_count: int = 0
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.result is not None


def _validate_identifier(name: str, value: str) -> None:
    if not isinstance(value, str) or not IDENTIFIER_RE.match(value):
        raise ValidationError(f"Invalid {name}", {"field": name})


def _validate_session_id(session_id: str) -> None:
    if not isinstance(session_id, str) or not SESSION_ID_RE.match(session_id):
        raise ValidationError("Invalid sessionId", {"field": "sessionId"})


class SessionFlow:
    """Drives one turn of the elicitation protocol.

    Args:
        sessions: Session store
        questions: Question catalog
        orchestrator: Recommendation orchestrator
        cfg: Application configuration
        events: Optional events repository
        clock: Time source (epoch seconds)
    """

    def __init__(
        self,
        sessions: SessionsRepo,
        questions: QuestionsRepo,
        orchestrator: RecommendationOrchestrator,
        cfg: Config,
        events: EventsRepo | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sessions = sessions
        self.questions = questions
        self.selector = QuestionSelector(questions, events, pool_limit=cfg.candidate_pool_limit)
        self.orchestrator = orchestrator
        self.cfg = cfg
        self.events = events
        self._clock = clock

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    async def _load(self, session_id: str) -> SessionState:
        try:
            state = await self.sessions.get(session_id, now=self._clock())
        except SQLAlchemyError as e:
            await self.sessions.session.rollback()
            logger.error(f"Session store read failed: {e}", extra={"session_id": session_id})
            raise InternalError("Session store unavailable") from e
        if state is None:
            raise SessionNotFound(session_id)
        return state

    async def _save(self, state: SessionState) -> None:
        try:
            await self.sessions.put(state, self.cfg.session_ttl_seconds, now=self._clock())
        except SQLAlchemyError as e:
            await self.sessions.session.rollback()
            logger.error(
                f"Session store write failed: {e}", extra={"session_id": state.session_id}
            )
            raise InternalError("Session store unavailable") from e

    async def _event(self, name: str, state: SessionState, question_id: str | None = None, **payload: Any) -> None:
        if self.events is not None:
            await self.events.try_log_event(
                name, session_id=state.session_id, question_id=question_id, payload=payload
            )

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def start(self, domain_id: str, context: dict[str, str] | None = None) -> TurnResult:
        """Create a session and return its first question.

        Raises:
            ValidationError: Unknown domain or malformed context
            InternalError: Session store unavailable
        """
        domain = get_domain(domain_id)
        state = SessionState(
            session_id=uuid.uuid4().hex,
            domain=domain.id,
            context=build_context(context),
            created_at=self._clock(),
        )
        await self._event(
            "session_started",
            state,
            device=state.context.get("device"),
            timeOfDay=state.context.get("time_of_day"),
        )

        try:
            question = await self.selector.select_first(state, domain)
        except CatalogUnavailable as e:
            logger.warning(f"Catalog unavailable at start: {e}", extra={"session_id": state.session_id})
            question = None

        if question is None:
            return await self._finalize(state, domain)

        state.pending_question_id = question.id
        await self._save(state)
        logger.info(f"Session started in {domain.id}", extra={"session_id": state.session_id})
        return self._question_turn(state, domain, question)

    async def answer(
        self,
        session_id: str,
        question_id: str,
        choice: str,
        response_time_ms: int | None = None,
    ) -> TurnResult:
        """Record an answer and return the next question or the recommendations.

        Raises:
            ValidationError: Malformed input, repeated or unexpected question,
                or a choice that is not one of the question's options
            SessionNotFound: Unknown or expired session
            InternalError: Session store unavailable
        """
        _validate_session_id(session_id)
        _validate_identifier("questionId", question_id)
        _validate_identifier("choice", choice)
        if response_time_ms is not None and not 0 <= response_time_ms <= MAX_RESPONSE_TIME_MS:
            raise ValidationError(
                "responseTimeMs out of range",
                {"min": 0, "max": MAX_RESPONSE_TIME_MS, "value": response_time_ms},
            )

        state = await self._load(session_id)
        domain = get_domain(state.domain)

        if state.is_finalized:
            return self._final_turn(state, domain)
        if question_id in state.asked_question_ids():
            raise ValidationError("Question already answered", {"questionId": question_id})
        if state.pending_question_id and question_id != state.pending_question_id:
            raise ValidationError(
                "Answer does not match the current question",
                {"questionId": question_id, "expected": state.pending_question_id},
            )

        catalog_down = False
        try:
            question = await self.questions.get_question(question_id)
        except CatalogUnavailable as e:
            logger.warning(
                f"Catalog unavailable, accepting unvalidated choice: {e}",
                extra={"session_id": session_id},
            )
            question, catalog_down = None, True

        if not catalog_down:
            if question is None or question.domain != domain.id:
                raise ValidationError("Unknown question", {"questionId": question_id})
            if choice not in question.option_ids():
                raise ValidationError(
                    "Invalid choice for question",
                    {"questionId": question_id, "allowed": sorted(question.option_ids())},
                )

        state.add_choice(
            Choice(
                question_id=question_id,
                choice=choice,
                answered_at=self._clock(),
                response_time_ms=response_time_ms,
                question_text=question.text if question else None,
                choice_text=question.option_text(choice) if question else None,
            )
        )
        await self._event(
            "question_answered",
            state,
            question_id=question_id,
            choice=choice,
            responseTimeMs=response_time_ms,
            position=state.choice_count,
        )

        model = domain.entropy_model(self.cfg)
        if catalog_down or model.should_stop(state):
            return await self._finalize(state, domain)

        try:
            next_question = await self.selector.select_next(state, domain)
        except CatalogUnavailable as e:
            logger.warning(f"Catalog unavailable, finalizing: {e}", extra={"session_id": session_id})
            next_question = None

        if next_question is None:
            return await self._finalize(state, domain)

        state.pending_question_id = next_question.id
        await self._save(state)
        return self._question_turn(state, domain, next_question)

    async def feedback(
        self,
        session_id: str,
        question_id: str | None = None,
        actual_info_gain: float | None = None,
        satisfaction: float | None = None,
        rating: int | None = None,
    ) -> dict[str, Any]:
        """Record feedback on a session and fold it into question statistics.

        Raises:
            ValidationError: Malformed input or a question the session never saw
            SessionNotFound: Unknown or expired session
        """
        _validate_session_id(session_id)
        for name, value in (("actualInfoGain", actual_info_gain), ("satisfaction", satisfaction)):
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValidationError(f"{name} must be within [0, 1]", {"field": name})
        if rating is not None and not 1 <= rating <= 5:
            raise ValidationError("rating must be between 1 and 5", {"field": "rating"})
        if satisfaction is None and rating is not None:
            satisfaction = (rating - 1) / 4

        state = await self._load(session_id)

        updated = None
        if question_id is not None:
            _validate_identifier("questionId", question_id)
            if question_id not in state.asked_question_ids():
                raise ValidationError("Question was not asked in this session", {"questionId": question_id})
            try:
                perf = await self.questions.record_feedback(question_id, actual_info_gain, satisfaction)
            except SQLAlchemyError as e:
                await self.questions.session.rollback()
                raise InternalError("Failed to record feedback") from e
            updated = {
                "questionId": question_id,
                "avgInfoGain": perf.avg_info_gain,
                "avgSatisfaction": perf.avg_satisfaction,
                "usageCount": perf.usage_count,
            }

        await self._event(
            "feedback_received",
            state,
            question_id=question_id,
            actualInfoGain=actual_info_gain,
            satisfaction=satisfaction,
            rating=rating,
        )
        return {"sessionId": session_id, "recorded": True, "performance": updated}

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _finalize(self, state: SessionState, domain: DomainSpec) -> TurnResult:
        result = await self.orchestrator.recommend(state, domain)
        state.finalize(result, now=self._clock())
        await self._save(state)
        return self._final_turn(state, domain)

    def _question_turn(self, state: SessionState, domain: DomainSpec, question: Question) -> TurnResult:
        model = domain.entropy_model(self.cfg)
        return TurnResult(
            session_id=state.session_id,
            domain=domain.id,
            question=question,
            progress=model.progress(state),
            entropy=model.remaining(state.choice_count),
            question_count=state.choice_count,
        )

    def _final_turn(self, state: SessionState, domain: DomainSpec) -> TurnResult:
        model = domain.entropy_model(self.cfg)
        return TurnResult(
            session_id=state.session_id,
            domain=domain.id,
            result=state.result,
            progress=100,
            entropy=model.remaining(state.choice_count),
            question_count=state.choice_count,
            extra={"sessionDurationSeconds": round(state.duration_seconds(self._clock()), 3)},
        )
