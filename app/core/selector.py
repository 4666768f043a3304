"""Question selection: pick the next most informative unasked question."""

from app.core.contracts import Question, SessionState
from app.core.domains import DomainSpec
from app.logging import get_logger
from app.storage.repo_events import EventsRepo
from app.storage.repo_questions import QuestionsRepo

logger = get_logger(__name__)

USAGE_BOOST_WEIGHT = 0.1
SATISFACTION_WEIGHT = 0.2
CONTEXT_BONUS = 0.1


def score_question(question: Question, domain: DomainSpec, context: dict[str, str]) -> float:
    """Selection score for a candidate.

    Expected gain, plus a small boost for rarely used questions, plus a
    satisfaction adjustment centred on 0.5, plus a flat bonus when a context
    affinity rule matches.
    """
    usage_boost = max(0.0, 1 - question.usage_count / 100) * USAGE_BOOST_WEIGHT
    satisfaction = (question.avg_satisfaction - 0.5) * SATISFACTION_WEIGHT
    bonus = CONTEXT_BONUS if domain.context_bonus_applies(question, context) else 0.0
    return question.expected_info_gain + usage_boost + satisfaction + bonus


def rank_candidates(
    candidates: list[Question],
    domain: DomainSpec,
    context: dict[str, str],
) -> list[tuple[float, Question]]:
    """Order candidates best first; ties go to the less used question, then by ID."""
    scored = [(score_question(q, domain, context), q) for q in candidates]
    scored.sort(key=lambda pair: (-pair[0], pair[1].usage_count, pair[1].id))
    return scored


class QuestionSelector:
    """Chooses questions from the catalog for one session.

    Args:
        questions: Catalog repository
        events: Optional events repository for selection telemetry
        pool_limit: Maximum candidates considered per turn
    """

    def __init__(
        self,
        questions: QuestionsRepo,
        events: EventsRepo | None = None,
        pool_limit: int = 10,
    ) -> None:
        self.questions = questions
        self.events = events
        self.pool_limit = pool_limit

    async def select_first(self, session: SessionState, domain: DomainSpec) -> Question | None:
        """The domain's pivot question, or None if the catalog has none.

        Raises:
            CatalogUnavailable: If the catalog cannot be read
        """
        pivot = await self.questions.get_pivot(domain.id, domain.pivot_question_id)
        if pivot is None:
            logger.warning(f"No active pivot question for domain {domain.id}")
            return None
        await self._record_selection(session, pivot, score=None, pool_size=1)
        return pivot

    async def select_next(self, session: SessionState, domain: DomainSpec) -> Question | None:
        """Best unasked question in the session's branch.

        Returns:
            The next question, or None when the branch is exhausted

        Raises:
            CatalogUnavailable: If the catalog cannot be read
        """
        if not session.choices:
            return await self.select_first(session, domain)

        branch = domain.branch_for(session)
        asked = session.asked_question_ids()
        candidates = await self.questions.list_candidates(
            domain.id,
            branch.question_types,
            branch.categories,
            exclude_ids=asked,
            limit=self.pool_limit,
        )
        candidates = [q for q in candidates if q.id not in asked]
        if not candidates:
            logger.info(
                f"No candidates left in branch {branch.name} of {domain.id}",
                extra={"session_id": session.session_id},
            )
            return None

        score, best = rank_candidates(candidates, domain, session.context)[0]
        await self._record_selection(session, best, score=score, pool_size=len(candidates))
        return best

    async def _record_selection(
        self,
        session: SessionState,
        question: Question,
        score: float | None,
        pool_size: int,
    ) -> None:
        if self.events is None:
            return
        payload = {"poolSize": pool_size, "questionType": question.type.value}
        if score is not None:
            payload["score"] = round(score, 4)
        await self.events.try_log_event(
            "question_selected",
            session_id=session.session_id,
            question_id=question.id,
            payload=payload,
        )
