"""Repository for the question catalog and question statistics."""

from datetime import datetime, timezone
from typing import Any, Iterable

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as SchemaError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.contracts import Question, QuestionOption, QuestionType
from app.errors import CatalogUnavailable
from app.logging import get_logger
from app.storage.json_utils import safe_json_dumps
from app.storage.models import QuestionPerformance, QuestionRow

logger = get_logger(__name__)


class _OptionSchema(BaseModel):
    id: str = Field(pattern=r"^[a-z0-9_]{1,64}$")
    text: str = Field(min_length=1)
    emoji: str | None = None


_options_adapter = TypeAdapter(list[_OptionSchema])


def parse_options(raw: str) -> list[QuestionOption]:
    """Validate an ``options_json`` column.

    Raises:
        ValueError: If the column is not a list of at least two distinct options
    """
    try:
        options = _options_adapter.validate_json(raw)
    except SchemaError as e:
        raise ValueError(str(e)) from e
    if len(options) < 2 or len({opt.id for opt in options}) != len(options):
        raise ValueError("question needs at least two distinct options")
    return [QuestionOption(id=opt.id, text=opt.text, emoji=opt.emoji) for opt in options]


def _to_question(row: QuestionRow, perf: QuestionPerformance | None) -> Question | None:
    try:
        options = parse_options(row.options_json)
    except ValueError as e:
        logger.warning(f"Skipping question {row.id} with invalid options: {e}")
        return None
    return Question(
        id=row.id,
        text=row.text,
        category=row.category,
        domain=row.domain,
        type=QuestionType(row.type),
        expected_info_gain=row.expected_info_gain,
        options=options,
        is_active=row.is_active,
        usage_count=perf.usage_count if perf else 0,
        avg_satisfaction=perf.avg_satisfaction if perf else 0.5,
    )


class QuestionsRepo:
    """Read access to the catalog plus performance bookkeeping.

    Database failures on reads surface as ``CatalogUnavailable`` so the
    session flow can finalize instead of failing the turn.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _joined(self):
        return select(QuestionRow, QuestionPerformance).outerjoin(
            QuestionPerformance, QuestionPerformance.question_id == QuestionRow.id
        )

    async def _fetch(self, stmt) -> list[Question]:
        try:
            result = await self.session.execute(stmt)
            rows = result.all()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise CatalogUnavailable("Question catalog unavailable", {"reason": str(e)}) from e

        questions = []
        for row, perf in rows:
            question = _to_question(row, perf)
            if question is not None:
                questions.append(question)
        return questions

    async def get_question(self, question_id: str) -> Question | None:
        """Get a question by ID, active or not."""
        stmt = self._joined().where(QuestionRow.id == question_id)
        questions = await self._fetch(stmt)
        return questions[0] if questions else None

    async def get_pivot(self, domain: str, pivot_id: str | None = None) -> Question | None:
        """Get the active pivot question for a domain.

        Args:
            domain: Domain ID
            pivot_id: Preferred pivot question ID

        Returns:
            The named pivot if it is active, else any active pivot, else None
        """
        stmt = (
            self._joined()
            .where(QuestionRow.domain == domain)
            .where(QuestionRow.type == QuestionType.PIVOT.value)
            .where(QuestionRow.is_active.is_(True))
            .order_by(QuestionRow.id)
        )
        pivots = await self._fetch(stmt)
        for question in pivots:
            if question.id == pivot_id:
                return question
        return pivots[0] if pivots else None

    async def list_candidates(
        self,
        domain: str,
        types: Iterable[QuestionType],
        categories: Iterable[str],
        exclude_ids: Iterable[str] = (),
        limit: int = 10,
    ) -> list[Question]:
        """List active candidate questions for a branch.

        Args:
            domain: Domain ID
            types: Allowed question types
            categories: Allowed categories
            exclude_ids: Question IDs already asked
            limit: Pool size

        Returns:
            Questions ordered by expected gain, then least used
        """
        stmt = (
            self._joined()
            .where(QuestionRow.domain == domain)
            .where(QuestionRow.is_active.is_(True))
            .where(QuestionRow.type.in_([t.value for t in types]))
            .where(QuestionRow.category.in_(list(categories)))
        )
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(QuestionRow.id.not_in(excluded))
        stmt = stmt.order_by(
            QuestionRow.expected_info_gain.desc(),
            QuestionPerformance.usage_count.asc().nulls_first(),
            QuestionRow.id,
        ).limit(limit)
        return await self._fetch(stmt)

    async def list_all(self, domain: str | None = None) -> list[Question]:
        stmt = self._joined().order_by(QuestionRow.domain, QuestionRow.id)
        if domain:
            stmt = stmt.where(QuestionRow.domain == domain)
        return await self._fetch(stmt)

    async def upsert_question(
        self,
        question_id: str,
        domain: str,
        text: str,
        question_type: QuestionType,
        category: str,
        expected_info_gain: float,
        options: list[dict[str, Any]],
        is_active: bool = True,
    ) -> QuestionRow:
        """Insert or update a catalog entry.

        Returns:
            The stored row
        """
        now = datetime.now(timezone.utc)
        row = await self.session.get(QuestionRow, question_id)
        if row is None:
            row = QuestionRow(id=question_id, created_at=now)
            self.session.add(row)
        row.domain = domain
        row.text = text
        row.type = question_type.value
        row.category = category
        row.expected_info_gain = expected_info_gain
        row.options_json = safe_json_dumps(options, default="[]")
        row.is_active = is_active
        row.updated_at = now
        await self.session.commit()
        return row

    async def set_expected_gain(self, question_id: str, value: float) -> bool:
        row = await self.session.get(QuestionRow, question_id)
        if row is None:
            return False
        row.expected_info_gain = min(1.0, max(0.0, value))
        row.updated_at = datetime.now(timezone.utc)
        await self.session.commit()
        return True

    async def get_performance(self, question_id: str) -> QuestionPerformance | None:
        return await self.session.get(QuestionPerformance, question_id)

    async def record_feedback(
        self,
        question_id: str,
        actual_info_gain: float | None = None,
        satisfaction: float | None = None,
    ) -> QuestionPerformance:
        """Fold one observation into the running averages.

        Each average is updated as ``(old * n + x) / (n + 1)``; a missing
        observation leaves that average unchanged. The first observation
        creates the row, with 0.5 standing in for a missing value.

        Args:
            question_id: Question ID
            actual_info_gain: Observed information gain in [0, 1]
            satisfaction: Observed satisfaction in [0, 1]

        Returns:
            Updated QuestionPerformance row
        """
        now = datetime.now(timezone.utc)
        perf = await self.session.get(QuestionPerformance, question_id)

        if perf is None:
            perf = QuestionPerformance(
                question_id=question_id,
                avg_info_gain=actual_info_gain if actual_info_gain is not None else 0.5,
                usage_count=1,
                avg_satisfaction=satisfaction if satisfaction is not None else 0.5,
                updated_at=now,
            )
            self.session.add(perf)
        else:
            n = perf.usage_count
            if actual_info_gain is not None:
                perf.avg_info_gain = (perf.avg_info_gain * n + actual_info_gain) / (n + 1)
            if satisfaction is not None:
                perf.avg_satisfaction = (perf.avg_satisfaction * n + satisfaction) / (n + 1)
            perf.usage_count = n + 1
            perf.updated_at = now

        await self.session.commit()
        await self.session.refresh(perf)
        return perf
