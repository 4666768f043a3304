"""Re-estimate each question's expected information gain.

Runs every ``QUESTION_STATS_INTERVAL_HOURS``. For every active question the
new estimate combines the feedback-driven averages with how evenly recent
answers split across its options::

    gain = avg_info_gain * balance * (0.5 + avg_satisfaction * 0.5)

with a 5% discount once a question has been used more than 100 times.
``avg_info_gain`` is 0.5 until the question has feedback; the stored gain is
never an input, so repeated runs over the same data agree. Questions with
neither feedback nor answers keep their current value.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.entropy import estimate_question_gain
from app.logging import get_logger

logger = get_logger(__name__)

LOOKBACK_DAYS = 30
# Base gain for questions that have answers but no feedback yet
DEFAULT_AVG_INFO_GAIN = 0.5


async def run_question_stats(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    lookback_days: int = LOOKBACK_DAYS,
) -> dict:
    """Recompute expected gains and persist them.

    Returns:
        Summary dict with counts of updated and skipped questions.
    """
    from app.storage import EventsRepo, QuestionsRepo, get_session_factory

    session_factory = session_factory or get_session_factory()
    since = datetime.now(timezone.utc) - timedelta(days=lookback_days)
    updated = 0
    skipped = 0

    async with session_factory() as session:
        questions_repo = QuestionsRepo(session)
        distribution = await EventsRepo(session).answer_distribution(since_dt=since)

        for question in await questions_repo.list_all():
            answers = distribution.get(question.id, {})
            perf = await questions_repo.get_performance(question.id)
            if perf is None and not answers:
                skipped += 1
                continue

            counts = [answers.get(option.id, 0) for option in question.options]
            new_gain = estimate_question_gain(
                avg_info_gain=perf.avg_info_gain if perf else DEFAULT_AVG_INFO_GAIN,
                response_counts=counts,
                success_rate=perf.avg_satisfaction if perf else 0.5,
                usage_count=perf.usage_count if perf else 0,
            )
            await questions_repo.set_expected_gain(question.id, new_gain)
            updated += 1
            logger.debug(
                f"Question {question.id}: gain {question.expected_info_gain:.3f} -> {new_gain:.3f}"
            )

    logger.info(f"Question stats: updated={updated}, skipped={skipped}")
    return {"updated": updated, "skipped": skipped}
