"""APScheduler configuration and job management."""

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.logging import get_logger

logger = get_logger(__name__)

_scheduler: AsyncIOScheduler | None = None

PURGE_JOB_ID = "purge_expired"
QUESTION_STATS_JOB_ID = "question_stats"


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler

    if _scheduler is None:
        logger.info("Creating scheduler")
        _scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )

    return _scheduler


def start_scheduler() -> None:
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        logger.info("Starting scheduler")
        scheduler.start()


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        logger.info("Shutting down scheduler")
        _scheduler.shutdown(wait=True)
    _scheduler = None


# ------------------------------------------------------------------
# Individual job setup helpers
# ------------------------------------------------------------------

def setup_purge_job() -> str:
    """Schedule the expired-state purge."""
    from app.config import config
    from app.jobs.purge import run_purge_expired

    job = get_scheduler().add_job(
        run_purge_expired,
        "interval",
        minutes=config.purge_interval_minutes,
        id=PURGE_JOB_ID,
        name="Purge Expired State",
        replace_existing=True,
    )
    logger.info(
        f"Scheduled purge_expired: every {config.purge_interval_minutes}m, job_id={job.id}"
    )
    return job.id


def setup_question_stats_job() -> str:
    """Schedule the expected-gain recomputation."""
    from app.config import config
    from app.jobs.question_stats import run_question_stats

    job = get_scheduler().add_job(
        run_question_stats,
        "interval",
        hours=config.question_stats_interval_hours,
        id=QUESTION_STATS_JOB_ID,
        name="Question Gain Statistics",
        replace_existing=True,
    )
    logger.info(
        f"Scheduled question_stats: every {config.question_stats_interval_hours}h, "
        f"job_id={job.id}"
    )
    return job.id


# ------------------------------------------------------------------
# Aggregate setup
# ------------------------------------------------------------------

def setup_all_jobs() -> None:
    """Setup all scheduled jobs."""
    setup_purge_job()
    setup_question_stats_job()
    logger.info("All jobs configured")
