"""Jobs module for scheduled maintenance tasks."""

from app.jobs.purge import run_purge_expired
from app.jobs.question_stats import run_question_stats
from app.jobs.scheduler import (
    PURGE_JOB_ID,
    QUESTION_STATS_JOB_ID,
    get_scheduler,
    setup_all_jobs,
    setup_purge_job,
    setup_question_stats_job,
    shutdown_scheduler,
    start_scheduler,
)

__all__ = [
    "PURGE_JOB_ID",
    "QUESTION_STATS_JOB_ID",
    "get_scheduler",
    "run_purge_expired",
    "run_question_stats",
    "setup_all_jobs",
    "setup_purge_job",
    "setup_question_stats_job",
    "shutdown_scheduler",
    "start_scheduler",
]
