"""Deadline-day reminder dispatch.

Run ``python reminders.py`` from a scheduler to send today's reminders
without going through the HTTP trigger.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import structlog
from sqlalchemy.orm import Session

import crud
from mailer import Mailer
from observability import init_observability, metric_scope

logger = structlog.get_logger(__name__)


@dataclass
class DispatchResult:
    day: date
    sent: int = 0
    failed: list[int] = field(default_factory=list)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def build_reminder(job) -> tuple[str, str]:
    subject = f"Reminder: {job.title} at {job.company}"
    body = f"Don't forget to apply for {job.title} at {job.company}. Deadline is today."
    return subject, body


@metric_scope
async def dispatch_reminders(db: Session, mailer: Mailer, today: date, metrics=None) -> DispatchResult:
    """Send one reminder per job whose deadline is ``today``.

    A failed send is logged and recorded in the result; the remaining jobs are
    still attempted. Repeated calls for the same day send again.
    """
    metrics.set_namespace("JobTracker")
    jobs = crud.get_jobs_due_on(db, today)
    result = DispatchResult(day=today)
    logger.info("Dispatching reminders", day=today.isoformat(), matches=len(jobs))

    loop = asyncio.get_running_loop()
    for job in jobs:
        subject, body = build_reminder(job)
        try:
            await loop.run_in_executor(None, mailer.send_message, job.email, subject, body)
        except Exception as exc:
            logger.error("Reminder send failed", job_id=job.id, to=job.email, exc_info=exc)
            result.failed.append(job.id)
            continue
        result.sent += 1

    metrics.put_metric("reminders_sent", result.sent, "Count")
    metrics.put_metric("reminders_failed", len(result.failed), "Count")
    logger.info(
        "Reminder dispatch finished",
        day=today.isoformat(),
        sent=result.sent,
        failed=len(result.failed),
    )
    return result


if __name__ == "__main__":
    from database import SessionLocal
    from mailer import get_mailer

    init_observability()

    async def _main() -> None:
        with SessionLocal() as db:
            await dispatch_reminders(db, get_mailer(), today_utc())

    asyncio.run(_main())
