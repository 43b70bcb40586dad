from contextlib import contextmanager
from datetime import date

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import models
import schemas
from errors import DuplicateUser, StoreError

logger = structlog.get_logger(__name__)


@contextmanager
def _committing(db: Session):
    """Commit the enclosed write or roll back and raise StoreError."""
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database write failed", exc_info=exc)
        raise StoreError(str(exc)) from exc


# --- User CRUD ---
def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, email: str, password_hash: str):
    db_user = models.User(email=email, password_hash=password_hash)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same email
        db.rollback()
        raise DuplicateUser(email) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database write failed", exc_info=exc)
        raise StoreError(str(exc)) from exc
    db.refresh(db_user)
    return db_user


# --- Job CRUD ---
def create_job(db: Session, owner: str, job: schemas.JobCreate):
    """Creates a new job entry owned by ``owner``."""
    db_job = models.Job(
        email=owner,
        title=job.title,
        company=job.company,
        description=job.description,
        deadline=job.deadline,
    )
    with _committing(db):
        db.add(db_job)
    db.refresh(db_job)
    return db_job


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_jobs_for_user(db: Session, owner: str, search: str = ""):
    """Retrieves the owner's jobs, newest first, optionally filtered by a substring."""
    query = db.query(models.Job).filter(models.Job.email == owner)
    if search:
        pattern = f"%{_escape_like(search)}%"
        query = query.filter(
            or_(
                models.Job.title.ilike(pattern, escape="\\"),
                models.Job.company.ilike(pattern, escape="\\"),
                models.Job.description.ilike(pattern, escape="\\"),
            )
        )
    return query.order_by(models.Job.created_at.desc(), models.Job.id.desc()).all()


def delete_job(db: Session, owner: str, job_id: int) -> int:
    """Delete a job for a specific owner in one statement; returns rows removed."""
    with _committing(db):
        deleted = (
            db.query(models.Job)
            .filter(models.Job.id == job_id, models.Job.email == owner)
            .delete(synchronize_session=False)
        )
    return deleted


def get_jobs_due_on(db: Session, day: date):
    """All jobs across owners whose deadline is exactly ``day``."""
    return (
        db.query(models.Job)
        .filter(models.Job.deadline == day)
        .order_by(models.Job.id)
        .all()
    )


# --- AI log CRUD ---
def create_ai_log(
    db: Session, owner: str, resume: str, job_description: str, suggestion: str
):
    db_log = models.AILog(
        email=owner,
        resume=resume,
        job_description=job_description,
        suggestion=suggestion,
    )
    with _committing(db):
        db.add(db_log)
    db.refresh(db_log)
    return db_log


def get_ai_logs_for_user(db: Session, owner: str):
    return (
        db.query(models.AILog)
        .filter(models.AILog.email == owner)
        .order_by(models.AILog.created_at.desc(), models.AILog.id.desc())
        .all()
    )
