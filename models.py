from datetime import datetime, timezone

from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Date, DateTime
from database import Base


def _utcnow() -> datetime:
    # Microsecond precision keeps newest-first ordering stable within a second
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    jobs = relationship("Job", back_populates="owner")
    ai_logs = relationship("AILog", back_populates="owner")


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, ForeignKey("users.email"), index=True, nullable=False)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    deadline = Column(Date, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    owner = relationship("User", back_populates="jobs")


class AILog(Base):
    """Append-only record of one suggestion request and its answer."""

    __tablename__ = "ai_logs"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, ForeignKey("users.email"), index=True, nullable=False)
    resume = Column(Text, nullable=False)
    job_description = Column(Text, nullable=False)
    suggestion = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    owner = relationship("User", back_populates="ai_logs")
