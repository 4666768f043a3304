"""SQLAlchemy ORM models for the WhatNext engine."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.storage.db import Base


class SessionRecord(Base):
    """Serialized session state with a fixed expiry."""

    __tablename__ = "session_records"

    session_id: Mapped[str] = mapped_column(String, primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[float] = mapped_column(Float, nullable=False)

    __table_args__ = (Index("ix_session_records_expires", "expires_at"),)


class QuestionRow(Base):
    """Question catalog entry."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    domain: Mapped[str] = mapped_column(String, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    expected_info_gain: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    options_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    performance: Mapped[Optional["QuestionPerformance"]] = relationship(
        "QuestionPerformance", back_populates="question", uselist=False
    )

    __table_args__ = (
        CheckConstraint(
            "type IN ('pivot', 'followup_a', 'followup_b', 'contextual')",
            name="ck_questions_type",
        ),
        CheckConstraint(
            "expected_info_gain >= 0 AND expected_info_gain <= 1",
            name="ck_questions_info_gain",
        ),
        Index("ix_questions_domain_type", "domain", "type", "is_active"),
    )


class QuestionPerformance(Base):
    """Running statistics for a question."""

    __tablename__ = "question_performance"

    question_id: Mapped[str] = mapped_column(
        String, ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True
    )
    avg_info_gain: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_satisfaction: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Relationships
    question: Mapped["QuestionRow"] = relationship("QuestionRow", back_populates="performance")


class CachedRecommendation(Base):
    """Recommendation result keyed by preference fingerprint."""

    __tablename__ = "recommendation_cache"

    fingerprint: Mapped[str] = mapped_column(String, primary_key=True)
    domain: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    origin: Mapped[str] = mapped_column(String, nullable=False)
    generated_at: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False)
    hit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("origin IN ('generated', 'fallback')", name="ck_cache_origin"),
        Index("ix_recommendation_cache_expires", "expires_at"),
    )


class ControlState(Base):
    """Versioned key/value row shared by the breaker and the rate limiter."""

    __tablename__ = "control_state"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    expires_at: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Event(Base):
    """Event logging for analytics."""

    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_name: Mapped[str] = mapped_column(String, nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    question_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_events_name_created", "event_name", "created_at"),
        Index("ix_events_session_created", "session_id", "created_at"),
    )
