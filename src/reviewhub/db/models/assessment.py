"""Participant assessment table."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from reviewhub.db.base import Base, CreatedAtMixin


class ParticipantAssessmentRow(Base, CreatedAtMixin):
    __tablename__ = "participant_assessments"

    participant_assessment_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    cohort_assessment_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("cohort_assessments.cohort_assessment_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    participant_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("cohort_participants.participant_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="not_started")
    allow_reviewer_nominations: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
