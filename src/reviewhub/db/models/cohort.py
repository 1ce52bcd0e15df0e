"""Cohort, participant and assessment definition tables."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from reviewhub.db.base import Base, CreatedAtMixin


class CohortRow(Base, CreatedAtMixin):
    __tablename__ = "cohorts"

    cohort_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    client_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("clients.client_id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class CohortParticipantRow(Base):
    __tablename__ = "cohort_participants"

    participant_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    cohort_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("cohorts.cohort_id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("client_users.user_id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")


class AssessmentTypeRow(Base):
    __tablename__ = "assessment_types"

    assessment_type_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


class CohortAssessmentRow(Base, CreatedAtMixin):
    __tablename__ = "cohort_assessments"

    cohort_assessment_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    cohort_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("cohorts.cohort_id", ondelete="CASCADE"), nullable=False, index=True
    )
    assessment_type_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("assessment_types.assessment_type_id"), nullable=False
    )
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
