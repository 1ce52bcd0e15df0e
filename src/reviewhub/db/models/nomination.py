"""Reviewer nomination and external reviewer tables."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from reviewhub.db.base import Base, CreatedAtMixin


class ExternalReviewerRow(Base, CreatedAtMixin):
    __tablename__ = "external_reviewers"
    __table_args__ = (UniqueConstraint("client_id", "email", name="uq_external_reviewer_client_email"),)

    external_reviewer_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    client_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("clients.client_id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    invited_by: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("client_users.user_id"), nullable=True
    )
    # Authoritative review progress for every nomination pointing at this reviewer
    review_status: Mapped[str | None] = mapped_column(String(30), nullable=True)


class ReviewerNominationRow(Base, CreatedAtMixin):
    __tablename__ = "reviewer_nominations"
    __table_args__ = (
        CheckConstraint(
            "(is_external AND external_reviewer_id IS NOT NULL AND reviewer_id IS NULL)"
            " OR (NOT is_external AND reviewer_id IS NOT NULL AND external_reviewer_id IS NULL)",
            name="ck_nomination_single_reviewer",
        ),
    )

    nomination_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    participant_assessment_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("participant_assessments.participant_assessment_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    nominated_by_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("client_users.user_id"), nullable=False, index=True
    )
    reviewer_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("client_users.user_id"), nullable=True, index=True
    )
    external_reviewer_id: Mapped[str | None] = mapped_column(
        String(128), ForeignKey("external_reviewers.external_reviewer_id"), nullable=True, index=True
    )
    is_external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    request_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    # Stale copy for external nominations; see ExternalReviewerRow.review_status
    review_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
