"""Review questionnaire response tables."""

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from reviewhub.db.base import Base, TimestampMixin


class ReviewResponseSessionRow(Base, TimestampMixin):
    __tablename__ = "review_response_sessions"

    session_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    nomination_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("reviewer_nominations.nomination_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="not_started")


class ReviewResponseRow(Base, TimestampMixin):
    __tablename__ = "review_responses"
    __table_args__ = (UniqueConstraint("session_id", "question_id", name="uq_response_session_question"),)

    response_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("review_response_sessions.session_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[str] = mapped_column(String(128), nullable=False)
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_answered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
