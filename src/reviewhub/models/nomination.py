"""Pydantic read models and request bodies for nominations and reviews."""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from reviewhub.models.enums import RequestStatus, ReviewerKind, ReviewStatus


class InternalReviewStatus(BaseModel):
    """Review progress held on the nomination itself."""

    model_config = ConfigDict(frozen=True)

    source: Literal["internal"] = "internal"
    status: ReviewStatus = ReviewStatus.NOT_STARTED


class ExternalReviewStatus(BaseModel):
    """Review progress held on the linked external reviewer record.

    ``fallback_status`` is the nomination's own (usually stale) copy and only
    applies when the external record could not be found.
    """

    model_config = ConfigDict(frozen=True)

    source: Literal["external"] = "external"
    external_reviewer_id: str
    record_found: bool
    status: ReviewStatus | None = None
    fallback_status: ReviewStatus | None = None


ReviewStatusSource = Annotated[
    InternalReviewStatus | ExternalReviewStatus,
    Field(discriminator="source"),
]


class Nomination(BaseModel):
    """Unified read model for one reviewer nomination.

    Both store fetch tiers assemble exactly this shape.
    """

    model_config = ConfigDict(frozen=True)

    nomination_id: str
    participant_assessment_id: str
    nominated_by_id: str
    reviewer_id: str | None = None
    external_reviewer_id: str | None = None
    is_external: bool
    request_status: RequestStatus
    review_source: ReviewStatusSource
    created_at: datetime
    responded_at: datetime | None = None
    review_started_at: datetime | None = None
    review_submitted_at: datetime | None = None

    participant_user_id: str | None = None
    cohort_id: str | None = None
    cohort_name: str | None = None
    client_id: str | None = None
    assessment_name: str = "Assessment"

    @model_validator(mode="after")
    def _single_reviewer_reference(self) -> "Nomination":
        if self.is_external:
            if not self.external_reviewer_id or self.reviewer_id:
                raise ValueError("external nomination must reference only an external reviewer")
            if self.review_source.source != "external":
                raise ValueError("external nomination requires an external review status source")
        else:
            if not self.reviewer_id or self.external_reviewer_id:
                raise ValueError("internal nomination must reference only an internal reviewer")
            if self.review_source.source != "internal":
                raise ValueError("internal nomination requires an internal review status source")
        return self


class ReviewState(BaseModel):
    """Canonical request/review state of a nomination."""

    model_config = ConfigDict(frozen=True)

    request_status: RequestStatus
    review_status: ReviewStatus


class PersonDescriptor(BaseModel):
    """Display-safe description of an internal member."""

    user_id: str | None = None
    name: str | None = None
    surname: str | None = None
    email: str = ""
    found: bool = True

    @property
    def display_name(self) -> str:
        full = f"{self.name or ''} {self.surname or ''}".strip()
        return full or self.email or "Someone"


class ReviewerDescriptor(PersonDescriptor):
    """Display-safe description of a nomination's reviewer."""

    kind: ReviewerKind


class NominationView(BaseModel):
    """Nomination as returned by the API: canonical state plus reviewer."""

    nomination_id: str
    participant_assessment_id: str
    nominated_by_id: str
    is_external: bool
    reviewer: ReviewerDescriptor
    state: ReviewState
    created_at: datetime
    responded_at: datetime | None = None
    review_submitted_at: datetime | None = None
    cohort_name: str | None = None
    assessment_name: str


class NominationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    participant_assessment_id: str
    reviewer_ids: list[str] = Field(default_factory=list)
    external_emails: list[str] = Field(default_factory=list)


class SkippedReviewer(BaseModel):
    reviewer: str
    reason: str


class NominationBatchResult(BaseModel):
    created: list[NominationView] = Field(default_factory=list)
    skipped: list[SkippedReviewer] = Field(default_factory=list)
    errors: list[SkippedReviewer] = Field(default_factory=list)


class NominationDecisionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    decision: Literal["accepted", "rejected"]


class ReviewProgressRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Literal["in_progress", "completed"]


class AnswerCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    question_id: str = Field(..., min_length=1, max_length=128)
    answer_text: str | None = Field(None, max_length=10000)


class ReviewProgress(BaseModel):
    nomination_id: str
    review_status: ReviewStatus
    session_status: ReviewStatus
    answered_count: int
