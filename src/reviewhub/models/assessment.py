"""Pydantic read model for participant assessment progress."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from reviewhub.models.enums import AssessmentStatus


class AssessmentProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    participant_assessment_id: str
    status: AssessmentStatus
    created_at: datetime
    started_at: datetime | None = None
    submitted_at: datetime | None = None
    participant_user_id: str | None = None
    cohort_id: str | None = None
    cohort_name: str | None = None
    client_id: str | None = None
    assessment_name: str = "Assessment"
    allow_reviewer_nominations: bool = True
