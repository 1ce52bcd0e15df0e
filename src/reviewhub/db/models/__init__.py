"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from reviewhub.db.models.tenant import ClientRow, ClientUserRow
from reviewhub.db.models.cohort import (
    AssessmentTypeRow,
    CohortAssessmentRow,
    CohortParticipantRow,
    CohortRow,
)
from reviewhub.db.models.assessment import ParticipantAssessmentRow
from reviewhub.db.models.nomination import ExternalReviewerRow, ReviewerNominationRow
from reviewhub.db.models.response import ReviewResponseRow, ReviewResponseSessionRow
from reviewhub.db.models.watermark import NotificationWatermarkRow

__all__ = [
    "ClientRow",
    "ClientUserRow",
    "CohortRow",
    "CohortParticipantRow",
    "AssessmentTypeRow",
    "CohortAssessmentRow",
    "ParticipantAssessmentRow",
    "ExternalReviewerRow",
    "ReviewerNominationRow",
    "ReviewResponseSessionRow",
    "ReviewResponseRow",
    "NotificationWatermarkRow",
]
