"""String enums for nomination, review and activity states."""

from enum import StrEnum


def _label_key(value: str) -> str:
    # "In Progress" / "in-progress" / "in_progress" all collapse to "in_progress"
    return value.strip().lower().replace("-", "_").replace(" ", "_")


class RequestStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class ReviewStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def coerce(cls, value: "str | ReviewStatus | None") -> "ReviewStatus":
        """Read a stored status, accepting legacy display labels.

        An absent value means no progress has been recorded.
        """
        if value is None or value == "":
            return cls.NOT_STARTED
        return cls(_label_key(str(value)))


class AssessmentStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def coerce(cls, value: "str | AssessmentStatus | None") -> "AssessmentStatus":
        if value is None or value == "":
            return cls.NOT_STARTED
        return cls(_label_key(str(value)))


class ReviewerKind(StrEnum):
    INTERNAL = "internal"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


class ActivityKind(StrEnum):
    NOMINATION_REQUESTED = "nomination_requested"
    NOMINATION_ACCEPTED = "nomination_accepted"
    NOMINATION_REJECTED = "nomination_rejected"
    ASSESSMENT_STARTED = "assessment_started"
    ASSESSMENT_COMPLETED = "assessment_completed"
    REVIEW_STARTED = "review_started"
    REVIEW_COMPLETED = "review_completed"


class NotificationType(StrEnum):
    REVIEW_REQUEST = "review_request"
    NOMINATION_ACCEPTED = "nomination_accepted"
    NOMINATION_REJECTED = "nomination_rejected"
