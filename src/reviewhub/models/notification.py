"""Pydantic models for notifications and the per-user watermark."""

from datetime import datetime

from pydantic import BaseModel, Field

from reviewhub.models.common import SourceError
from reviewhub.models.enums import NotificationType
from reviewhub.models.nomination import PersonDescriptor


class NotificationWatermark(BaseModel):
    user_id: str
    session_start: datetime
    last_checked: datetime | None = None

    @property
    def count_from(self) -> datetime:
        return self.last_checked or self.session_start


class Notification(BaseModel):
    id: str
    type: NotificationType
    message: str
    nomination_id: str
    created_at: datetime
    unseen: bool = False
    counterpart: PersonDescriptor | None = None
    assessment_name: str | None = None


class NotificationList(BaseModel):
    notifications: list[Notification] = Field(default_factory=list)
    session_start: datetime
    errors: list[SourceError] = Field(default_factory=list)


class UnseenCount(BaseModel):
    count: int
    since: datetime
    errors: list[SourceError] = Field(default_factory=list)
