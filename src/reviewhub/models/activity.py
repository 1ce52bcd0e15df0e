"""Pydantic models for the reconstructed activity feed."""

from datetime import datetime

from pydantic import BaseModel, Field

from reviewhub.models.common import SourceError
from reviewhub.models.enums import ActivityKind


class ActivityEvent(BaseModel):
    """A display-ready activity record derived from mutable rows."""

    id: str
    kind: ActivityKind
    actor_name: str
    actor_email: str
    detail_text: str
    timestamp: datetime
    cohort_name: str | None = None
    assessment_name: str | None = None


class ActivityFeed(BaseModel):
    events: list[ActivityEvent] = Field(default_factory=list)
    errors: list[SourceError] = Field(default_factory=list)
