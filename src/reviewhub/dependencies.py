"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.errors.exceptions import AuthenticationError
from reviewhub.services.activity_feed import ActivityFeedBuilder
from reviewhub.services.directory import ReviewerDirectory
from reviewhub.services.nomination_intake import NominationIntake
from reviewhub.services.notifications import NotificationWatermarkService
from reviewhub.services.questionnaire import ReviewQuestionnaire
from reviewhub.services.review_state import ReviewStateEngine


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


async def get_current_user(request: Request) -> dict:
    """Return the authenticated ``{sub, email, client_id}`` dict or raise 401."""
    user = getattr(request.state, "user", {})
    if "_auth_error" in user:
        raise AuthenticationError(user["_auth_error"])
    if not user or user.get("sub") in ("anonymous", ""):
        raise AuthenticationError("Authentication required")
    return user


# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]


def get_directory(db: DBSession) -> ReviewerDirectory:
    return ReviewerDirectory(db)


def get_state_engine(db: DBSession) -> ReviewStateEngine:
    return ReviewStateEngine(db)


def get_feed_builder(db: DBSession) -> ActivityFeedBuilder:
    return ActivityFeedBuilder(db)


def get_notification_service(db: DBSession) -> NotificationWatermarkService:
    return NotificationWatermarkService(db)


def get_intake(db: DBSession) -> NominationIntake:
    return NominationIntake(db)


def get_questionnaire(db: DBSession) -> ReviewQuestionnaire:
    return ReviewQuestionnaire(db)


Directory = Annotated[ReviewerDirectory, Depends(get_directory)]
StateEngine = Annotated[ReviewStateEngine, Depends(get_state_engine)]
FeedBuilder = Annotated[ActivityFeedBuilder, Depends(get_feed_builder)]
Notifications = Annotated[NotificationWatermarkService, Depends(get_notification_service)]
Intake = Annotated[NominationIntake, Depends(get_intake)]
Questionnaire = Annotated[ReviewQuestionnaire, Depends(get_questionnaire)]
