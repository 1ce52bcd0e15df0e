"""Per-user notification watermark, unseen counts and the notification list.

The watermark lives server-side, one row per user:

- ``session_start`` is fixed when the user logs in (``reset_session``) or on
  first access, and bounds what the list view shows.
- ``last_checked`` moves on every list view (``mark_checked``) and only
  bounds the badge count. Listed messages stay listed.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.errors.exceptions import StorageUnavailableError
from reviewhub.models.common import SourceError
from reviewhub.models.enums import NotificationType, RequestStatus
from reviewhub.models.nomination import Nomination, PersonDescriptor
from reviewhub.models.notification import Notification, NotificationList, NotificationWatermark, UnseenCount
from reviewhub.repositories.nomination_repo import NominationRepository
from reviewhub.repositories.watermark_repo import WatermarkRepository
from reviewhub.services.clock import as_utc, utcnow
from reviewhub.services.directory import ReviewerDirectory
from reviewhub.services.fallback import with_timeout

logger = logging.getLogger(__name__)


def decided_at(nomination: Nomination) -> datetime:
    return nomination.responded_at or nomination.created_at


def _to_model(row) -> NotificationWatermark:
    return NotificationWatermark(
        user_id=row.user_id,
        session_start=as_utc(row.session_start),
        last_checked=as_utc(row.last_checked),
    )


def _source_error(source: str, exc: StorageUnavailableError) -> SourceError:
    return SourceError(source=source, code=exc.code, message=exc.message)


class NotificationWatermarkService:
    def __init__(self, session: AsyncSession, directory: ReviewerDirectory | None = None):
        self.watermarks = WatermarkRepository(session)
        self.nominations = NominationRepository(session)
        self.directory = directory or ReviewerDirectory(session)

    # ---- watermark ----

    async def get_watermark(self, user_id: str) -> NotificationWatermark:
        """The user's watermark, starting a session now if none exists."""
        row = await with_timeout("get_watermark", lambda: self.watermarks.get_or_create(user_id, utcnow()))
        return _to_model(row)

    async def count_from_time(self, user_id: str) -> datetime:
        """Lower bound for "new": ``last_checked`` if set, else ``session_start``."""
        return (await self.get_watermark(user_id)).count_from

    async def mark_checked(self, user_id: str) -> NotificationWatermark:
        row = await with_timeout("mark_checked", lambda: self.watermarks.set_last_checked(user_id, utcnow()))
        logger.info("Notifications checked by %s", user_id)
        return _to_model(row)

    async def reset_session(self, user_id: str) -> NotificationWatermark:
        row = await with_timeout("reset_session", lambda: self.watermarks.start_session(user_id, utcnow()))
        logger.info("Notification session reset for %s", user_id)
        return _to_model(row)

    # ---- counts ----

    async def compute_unseen_count(self, user: dict) -> UnseenCount:
        """Pending requests targeting the user plus decisions on the user's own
        nominations, strictly after the watermark.

        Self-nominated external requests never count. A failing read
        contributes zero and attaches its error.
        """
        user_id = user["sub"]
        errors: list[SourceError] = []
        try:
            since = await self.count_from_time(user_id)
        except StorageUnavailableError as exc:
            return UnseenCount(count=0, since=utcnow(), errors=[_source_error("watermark", exc)])

        count = 0
        try:
            requests = await self._incoming_requests(user, since)
            count += sum(1 for nomination in requests if nomination.created_at > since)
        except StorageUnavailableError as exc:
            logger.warning("Unseen request count degraded for %s: %s", user_id, exc.message)
            errors.append(_source_error("review_requests", exc))

        try:
            decided = await self.nominations.list_decided_for_nominator(user_id, since)
            count += sum(1 for nomination in decided if decided_at(nomination) > since)
        except StorageUnavailableError as exc:
            logger.warning("Unseen decision count degraded for %s: %s", user_id, exc.message)
            errors.append(_source_error("status_changes", exc))

        return UnseenCount(count=count, since=since, errors=errors)

    # ---- list view ----

    async def list_notifications(self, user: dict) -> NotificationList:
        """Everything since ``session_start``, newest first, flagged ``unseen``
        when newer than the watermark. Does not move the watermark."""
        user_id = user["sub"]
        try:
            watermark = await self.get_watermark(user_id)
        except StorageUnavailableError as exc:
            return NotificationList(session_start=utcnow(), errors=[_source_error("watermark", exc)])

        since = watermark.count_from
        notifications: list[Notification] = []
        errors: list[SourceError] = []

        try:
            for nomination in await self._incoming_requests(user, watermark.session_start):
                notifications.append(await self._review_request(nomination, since))
        except StorageUnavailableError as exc:
            errors.append(_source_error("review_requests", exc))

        try:
            decided = await self.nominations.list_decided_for_nominator(user_id, watermark.session_start)
            await self.directory.prefetch_for(decided)
            for nomination in decided:
                notifications.append(await self._status_change(nomination, since))
        except StorageUnavailableError as exc:
            errors.append(_source_error("status_changes", exc))

        notifications.sort(key=lambda item: item.created_at, reverse=True)
        return NotificationList(notifications=notifications, session_start=watermark.session_start, errors=errors)

    # ---- helpers ----

    async def _incoming_requests(self, user: dict, since: datetime) -> list[Nomination]:
        """Pending requests targeting the user, minus self-nominations."""
        user_id, email = user["sub"], user.get("email")
        identities = await self.directory.external_identities(email)
        pending = await self.nominations.list_pending_for_reviewer(
            user_id, [row.external_reviewer_id for row in identities], since
        )
        await self.directory.prefetch_for(pending)
        incoming = []
        for nomination in pending:
            if await self.directory.is_self_nomination(nomination, user_id, email):
                continue
            incoming.append(nomination)
        return incoming

    async def _review_request(self, nomination: Nomination, since: datetime) -> Notification:
        nominator = await self.directory.resolve_person(nomination.nominated_by_id)
        return Notification(
            id=f"review_request_{nomination.nomination_id}",
            type=NotificationType.REVIEW_REQUEST,
            message=f"{nominator.display_name} has requested a review nomination from you",
            nomination_id=nomination.nomination_id,
            created_at=nomination.created_at,
            unseen=nomination.created_at > since,
            counterpart=nominator if nominator.found else None,
            assessment_name=nomination.assessment_name,
        )

    async def _status_change(self, nomination: Nomination, since: datetime) -> Notification:
        reviewer = await self.directory.resolve_reviewer(nomination)
        accepted = nomination.request_status is RequestStatus.ACCEPTED
        at = decided_at(nomination)
        return Notification(
            id=f"status_change_{nomination.nomination_id}",
            type=NotificationType.NOMINATION_ACCEPTED if accepted else NotificationType.NOMINATION_REJECTED,
            message=(
                f"{reviewer.display_name} {'accepted' if accepted else 'rejected'}"
                f" your review request for {nomination.assessment_name}"
            ),
            nomination_id=nomination.nomination_id,
            created_at=at,
            unseen=at > since,
            counterpart=PersonDescriptor(**reviewer.model_dump(exclude={"kind"})) if reviewer.found else None,
            assessment_name=nomination.assessment_name,
        )
