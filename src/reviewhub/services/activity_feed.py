"""Activity feed reconstructed from nomination and assessment rows.

There is no event log. Each source pulls its most recent rows, classifies
them by their current status and stamps the event with the matching row
timestamp. A status that changed twice only shows its latest value.
"""

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.config import settings
from reviewhub.errors.exceptions import StorageUnavailableError
from reviewhub.models.activity import ActivityEvent, ActivityFeed
from reviewhub.models.common import SourceError
from reviewhub.models.enums import ActivityKind, AssessmentStatus, RequestStatus, ReviewStatus
from reviewhub.models.nomination import Nomination
from reviewhub.repositories.assessment_repo import ParticipantAssessmentRepository
from reviewhub.repositories.nomination_repo import NominationRepository
from reviewhub.services.directory import ReviewerDirectory
from reviewhub.services.review_state import normalize

logger = logging.getLogger(__name__)

Viewer = dict
SourceCollector = Callable[[int, str | None, Viewer | None], Awaitable[list[ActivityEvent]]]


class ActivityFeedBuilder:
    def __init__(self, session: AsyncSession, directory: ReviewerDirectory | None = None):
        self.nominations = NominationRepository(session)
        self.assessments = ParticipantAssessmentRepository(session)
        self.directory = directory or ReviewerDirectory(session)

    async def build_feed(
        self,
        window_size: int | None = None,
        output_limit: int | None = None,
        client_id: str | None = None,
        viewer: Viewer | None = None,
    ) -> ActivityFeed:
        """Merge the three activity sources into one time-ordered, bounded feed.

        A source whose storage is unavailable contributes no events and an
        entry in ``errors``; the others are still returned.
        """
        window = window_size or settings.feed_window_size
        limit = settings.feed_output_limit if output_limit is None else output_limit

        sources: list[tuple[str, SourceCollector]] = [
            ("nominations", self._request_events),
            ("assessments", self._assessment_events),
            ("reviews", self._review_events),
        ]

        events: list[ActivityEvent] = []
        errors: list[SourceError] = []
        for source, collect in sources:
            try:
                events.extend(await collect(window, client_id, viewer))
            except StorageUnavailableError as exc:
                logger.warning("Activity source %s unavailable: %s", source, exc.message)
                errors.append(SourceError(source=source, code=exc.code, message=exc.message))

        # sorted() is stable with reverse=True, so ties keep source order
        ordered = sorted(events, key=lambda event: event.timestamp, reverse=True)
        return ActivityFeed(events=ordered[: max(limit, 0)], errors=errors)

    # ---- (a) nomination requests ----

    async def _request_events(self, window: int, client_id: str | None, viewer: Viewer | None) -> list[ActivityEvent]:
        nominations = await self.nominations.list_recent(window, client_id=client_id)
        await self.directory.prefetch_for(nominations)

        events = []
        for nomination in nominations:
            if nomination.request_status is RequestStatus.PENDING:
                if viewer and await self.directory.is_self_nomination(
                    nomination, viewer.get("sub", ""), viewer.get("email")
                ):
                    continue
                events.append(await self._requested(nomination))
            else:
                events.append(await self._decided(nomination))
        return events

    async def _requested(self, nomination: Nomination) -> ActivityEvent:
        nominator = await self.directory.resolve_person(nomination.nominated_by_id)
        reviewer = await self.directory.resolve_reviewer(nomination)
        return _event(
            ActivityKind.NOMINATION_REQUESTED,
            nomination.nomination_id,
            nominator,
            f"{nominator.display_name} nominated {reviewer.display_name} to review {nomination.assessment_name}",
            nomination.created_at,
            nomination,
        )

    async def _decided(self, nomination: Nomination) -> ActivityEvent:
        reviewer = await self.directory.resolve_reviewer(nomination)
        nominator = await self.directory.resolve_person(nomination.nominated_by_id)
        if nomination.request_status is RequestStatus.ACCEPTED:
            kind, verb = ActivityKind.NOMINATION_ACCEPTED, "accepted"
        else:
            kind, verb = ActivityKind.NOMINATION_REJECTED, "rejected"
        return _event(
            kind,
            nomination.nomination_id,
            reviewer,
            f"{reviewer.display_name} {verb} the review request from {nominator.display_name}"
            f" for {nomination.assessment_name}",
            nomination.responded_at or nomination.created_at,
            nomination,
        )

    # ---- (b) assessment progress ----

    async def _assessment_events(self, window: int, client_id: str | None, viewer: Viewer | None) -> list[ActivityEvent]:
        progress = await self.assessments.list_recent_progress(window, client_id=client_id)
        await self.directory.prefetch(user_ids=[p.participant_user_id for p in progress])

        events = []
        for item in progress:
            participant = await self.directory.resolve_person(item.participant_user_id)
            if item.status is AssessmentStatus.COMPLETED:
                kind, verb, at = ActivityKind.ASSESSMENT_COMPLETED, "completed", item.submitted_at
            elif item.status is AssessmentStatus.IN_PROGRESS:
                kind, verb, at = ActivityKind.ASSESSMENT_STARTED, "started", item.started_at
            else:
                continue
            events.append(
                ActivityEvent(
                    id=f"{kind.value}_{item.participant_assessment_id}",
                    kind=kind,
                    actor_name=participant.display_name,
                    actor_email=participant.email,
                    detail_text=f"{participant.display_name} {verb} {item.assessment_name}",
                    timestamp=at or item.created_at,
                    cohort_name=item.cohort_name,
                    assessment_name=item.assessment_name,
                )
            )
        return events

    # ---- (c) review progress ----

    async def _review_events(self, window: int, client_id: str | None, viewer: Viewer | None) -> list[ActivityEvent]:
        nominations = await self.nominations.list_recent_accepted(window, client_id=client_id)
        await self.directory.prefetch_for(nominations)

        events = []
        for nomination in nominations:
            state = normalize(nomination)
            if state.review_status is ReviewStatus.COMPLETED:
                kind, verb, at = ActivityKind.REVIEW_COMPLETED, "completed", nomination.review_submitted_at
            elif state.review_status is ReviewStatus.IN_PROGRESS:
                kind, verb, at = ActivityKind.REVIEW_STARTED, "started", nomination.review_started_at
            else:
                continue
            reviewer = await self.directory.resolve_reviewer(nomination)
            participant = await self.directory.resolve_person(nomination.participant_user_id)
            events.append(
                _event(
                    kind,
                    nomination.nomination_id,
                    reviewer,
                    f"{reviewer.display_name} {verb} a review of {participant.display_name}"
                    f" for {nomination.assessment_name}",
                    at or nomination.created_at,
                    nomination,
                )
            )
        return events


def _event(kind: ActivityKind, row_id: str, actor, detail: str, timestamp, nomination: Nomination) -> ActivityEvent:
    return ActivityEvent(
        id=f"{kind.value}_{row_id}",
        kind=kind,
        actor_name=actor.display_name,
        actor_email=actor.email,
        detail_text=detail,
        timestamp=timestamp,
        cohort_name=nomination.cohort_name,
        assessment_name=nomination.assessment_name,
    )
