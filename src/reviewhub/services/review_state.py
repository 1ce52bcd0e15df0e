"""State reconciliation engine for nomination requests and review progress.

Request lifecycle::

    pending --accept--> accepted
    pending --reject--> rejected

Review lifecycle (accepted requests only)::

    not_started --begin--> in_progress --submit--> completed

Every write is a conditional UPDATE on the expected prior value, so the
losing side of two concurrent transitions gets ``InvalidTransitionError``
and nothing is written. Callers own the transaction and commit on success.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.errors.exceptions import InvalidTransitionError, NotFoundError
from reviewhub.models.enums import RequestStatus, ReviewStatus
from reviewhub.models.nomination import Nomination, NominationView, ReviewState
from reviewhub.repositories.external_reviewer_repo import ExternalReviewerRepository
from reviewhub.repositories.nomination_repo import NominationRepository, get_unified_review_status
from reviewhub.services.clock import utcnow
from reviewhub.services.directory import ReviewerDirectory
from reviewhub.services.fallback import with_timeout

logger = logging.getLogger(__name__)

REVIEW_TRANSITIONS: dict[ReviewStatus, ReviewStatus] = {
    ReviewStatus.NOT_STARTED: ReviewStatus.IN_PROGRESS,
    ReviewStatus.IN_PROGRESS: ReviewStatus.COMPLETED,
}


def normalize(nomination: Nomination) -> ReviewState:
    """The canonical state every reader consumes."""
    return ReviewState(
        request_status=nomination.request_status,
        review_status=get_unified_review_status(nomination),
    )


class ReviewStateEngine:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.nominations = NominationRepository(session)
        self.externals = ExternalReviewerRepository(session)

    normalize = staticmethod(normalize)

    async def get_nomination(self, nomination_id: str) -> Nomination:
        nomination = await self.nominations.get(nomination_id)
        if nomination is None:
            raise NotFoundError("Nomination", nomination_id)
        return nomination

    async def apply_request_decision(self, nomination_id: str, decision: RequestStatus | str) -> Nomination:
        """Accept or reject a pending nomination; ``review_status`` is left alone.

        Raises:
            NotFoundError: if the nomination does not exist.
            InvalidTransitionError: if the nomination is no longer pending.
        """
        decision = RequestStatus(decision)
        if decision is RequestStatus.PENDING:
            raise InvalidTransitionError(
                "A nomination cannot be moved back to pending",
                requested=decision.value,
            )

        nomination = await self.get_nomination(nomination_id)
        current = nomination.request_status
        if current.is_terminal:
            raise InvalidTransitionError(
                f"Nomination is already {current.value}",
                current=current.value,
                requested=decision.value,
            )

        applied = await with_timeout(
            "apply_request_decision",
            lambda: self.nominations.set_request_status(
                nomination_id, RequestStatus.PENDING, decision, responded_at=utcnow()
            ),
        )
        if not applied:
            raise InvalidTransitionError(
                "Nomination was decided by a concurrent request",
                current=current.value,
                requested=decision.value,
            )

        logger.info("Nomination %s request %s -> %s", nomination_id, current.value, decision.value)
        return await self.get_nomination(nomination_id)

    async def apply_review_progress(self, nomination_id: str, status: ReviewStatus | str) -> Nomination:
        """Advance review progress on the authoritative status source.

        Raises:
            NotFoundError: if the nomination, or the external reviewer an
                external nomination points at, does not exist.
            InvalidTransitionError: if the request is not accepted or the move
                is not a single forward step.
        """
        target = ReviewStatus(status)
        nomination = await self.get_nomination(nomination_id)

        if nomination.request_status is not RequestStatus.ACCEPTED:
            raise InvalidTransitionError(
                f"Review cannot progress while the request is {nomination.request_status.value}",
                current=nomination.request_status.value,
                requested=target.value,
            )

        current = get_unified_review_status(nomination)
        if REVIEW_TRANSITIONS.get(current) is not target:
            raise InvalidTransitionError(
                f"Review cannot move from {current.value} to {target.value}",
                current=current.value,
                requested=target.value,
            )

        now = utcnow()
        stamp = {"review_started_at": now} if target is ReviewStatus.IN_PROGRESS else {"review_submitted_at": now}

        if nomination.is_external:
            applied = await self._progress_external(nomination, current, target)
            if applied:
                await with_timeout(
                    "stamp_review", lambda: self.nominations.stamp_review(nomination_id, **stamp)
                )
        else:
            applied = await self._progress_internal(nomination_id, current, target, stamp)

        if not applied:
            raise InvalidTransitionError(
                "Review status was changed by a concurrent request",
                current=current.value,
                requested=target.value,
            )

        logger.info(
            "Nomination %s review %s -> %s (%s source)",
            nomination_id,
            current.value,
            target.value,
            nomination.review_source.source,
        )
        return await self.get_nomination(nomination_id)

    async def _progress_internal(
        self,
        nomination_id: str,
        current: ReviewStatus,
        target: ReviewStatus,
        stamp: dict,
    ) -> bool:
        row = await with_timeout("load_nomination", lambda: self.nominations.get_row(nomination_id))
        if row is None:
            raise NotFoundError("Nomination", nomination_id)
        if ReviewStatus.coerce(row.review_status) is not current:
            return False
        return await with_timeout(
            "apply_review_progress",
            lambda: self.nominations.set_review_status(nomination_id, row.review_status, target.value, **stamp),
        )

    async def _progress_external(self, nomination: Nomination, current: ReviewStatus, target: ReviewStatus) -> bool:
        external_id = nomination.external_reviewer_id
        row = await with_timeout("load_external_reviewer", lambda: self.externals.get(external_id))
        if row is None:
            raise NotFoundError("ExternalReviewer", external_id)
        if ReviewStatus.coerce(row.review_status) is not current:
            return False
        return await with_timeout(
            "apply_review_progress",
            lambda: self.externals.set_review_status(external_id, row.review_status, target.value),
        )


async def nomination_view(nomination: Nomination, directory: ReviewerDirectory) -> NominationView:
    """API shape of a nomination: canonical state plus the resolved reviewer."""
    return NominationView(
        nomination_id=nomination.nomination_id,
        participant_assessment_id=nomination.participant_assessment_id,
        nominated_by_id=nomination.nominated_by_id,
        is_external=nomination.is_external,
        reviewer=await directory.resolve_reviewer(nomination),
        state=normalize(nomination),
        created_at=nomination.created_at,
        responded_at=nomination.responded_at,
        review_submitted_at=nomination.review_submitted_at,
        cohort_name=nomination.cohort_name,
        assessment_name=nomination.assessment_name,
    )
