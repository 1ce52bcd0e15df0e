"""Reviewer nomination repository.

Every list read is served by a joined select and, if that fails, by
per-entity selects merged in memory. Both tiers hand their rows to
``assemble_nomination`` so callers see identical ``Nomination`` models.
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.assessment import ParticipantAssessmentRow
from reviewhub.db.models.cohort import CohortRow
from reviewhub.db.models.nomination import ExternalReviewerRow, ReviewerNominationRow
from reviewhub.models.enums import RequestStatus, ReviewStatus
from reviewhub.models.nomination import ExternalReviewStatus, InternalReviewStatus, Nomination
from reviewhub.repositories.assessment_repo import (
    CONTEXT_ENTITIES,
    AssessmentContext,
    ParticipantAssessmentRepository,
    join_context,
)
from reviewhub.repositories.base import BaseRepository
from reviewhub.services.clock import as_utc
from reviewhub.services.fallback import fetch_with_fallback

_ACTIVE_REQUEST = (RequestStatus.PENDING.value, RequestStatus.ACCEPTED.value)
_DECIDED_REQUEST = (RequestStatus.ACCEPTED.value, RequestStatus.REJECTED.value)


def _stored_review_status(value: str | None) -> ReviewStatus | None:
    return ReviewStatus.coerce(value) if value else None


def assemble_nomination(
    row: ReviewerNominationRow,
    external: ExternalReviewerRow | None,
    context: AssessmentContext,
) -> Nomination:
    """Build the unified read model from a nomination row and its related rows."""
    if row.is_external:
        source = ExternalReviewStatus(
            external_reviewer_id=row.external_reviewer_id,
            record_found=external is not None,
            status=ReviewStatus.coerce(external.review_status) if external is not None else None,
            fallback_status=_stored_review_status(row.review_status),
        )
    else:
        source = InternalReviewStatus(status=ReviewStatus.coerce(row.review_status))

    return Nomination(
        nomination_id=row.nomination_id,
        participant_assessment_id=row.participant_assessment_id,
        nominated_by_id=row.nominated_by_id,
        reviewer_id=row.reviewer_id,
        external_reviewer_id=row.external_reviewer_id,
        is_external=bool(row.is_external),
        request_status=RequestStatus(row.request_status),
        review_source=source,
        created_at=as_utc(row.created_at),
        responded_at=as_utc(row.responded_at),
        review_started_at=as_utc(row.review_started_at),
        review_submitted_at=as_utc(row.review_submitted_at),
        participant_user_id=context.participant_user_id,
        cohort_id=context.cohort_id,
        cohort_name=context.cohort_name,
        client_id=context.client_id,
        assessment_name=context.assessment_name,
    )


class NominationRepository(BaseRepository[ReviewerNominationRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ReviewerNominationRow)
        self.assessments = ParticipantAssessmentRepository(session)

    # -- single rows -------------------------------------------------------

    async def get_row(self, nomination_id: str) -> ReviewerNominationRow | None:
        """Raw row for the state engine's write path."""
        stmt = (
            select(ReviewerNominationRow)
            .where(ReviewerNominationRow.nomination_id == nomination_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, nomination_id: str) -> Nomination | None:
        rows = await self._fetch("get_nomination", ReviewerNominationRow.nomination_id == nomination_id)
        return rows[0] if rows else None

    # -- list reads --------------------------------------------------------

    async def list_for_assessment(self, participant_assessment_id: str) -> list[Nomination]:
        return await self._fetch(
            "list_nominations_for_assessment",
            ReviewerNominationRow.participant_assessment_id == participant_assessment_id,
        )

    async def list_for_assessments(self, participant_assessment_ids: Iterable[str]) -> list[Nomination]:
        ids = sorted(set(participant_assessment_ids))
        if not ids:
            return []
        return await self._fetch(
            "list_nominations_for_assessments",
            ReviewerNominationRow.participant_assessment_id.in_(ids),
        )

    async def list_for_reviewer(self, reviewer_id: str, is_external: bool) -> list[Nomination]:
        if is_external:
            criterion = ReviewerNominationRow.external_reviewer_id == reviewer_id
        else:
            criterion = ReviewerNominationRow.reviewer_id == reviewer_id
        return await self._fetch(
            "list_nominations_for_reviewer",
            criterion,
            ReviewerNominationRow.is_external.is_(is_external),
        )

    async def list_for_reviewer_identity(
        self,
        user_id: str,
        external_reviewer_ids: Iterable[str],
        request_status: RequestStatus | None = None,
    ) -> list[Nomination]:
        """Nominations targeting a person as internal member or as any of their external records."""
        criteria = [self._targets(user_id, external_reviewer_ids)]
        if request_status is not None:
            criteria.append(ReviewerNominationRow.request_status == request_status.value)
        return await self._fetch("list_nominations_for_reviewer_identity", *criteria)

    async def list_recent(self, limit: int, client_id: str | None = None) -> list[Nomination]:
        return await self._fetch("list_recent_nominations", client_id=client_id, limit=limit)

    async def list_recent_accepted(self, limit: int, client_id: str | None = None) -> list[Nomination]:
        """Accepted nominations, most recent review activity first."""
        return await self._fetch(
            "list_recent_accepted_nominations",
            ReviewerNominationRow.request_status == RequestStatus.ACCEPTED.value,
            client_id=client_id,
            limit=limit,
            order_by=(
                func.coalesce(
                    ReviewerNominationRow.review_submitted_at,
                    ReviewerNominationRow.review_started_at,
                    ReviewerNominationRow.created_at,
                ).desc(),
            ),
        )

    async def list_pending_for_reviewer(
        self,
        user_id: str,
        external_reviewer_ids: Iterable[str],
        since: datetime,
    ) -> list[Nomination]:
        """Pending requests targeting a person, created at or after ``since``."""
        return await self._fetch(
            "list_pending_requests_for_reviewer",
            self._targets(user_id, external_reviewer_ids),
            ReviewerNominationRow.request_status == RequestStatus.PENDING.value,
            ReviewerNominationRow.created_at >= since,
        )

    async def list_decided_for_nominator(self, user_id: str, since: datetime) -> list[Nomination]:
        """Nominations a person created that were accepted or rejected at or after ``since``."""
        decided_at = func.coalesce(ReviewerNominationRow.responded_at, ReviewerNominationRow.created_at)
        return await self._fetch(
            "list_decided_nominations_for_nominator",
            ReviewerNominationRow.nominated_by_id == user_id,
            ReviewerNominationRow.request_status.in_(_DECIDED_REQUEST),
            decided_at >= since,
            order_by=(decided_at.desc(),),
        )

    async def list_active_by_nominator(self, participant_assessment_id: str, user_id: str) -> list[Nomination]:
        """Pending or accepted nominations a person created for one participant assessment."""
        return await self._fetch(
            "list_active_nominations_by_nominator",
            ReviewerNominationRow.participant_assessment_id == participant_assessment_id,
            ReviewerNominationRow.nominated_by_id == user_id,
            ReviewerNominationRow.request_status.in_(_ACTIVE_REQUEST),
        )

    # -- conditional writes -----------------------------------------------

    async def set_request_status(
        self,
        nomination_id: str,
        expected: RequestStatus,
        new_status: RequestStatus,
        responded_at: datetime,
    ) -> bool:
        """Apply a request decision only if the status is still ``expected``."""
        stmt = (
            update(ReviewerNominationRow)
            .where(
                ReviewerNominationRow.nomination_id == nomination_id,
                ReviewerNominationRow.request_status == expected.value,
            )
            .values(request_status=new_status.value, responded_at=responded_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def set_review_status(
        self,
        nomination_id: str,
        expected: str | None,
        new_status: str,
        **timestamps: datetime,
    ) -> bool:
        """Move the nomination-held review status only if it still equals ``expected``."""
        stmt = (
            update(ReviewerNominationRow)
            .where(
                ReviewerNominationRow.nomination_id == nomination_id,
                ReviewerNominationRow.review_status.is_not_distinct_from(expected),
            )
            .values(review_status=new_status, **timestamps)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def stamp_review(self, nomination_id: str, **timestamps: datetime) -> None:
        """Record review timestamps without touching any status."""
        stmt = (
            update(ReviewerNominationRow)
            .where(ReviewerNominationRow.nomination_id == nomination_id)
            .values(**timestamps)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    # -- two-tier plumbing ---------------------------------------------------

    @staticmethod
    def _targets(user_id: str, external_reviewer_ids: Iterable[str]):
        internal = (ReviewerNominationRow.reviewer_id == user_id) & ReviewerNominationRow.is_external.is_(False)
        external_ids = sorted(set(external_reviewer_ids))
        if not external_ids:
            return internal
        external = ReviewerNominationRow.external_reviewer_id.in_(external_ids) & ReviewerNominationRow.is_external.is_(True)
        return or_(internal, external)

    async def _fetch(
        self,
        operation: str,
        *criteria,
        client_id: str | None = None,
        limit: int | None = None,
        order_by: tuple | None = None,
    ) -> list[Nomination]:
        order = (*(order_by or (ReviewerNominationRow.created_at.desc(),)), ReviewerNominationRow.nomination_id.desc())

        async def joined() -> list[Nomination]:
            stmt = (
                select(ReviewerNominationRow, ExternalReviewerRow, ParticipantAssessmentRow, *CONTEXT_ENTITIES)
                .select_from(ReviewerNominationRow)
                .outerjoin(
                    ExternalReviewerRow,
                    ExternalReviewerRow.external_reviewer_id == ReviewerNominationRow.external_reviewer_id,
                )
                .outerjoin(
                    ParticipantAssessmentRow,
                    ParticipantAssessmentRow.participant_assessment_id
                    == ReviewerNominationRow.participant_assessment_id,
                )
            )
            stmt = join_context(stmt).where(*criteria)
            if client_id:
                stmt = stmt.where(CohortRow.client_id == client_id)
            stmt = stmt.order_by(*order).execution_options(populate_existing=True)
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await self.session.execute(stmt)
            return [
                assemble_nomination(nom, ext, AssessmentContext(pa, ca, at, cohort, participant))
                for nom, ext, pa, ca, at, cohort, participant in result.all()
            ]

        async def split() -> list[Nomination]:
            stmt = select(ReviewerNominationRow).where(*criteria)
            if client_id:
                tenant_ids = await self.assessments.tenant_assessment_ids(client_id)
                if not tenant_ids:
                    return []
                stmt = stmt.where(ReviewerNominationRow.participant_assessment_id.in_(tenant_ids))
            stmt = stmt.order_by(*order).execution_options(populate_existing=True)
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = list((await self.session.execute(stmt)).scalars().all())
            return await self._merge(rows)

        return await fetch_with_fallback(operation, joined, split, session=self.session)

    async def _merge(self, rows: list[ReviewerNominationRow]) -> list[Nomination]:
        if not rows:
            return []
        externals = await self.assessments._by_id(
            ExternalReviewerRow,
            ExternalReviewerRow.external_reviewer_id,
            (row.external_reviewer_id for row in rows),
        )
        assessments = await self.assessments._by_id(
            ParticipantAssessmentRow,
            ParticipantAssessmentRow.participant_assessment_id,
            (row.participant_assessment_id for row in rows),
        )
        contexts = await self.assessments.load_contexts(assessments.values())
        return [
            assemble_nomination(
                row,
                externals.get(row.external_reviewer_id) if row.external_reviewer_id else None,
                contexts.get(row.participant_assessment_id, AssessmentContext()),
            )
            for row in rows
        ]


def get_unified_review_status(nomination: Nomination) -> ReviewStatus:
    """Review status from the authoritative source for this nomination.

    External nominations read the external reviewer record; the nomination's
    own copy is used only when that record is missing.
    """
    source = nomination.review_source
    if isinstance(source, InternalReviewStatus):
        return source.status
    if source.record_found:
        return source.status or ReviewStatus.NOT_STARTED
    return source.fallback_status or ReviewStatus.NOT_STARTED
