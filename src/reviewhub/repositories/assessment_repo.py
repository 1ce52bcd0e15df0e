"""Participant assessment repository and the cohort context shared by joined reads."""

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.assessment import ParticipantAssessmentRow
from reviewhub.db.models.cohort import (
    AssessmentTypeRow,
    CohortAssessmentRow,
    CohortParticipantRow,
    CohortRow,
)
from reviewhub.models.assessment import AssessmentProgress
from reviewhub.models.enums import AssessmentStatus
from reviewhub.repositories.base import BaseRepository
from reviewhub.services.clock import as_utc
from reviewhub.services.fallback import fetch_with_fallback

DEFAULT_ASSESSMENT_NAME = "Assessment"


@dataclass
class AssessmentContext:
    """Cohort-side rows hanging off one participant assessment; any may be missing."""

    assessment: ParticipantAssessmentRow | None = None
    cohort_assessment: CohortAssessmentRow | None = None
    assessment_type: AssessmentTypeRow | None = None
    cohort: CohortRow | None = None
    participant: CohortParticipantRow | None = None

    @property
    def assessment_name(self) -> str:
        if self.cohort_assessment and self.cohort_assessment.name:
            return self.cohort_assessment.name
        if self.assessment_type and self.assessment_type.name:
            return self.assessment_type.name
        return DEFAULT_ASSESSMENT_NAME

    @property
    def cohort_name(self) -> str | None:
        return self.cohort.name if self.cohort else None

    @property
    def cohort_id(self) -> str | None:
        return self.cohort.cohort_id if self.cohort else None

    @property
    def client_id(self) -> str | None:
        return self.cohort.client_id if self.cohort else None

    @property
    def participant_user_id(self) -> str | None:
        return self.participant.user_id if self.participant else None


CONTEXT_ENTITIES = (
    CohortAssessmentRow,
    AssessmentTypeRow,
    CohortRow,
    CohortParticipantRow,
)


def join_context(stmt: Select) -> Select:
    """Outer-join the cohort context onto a select that already has ParticipantAssessmentRow."""
    return (
        stmt.outerjoin(
            CohortAssessmentRow,
            CohortAssessmentRow.cohort_assessment_id == ParticipantAssessmentRow.cohort_assessment_id,
        )
        .outerjoin(
            AssessmentTypeRow,
            AssessmentTypeRow.assessment_type_id == CohortAssessmentRow.assessment_type_id,
        )
        .outerjoin(CohortRow, CohortRow.cohort_id == CohortAssessmentRow.cohort_id)
        .outerjoin(
            CohortParticipantRow,
            CohortParticipantRow.participant_id == ParticipantAssessmentRow.participant_id,
        )
    )


def assemble_progress(context: AssessmentContext) -> AssessmentProgress:
    pa = context.assessment
    return AssessmentProgress(
        participant_assessment_id=pa.participant_assessment_id,
        status=AssessmentStatus.coerce(pa.status),
        created_at=as_utc(pa.created_at),
        started_at=as_utc(pa.started_at),
        submitted_at=as_utc(pa.submitted_at),
        participant_user_id=context.participant_user_id,
        cohort_id=context.cohort_id,
        cohort_name=context.cohort_name,
        client_id=context.client_id,
        assessment_name=context.assessment_name,
        allow_reviewer_nominations=bool(pa.allow_reviewer_nominations),
    )


# Stored values that mean progress, including legacy labels
_PROGRESS_VALUES = ("in_progress", "completed", "In Progress", "In progress", "Completed")


class ParticipantAssessmentRepository(BaseRepository[ParticipantAssessmentRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ParticipantAssessmentRow)

    async def get(self, participant_assessment_id: str) -> ParticipantAssessmentRow | None:
        return await self.get_by_id("participant_assessment_id", participant_assessment_id)

    async def get_progress(self, participant_assessment_id: str) -> AssessmentProgress | None:
        """Participant assessment with its cohort context, or None if it does not exist."""
        rows = await self._fetch_progress(
            "get_participant_assessment",
            ParticipantAssessmentRow.participant_assessment_id == participant_assessment_id,
        )
        return rows[0] if rows else None

    async def list_recent_progress(self, limit: int, client_id: str | None = None) -> list[AssessmentProgress]:
        """Most recent participant assessments that have started or finished."""
        return await self._fetch_progress(
            "list_recent_assessment_progress",
            ParticipantAssessmentRow.status.in_(_PROGRESS_VALUES),
            client_id=client_id,
            limit=limit,
        )

    async def _fetch_progress(
        self,
        operation: str,
        *criteria,
        client_id: str | None = None,
        limit: int | None = None,
    ) -> list[AssessmentProgress]:
        order = (
            func.coalesce(
                ParticipantAssessmentRow.submitted_at,
                ParticipantAssessmentRow.started_at,
                ParticipantAssessmentRow.created_at,
            ).desc(),
            ParticipantAssessmentRow.participant_assessment_id.desc(),
        )

        async def joined() -> list[AssessmentProgress]:
            stmt = join_context(
                select(ParticipantAssessmentRow, *CONTEXT_ENTITIES).select_from(ParticipantAssessmentRow)
            ).where(*criteria)
            if client_id:
                stmt = stmt.where(CohortRow.client_id == client_id)
            stmt = stmt.order_by(*order).execution_options(populate_existing=True)
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await self.session.execute(stmt)
            return [
                assemble_progress(AssessmentContext(pa, ca, at, cohort, participant))
                for pa, ca, at, cohort, participant in result.all()
            ]

        async def split() -> list[AssessmentProgress]:
            stmt = select(ParticipantAssessmentRow).where(*criteria)
            if client_id:
                tenant_ids = await self.tenant_assessment_ids(client_id)
                if not tenant_ids:
                    return []
                stmt = stmt.where(ParticipantAssessmentRow.participant_assessment_id.in_(tenant_ids))
            stmt = stmt.order_by(*order).execution_options(populate_existing=True)
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = list((await self.session.execute(stmt)).scalars().all())
            contexts = await self.load_contexts(rows)
            return [assemble_progress(contexts[row.participant_assessment_id]) for row in rows]

        return await fetch_with_fallback(operation, joined, split, session=self.session)

    async def load_contexts(
        self, assessments: Iterable[ParticipantAssessmentRow]
    ) -> dict[str, AssessmentContext]:
        """Per-entity reads of the cohort context, merged by foreign key."""
        assessments = list(assessments)
        cohort_assessments = await self._by_id(
            CohortAssessmentRow,
            CohortAssessmentRow.cohort_assessment_id,
            (pa.cohort_assessment_id for pa in assessments),
        )
        participants = await self._by_id(
            CohortParticipantRow,
            CohortParticipantRow.participant_id,
            (pa.participant_id for pa in assessments),
        )
        types = await self._by_id(
            AssessmentTypeRow,
            AssessmentTypeRow.assessment_type_id,
            (ca.assessment_type_id for ca in cohort_assessments.values()),
        )
        cohorts = await self._by_id(
            CohortRow,
            CohortRow.cohort_id,
            (ca.cohort_id for ca in cohort_assessments.values()),
        )

        contexts: dict[str, AssessmentContext] = {}
        for pa in assessments:
            ca = cohort_assessments.get(pa.cohort_assessment_id)
            contexts[pa.participant_assessment_id] = AssessmentContext(
                assessment=pa,
                cohort_assessment=ca,
                assessment_type=types.get(ca.assessment_type_id) if ca else None,
                cohort=cohorts.get(ca.cohort_id) if ca else None,
                participant=participants.get(pa.participant_id),
            )
        return contexts

    async def tenant_assessment_ids(self, client_id: str) -> list[str]:
        """Participant assessment ids owned by a tenant, resolved one table at a time."""
        cohort_ids = list(
            (await self.session.execute(select(CohortRow.cohort_id).where(CohortRow.client_id == client_id)))
            .scalars()
            .all()
        )
        if not cohort_ids:
            return []
        ca_ids = list(
            (
                await self.session.execute(
                    select(CohortAssessmentRow.cohort_assessment_id).where(
                        CohortAssessmentRow.cohort_id.in_(cohort_ids)
                    )
                )
            )
            .scalars()
            .all()
        )
        if not ca_ids:
            return []
        return list(
            (
                await self.session.execute(
                    select(ParticipantAssessmentRow.participant_assessment_id).where(
                        ParticipantAssessmentRow.cohort_assessment_id.in_(ca_ids)
                    )
                )
            )
            .scalars()
            .all()
        )

    async def _by_id(self, model, column, ids) -> dict:
        wanted = {value for value in ids if value}
        if not wanted:
            return {}
        stmt = select(model).where(column.in_(wanted)).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return {getattr(row, column.key): row for row in result.scalars().all()}
