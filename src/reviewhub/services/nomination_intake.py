"""Nomination intake: inviting external reviewers and creating nominations."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.config import settings
from reviewhub.db.models.nomination import ExternalReviewerRow
from reviewhub.errors.exceptions import NotFoundError, ValidationError
from reviewhub.models.enums import RequestStatus
from reviewhub.models.nomination import NominationBatchResult, SkippedReviewer
from reviewhub.repositories.assessment_repo import ParticipantAssessmentRepository
from reviewhub.repositories.external_reviewer_repo import ExternalReviewerRepository
from reviewhub.repositories.nomination_repo import NominationRepository
from reviewhub.services.directory import ReviewerDirectory
from reviewhub.services.fallback import with_timeout
from reviewhub.services.id_generator import EXTERNAL_REVIEWER, NOMINATION, generate_id
from reviewhub.services.review_state import nomination_view

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Lower-case and validate an invitee email.

    Raises:
        ValidationError: if the address is malformed or outside the allowed domain.
    """
    cleaned = (email or "").strip().lower()
    local, _, domain = cleaned.partition("@")
    if not local or not domain or "." not in domain or " " in cleaned:
        raise ValidationError(f"Invalid email address '{email}'")
    allowed = settings.external_email_domain
    if allowed and domain != allowed.strip().lower():
        raise ValidationError(f"External reviewers must use an @{allowed} address", {"email": cleaned})
    return cleaned


class NominationIntake:
    def __init__(self, session: AsyncSession, directory: ReviewerDirectory | None = None):
        self.session = session
        self.nominations = NominationRepository(session)
        self.externals = ExternalReviewerRepository(session)
        self.assessments = ParticipantAssessmentRepository(session)
        self.directory = directory or ReviewerDirectory(session)

    async def invite_external_reviewer(
        self,
        email: str,
        client_id: str,
        invited_by: str | None = None,
        name: str | None = None,
    ) -> ExternalReviewerRow:
        """Find or create the tenant's external reviewer record for an email."""
        email = normalize_email(email)
        existing = await with_timeout(
            "find_external_reviewer", lambda: self.externals.list_by_email(email, client_id=client_id)
        )
        if existing:
            return existing[0]

        row = await with_timeout(
            "create_external_reviewer",
            lambda: self.externals.create(
                external_reviewer_id=generate_id(EXTERNAL_REVIEWER),
                client_id=client_id,
                email=email,
                name=name,
                invited_by=invited_by,
            ),
        )
        logger.info("Invited external reviewer %s for client %s", row.external_reviewer_id, client_id)
        return row

    async def nominate(
        self,
        participant_assessment_id: str,
        nominated_by_id: str,
        reviewer_ids: list[str] | None = None,
        external_emails: list[str] | None = None,
    ) -> NominationBatchResult:
        """Create pending nominations for a participant assessment.

        Duplicates of the nominator's active nominations and internal
        self-nominations are skipped. Malformed emails are reported in
        ``errors``. Nothing is written if the batch would exceed the
        active-nomination cap.

        Raises:
            NotFoundError: if the participant assessment does not exist.
            ValidationError: if nominations are disabled or the cap is exceeded.
        """
        progress = await self.assessments.get_progress(participant_assessment_id)
        if progress is None:
            raise NotFoundError("ParticipantAssessment", participant_assessment_id)
        if not progress.allow_reviewer_nominations:
            raise ValidationError("Reviewer nominations are not enabled for this assessment")
        if not progress.client_id:
            raise ValidationError("Assessment is not attached to a client")

        result = NominationBatchResult()
        active = await self.nominations.list_active_by_nominator(participant_assessment_id, nominated_by_id)
        active_internal = {n.reviewer_id for n in active if not n.is_external}
        active_external = {n.external_reviewer_id for n in active if n.is_external}

        internal: list[str] = []
        for reviewer_id in dict.fromkeys(reviewer_ids or []):
            if reviewer_id == nominated_by_id:
                result.skipped.append(SkippedReviewer(reviewer=reviewer_id, reason="self_nomination"))
            elif reviewer_id in active_internal:
                result.skipped.append(SkippedReviewer(reviewer=reviewer_id, reason="already_nominated"))
            elif await self.directory.member(reviewer_id) is None:
                result.errors.append(SkippedReviewer(reviewer=reviewer_id, reason="unknown_member"))
            else:
                internal.append(reviewer_id)

        external: list[str] = []
        for raw in external_emails or []:
            try:
                email = normalize_email(raw)
            except ValidationError as exc:
                result.errors.append(SkippedReviewer(reviewer=raw, reason=exc.message))
                continue
            if email in external:
                continue
            known = await with_timeout(
                "find_external_reviewer",
                lambda: self.externals.list_by_email(email, client_id=progress.client_id),
            )
            if known and known[0].external_reviewer_id in active_external:
                result.skipped.append(SkippedReviewer(reviewer=email, reason="already_nominated"))
                continue
            external.append(email)

        requested = len(internal) + len(external)
        if len(active) + requested > settings.max_active_nominations:
            raise ValidationError(
                f"At most {settings.max_active_nominations} active nominations are allowed",
                {"active": len(active), "requested": requested},
            )

        created_ids: list[str] = []
        for reviewer_id in internal:
            created_ids.append(await self._create(participant_assessment_id, nominated_by_id, reviewer_id=reviewer_id))
        for email in external:
            invitee = await self.invite_external_reviewer(email, progress.client_id, invited_by=nominated_by_id)
            created_ids.append(
                await self._create(
                    participant_assessment_id,
                    nominated_by_id,
                    external_reviewer_id=invitee.external_reviewer_id,
                )
            )

        for nomination_id in created_ids:
            nomination = await self.nominations.get(nomination_id)
            result.created.append(await nomination_view(nomination, self.directory))

        logger.info(
            "Nominations for %s by %s: %d created, %d skipped, %d errors",
            participant_assessment_id,
            nominated_by_id,
            len(result.created),
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def _create(
        self,
        participant_assessment_id: str,
        nominated_by_id: str,
        reviewer_id: str | None = None,
        external_reviewer_id: str | None = None,
    ) -> str:
        nomination_id = generate_id(NOMINATION)
        await with_timeout(
            "create_nomination",
            lambda: self.nominations.create(
                nomination_id=nomination_id,
                participant_assessment_id=participant_assessment_id,
                nominated_by_id=nominated_by_id,
                reviewer_id=reviewer_id,
                external_reviewer_id=external_reviewer_id,
                is_external=external_reviewer_id is not None,
                request_status=RequestStatus.PENDING.value,
            ),
        )
        return nomination_id
