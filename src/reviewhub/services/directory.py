"""Reviewer directory: turns member and external reviewer ids into display-safe descriptors.

A missing record never fails the caller; it resolves to an "Unknown"
descriptor with ``found=False``.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.nomination import ExternalReviewerRow
from reviewhub.db.models.tenant import ClientUserRow
from reviewhub.errors.exceptions import AmbiguousReviewerIdentityError
from reviewhub.models.enums import ReviewerKind
from reviewhub.models.nomination import Nomination, PersonDescriptor, ReviewerDescriptor
from reviewhub.repositories.external_reviewer_repo import ExternalReviewerRepository
from reviewhub.repositories.user_repo import ClientUserRepository
from reviewhub.services.fallback import with_timeout

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"


class ReviewerDirectory:
    """Per-request identity resolver with a small lookup cache."""

    def __init__(self, session: AsyncSession):
        self.users = ClientUserRepository(session)
        self.externals = ExternalReviewerRepository(session)
        self._members: dict[str, ClientUserRow | None] = {}
        self._external: dict[str, ExternalReviewerRow | None] = {}

    async def prefetch(self, user_ids: Iterable[str | None] = (), external_ids: Iterable[str | None] = ()) -> None:
        """Batch-load members and external reviewers into the cache."""
        missing_users = {uid for uid in user_ids if uid and uid not in self._members}
        if missing_users:
            found = await with_timeout("prefetch_members", lambda: self.users.get_many_by_id(missing_users))
            for uid in missing_users:
                self._members[uid] = found.get(uid)

        missing_ext = {eid for eid in external_ids if eid and eid not in self._external}
        if missing_ext:
            found = await with_timeout(
                "prefetch_external_reviewers", lambda: self.externals.get_many_by_id(missing_ext)
            )
            for eid in missing_ext:
                self._external[eid] = found.get(eid)

    async def prefetch_for(self, nominations: Iterable[Nomination]) -> None:
        nominations = list(nominations)
        await self.prefetch(
            user_ids=[n.nominated_by_id for n in nominations]
            + [n.reviewer_id for n in nominations]
            + [n.participant_user_id for n in nominations],
            external_ids=[n.external_reviewer_id for n in nominations],
        )

    async def member(self, user_id: str | None) -> ClientUserRow | None:
        if not user_id:
            return None
        if user_id not in self._members:
            await self.prefetch(user_ids=[user_id])
        return self._members.get(user_id)

    async def external_reviewer(self, external_reviewer_id: str | None) -> ExternalReviewerRow | None:
        if not external_reviewer_id:
            return None
        if external_reviewer_id not in self._external:
            await self.prefetch(external_ids=[external_reviewer_id])
        return self._external.get(external_reviewer_id)

    async def resolve_person(self, user_id: str | None) -> PersonDescriptor:
        row = await self.member(user_id)
        if row is None:
            return PersonDescriptor(user_id=user_id, name=UNKNOWN_NAME, found=False)
        return PersonDescriptor(user_id=row.user_id, name=row.name, surname=row.surname, email=row.email or "")

    async def resolve_reviewer(self, nomination: Nomination) -> ReviewerDescriptor:
        """Describe whoever a nomination targets, internal member or external invitee."""
        if not nomination.is_external:
            row = await self.member(nomination.reviewer_id)
            if row is None:
                return ReviewerDescriptor(
                    user_id=nomination.reviewer_id,
                    name=UNKNOWN_NAME,
                    kind=ReviewerKind.INTERNAL,
                    found=False,
                )
            return ReviewerDescriptor(
                user_id=row.user_id,
                name=row.name,
                surname=row.surname,
                email=row.email or "",
                kind=ReviewerKind.INTERNAL,
            )

        ext = await self.external_reviewer(nomination.external_reviewer_id)
        if ext is None:
            return ReviewerDescriptor(
                user_id=nomination.external_reviewer_id,
                name=UNKNOWN_NAME,
                kind=ReviewerKind.EXTERNAL,
                found=False,
            )
        return ReviewerDescriptor(
            user_id=ext.external_reviewer_id,
            name=ext.name,
            email=ext.email,
            kind=ReviewerKind.EXTERNAL,
        )

    async def external_identities(self, email: str | None) -> list[ExternalReviewerRow]:
        """Every external reviewer record registered under an email, across tenants."""
        if not email:
            return []
        rows = await with_timeout("list_external_identities", lambda: self.externals.list_by_email(email))
        for row in rows:
            self._external[row.external_reviewer_id] = row
        return rows

    async def resolve_actor_by_email(self, email: str, client_id: str | None = None) -> ExternalReviewerRow | None:
        """The single external reviewer record for an email, or None.

        Raises:
            AmbiguousReviewerIdentityError: if more than one record matches.
        """
        if client_id:
            rows = await with_timeout(
                "resolve_actor_by_email", lambda: self.externals.list_by_email(email, client_id=client_id)
            )
        else:
            rows = await self.external_identities(email)
        if len(rows) > 1:
            logger.info("Email %s matches %d external reviewer records", email, len(rows))
            raise AmbiguousReviewerIdentityError(email, [row.external_reviewer_id for row in rows])
        return rows[0] if rows else None

    async def is_self_nomination(
        self,
        nomination: Nomination,
        person_id: str,
        person_email: str | None = None,
    ) -> bool:
        """True when a person nominated themselves as an external reviewer."""
        if not nomination.is_external or nomination.nominated_by_id != person_id:
            return False
        if not person_email:
            return True
        ext = await self.external_reviewer(nomination.external_reviewer_id)
        if ext is None:
            return True
        return ext.email.strip().lower() == person_email.strip().lower()
