"""Tests for nomination intake and external reviewer invitations.

Covers:
- Internal and external nominations are created pending
- Internal self-nominations and active duplicates are skipped
- Unknown members and malformed emails are reported as errors
- The active-nomination cap rejects the whole batch
- Restricted external email domain
- Disabled nominations and unknown assessments
- Invitations reuse an existing tenant record
"""

import pytest

from reviewhub.config import settings
from reviewhub.errors.exceptions import NotFoundError, ValidationError
from reviewhub.models.enums import RequestStatus, ReviewerKind, ReviewStatus
from reviewhub.repositories.assessment_repo import ParticipantAssessmentRepository
from reviewhub.repositories.nomination_repo import NominationRepository
from reviewhub.services.nomination_intake import NominationIntake, normalize_email


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_creates_internal_and_external_nominations(db_session, world):
    result = await NominationIntake(db_session).nominate(
        "pa_alice", "usr_alice", reviewer_ids=["usr_bob"], external_emails=["Erin@Outside.test"]
    )
    await db_session.commit()

    assert result.skipped == [] and result.errors == []
    internal, external = result.created
    assert internal.reviewer.kind is ReviewerKind.INTERNAL
    assert internal.reviewer.display_name == "Bob Jones"
    assert external.reviewer.kind is ReviewerKind.EXTERNAL
    assert external.reviewer.email == "erin@outside.test"
    for view in result.created:
        assert view.nomination_id.startswith("nom_")
        assert view.state.request_status is RequestStatus.PENDING
        assert view.state.review_status is ReviewStatus.NOT_STARTED
        assert view.assessment_name == "Leadership 360"

    stored = await NominationRepository(db_session).list_for_assessment("pa_alice")
    assert len(stored) == 2


@pytest.mark.asyncio
async def test_skips_self_and_duplicates(db_session, world, make_external, make_nomination):
    await make_external("extr_erin", "erin@outside.test")
    await make_nomination("nom_bob", reviewer_id="usr_bob")
    await make_nomination("nom_erin", external_reviewer_id="extr_erin", request_status="accepted")

    result = await NominationIntake(db_session).nominate(
        "pa_alice",
        "usr_alice",
        reviewer_ids=["usr_alice", "usr_bob", "usr_carol", "usr_carol"],
        external_emails=["erin@outside.test"],
    )

    assert {(s.reviewer, s.reason) for s in result.skipped} == {
        ("usr_alice", "self_nomination"),
        ("usr_bob", "already_nominated"),
        ("erin@outside.test", "already_nominated"),
    }
    assert [v.reviewer.user_id for v in result.created] == ["usr_carol"]


@pytest.mark.asyncio
async def test_rejected_nomination_can_be_renominated(db_session, world, make_nomination):
    await make_nomination("nom_old", reviewer_id="usr_bob", request_status="rejected")
    result = await NominationIntake(db_session).nominate("pa_alice", "usr_alice", reviewer_ids=["usr_bob"])
    assert len(result.created) == 1


@pytest.mark.asyncio
async def test_external_self_nomination_is_allowed(db_session, world):
    result = await NominationIntake(db_session).nominate(
        "pa_alice", "usr_alice", external_emails=["alice@acme.test"]
    )
    assert len(result.created) == 1
    assert result.created[0].is_external


@pytest.mark.asyncio
async def test_reports_unknown_members_and_bad_emails(db_session, world):
    result = await NominationIntake(db_session).nominate(
        "pa_alice", "usr_alice", reviewer_ids=["usr_ghost"], external_emails=["not-an-email"]
    )
    assert result.created == []
    assert result.errors[0].reviewer == "usr_ghost"
    assert result.errors[0].reason == "unknown_member"
    assert result.errors[1].reviewer == "not-an-email"


@pytest.mark.asyncio
async def test_cap_rejects_whole_batch(db_session, world, make_nomination, monkeypatch):
    monkeypatch.setattr(settings, "max_active_nominations", 2)
    await make_nomination("nom_bob", reviewer_id="usr_bob")

    with pytest.raises(ValidationError) as exc_info:
        await NominationIntake(db_session).nominate(
            "pa_alice", "usr_alice", reviewer_ids=["usr_carol"], external_emails=["erin@outside.test"]
        )
    assert exc_info.value.details == {"active": 1, "requested": 2}

    stored = await NominationRepository(db_session).list_for_assessment("pa_alice")
    assert [n.nomination_id for n in stored] == ["nom_bob"]


@pytest.mark.asyncio
async def test_restricted_external_domain(db_session, world, monkeypatch):
    monkeypatch.setattr(settings, "external_email_domain", "partner.test")

    assert normalize_email(" Erin@Partner.TEST ") == "erin@partner.test"
    with pytest.raises(ValidationError):
        normalize_email("erin@outside.test")

    result = await NominationIntake(db_session).nominate(
        "pa_alice", "usr_alice", external_emails=["erin@outside.test", "erin@partner.test"]
    )
    assert [v.reviewer.email for v in result.created] == ["erin@partner.test"]
    assert [e.reviewer for e in result.errors] == ["erin@outside.test"]


@pytest.mark.asyncio
async def test_disabled_nominations_rejected(db_session, world):
    repo = ParticipantAssessmentRepository(db_session)
    await repo.update(await repo.get("pa_alice"), allow_reviewer_nominations=False)
    await db_session.commit()

    with pytest.raises(ValidationError):
        await NominationIntake(db_session).nominate("pa_alice", "usr_alice", reviewer_ids=["usr_bob"])


@pytest.mark.asyncio
async def test_unknown_assessment(db_session, world):
    with pytest.raises(NotFoundError):
        await NominationIntake(db_session).nominate("pa_nope", "usr_alice", reviewer_ids=["usr_bob"])


@pytest.mark.asyncio
async def test_invite_reuses_tenant_record(db_session, world, make_external):
    await make_external("extr_erin", "erin@outside.test")
    intake = NominationIntake(db_session)

    existing = await intake.invite_external_reviewer("ERIN@outside.test", "cl_acme")
    assert existing.external_reviewer_id == "extr_erin"

    other_tenant = await intake.invite_external_reviewer("erin@outside.test", "cl_globex", invited_by="usr_dave")
    assert other_tenant.external_reviewer_id.startswith("extr_")
    assert other_tenant.external_reviewer_id != "extr_erin"
    assert other_tenant.invited_by == "usr_dave"
