"""Tests for review questionnaire progress.

Covers:
- A session with only blank answers still reports not_started
- The first answered response moves the review to in_progress
- Re-answering updates the existing response
- Submitting completes both the review and the session
- Answering pending or completed nominations is rejected
- External nominations drive the external reviewer record
- A first answer racing another tab that already began the review is kept
"""

import pytest

from reviewhub.errors.exceptions import InvalidTransitionError
from reviewhub.models.enums import ReviewStatus
from reviewhub.repositories.external_reviewer_repo import ExternalReviewerRepository
from reviewhub.repositories.nomination_repo import NominationRepository
from reviewhub.repositories.response_repo import ResponseRepository, ResponseSessionRepository
from reviewhub.services.questionnaire import ReviewQuestionnaire


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_blank_answer_keeps_review_not_started(db_session, world, make_nomination):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)

    progress = await questionnaire.save_answer("nom_1", "q_1", "   ")

    assert progress.review_status is ReviewStatus.NOT_STARTED
    assert progress.session_status is ReviewStatus.NOT_STARTED
    assert progress.answered_count == 0
    assert await ResponseSessionRepository(db_session).get_for_nomination("nom_1") is not None


@pytest.mark.asyncio
async def test_first_answer_begins_review(db_session, world, make_nomination):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)

    await questionnaire.save_answer("nom_1", "q_1", "Clear communicator")
    progress = await questionnaire.save_answer("nom_1", "q_2", "Delegates well")

    assert progress.review_status is ReviewStatus.IN_PROGRESS
    assert progress.session_status is ReviewStatus.IN_PROGRESS
    assert progress.answered_count == 2
    nomination = await questionnaire.engine.get_nomination("nom_1")
    assert nomination.review_started_at is not None


@pytest.mark.asyncio
async def test_reanswer_updates_response(db_session, world, make_nomination):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)

    await questionnaire.save_answer("nom_1", "q_1", "First draft")
    progress = await questionnaire.save_answer("nom_1", "q_1", "")

    assert progress.answered_count == 0
    assert progress.review_status is ReviewStatus.IN_PROGRESS
    session_row = await ResponseSessionRepository(db_session).get_for_nomination("nom_1")
    response = await ResponseRepository(db_session).get_answer(session_row.session_id, "q_1")
    assert response.answer_text is None
    assert not response.is_answered


@pytest.mark.asyncio
async def test_submit_completes_review(db_session, world, make_nomination):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)
    await questionnaire.save_answer("nom_1", "q_1", "Strong")

    progress = await questionnaire.submit("nom_1")

    assert progress.review_status is ReviewStatus.COMPLETED
    assert progress.session_status is ReviewStatus.COMPLETED
    with pytest.raises(InvalidTransitionError):
        await questionnaire.save_answer("nom_1", "q_2", "Late answer")


@pytest.mark.asyncio
async def test_submit_before_answering_fails(db_session, world, make_nomination):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    with pytest.raises(InvalidTransitionError):
        await ReviewQuestionnaire(db_session).submit("nom_1")


@pytest.mark.asyncio
async def test_pending_nomination_cannot_be_answered(db_session, world, make_nomination):
    await make_nomination("nom_1", reviewer_id="usr_bob")
    questionnaire = ReviewQuestionnaire(db_session)

    with pytest.raises(InvalidTransitionError):
        await questionnaire.save_answer("nom_1", "q_1", "Too early")
    assert await ResponseSessionRepository(db_session).get_for_nomination("nom_1") is None


@pytest.mark.asyncio
async def test_external_review_drives_external_record(db_session, world, make_external, make_nomination):
    await make_external("extr_erin", "erin@outside.test")
    await make_nomination("nom_ext", external_reviewer_id="extr_erin", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)

    await questionnaire.save_answer("nom_ext", "q_1", "Great partner")
    assert (await ExternalReviewerRepository(db_session).get("extr_erin")).review_status == "in_progress"

    progress = await questionnaire.submit("nom_ext")
    assert progress.review_status is ReviewStatus.COMPLETED
    assert (await ExternalReviewerRepository(db_session).get("extr_erin")).review_status == "completed"


@pytest.mark.asyncio
async def test_first_answer_after_concurrent_begin(db_session, world, make_nomination, monkeypatch):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)
    stale = await NominationRepository(db_session).get("nom_1")

    # A second tab answers first and begins the review
    await questionnaire.engine.apply_review_progress("nom_1", ReviewStatus.IN_PROGRESS)

    original_get = NominationRepository.get
    calls = []

    async def lagging_get(self, nomination_id):
        calls.append(nomination_id)
        if len(calls) <= 2:
            return stale
        return await original_get(self, nomination_id)

    monkeypatch.setattr(NominationRepository, "get", lagging_get)
    progress = await questionnaire.save_answer("nom_1", "q_1", "Thoughtful")

    assert progress.review_status is ReviewStatus.IN_PROGRESS
    assert progress.answered_count == 1
    assert len(calls) > 2


@pytest.mark.asyncio
async def test_concurrent_submit_still_rejects_answer(db_session, world, make_nomination, monkeypatch):
    await make_nomination("nom_1", reviewer_id="usr_bob", request_status="accepted")
    questionnaire = ReviewQuestionnaire(db_session)
    stale = await NominationRepository(db_session).get("nom_1")

    await questionnaire.save_answer("nom_1", "q_1", "Draft")
    await questionnaire.submit("nom_1")

    original_get = NominationRepository.get
    calls = []

    async def lagging_get(self, nomination_id):
        calls.append(nomination_id)
        if len(calls) <= 2:
            return stale
        return await original_get(self, nomination_id)

    monkeypatch.setattr(NominationRepository, "get", lagging_get)
    with pytest.raises(InvalidTransitionError):
        await questionnaire.save_answer("nom_1", "q_2", "Late")
