"""Nomination, decision and review progress API routes."""

from fastapi import APIRouter

from reviewhub.dependencies import CurrentUser, DBSession, Directory, Intake, Questionnaire, StateEngine
from reviewhub.errors.exceptions import NotFoundError
from reviewhub.models.enums import RequestStatus
from reviewhub.models.nomination import (
    AnswerCreate,
    NominationBatchResult,
    NominationCreate,
    NominationDecisionRequest,
    NominationView,
    ReviewProgress,
    ReviewProgressRequest,
)
from reviewhub.repositories.assessment_repo import ParticipantAssessmentRepository
from reviewhub.repositories.nomination_repo import NominationRepository
from reviewhub.services.review_state import nomination_view

router = APIRouter(tags=["Nominations"])


@router.post("/nominations", status_code=201, response_model=NominationBatchResult)
async def create_nominations(
    body: NominationCreate,
    user: CurrentUser,
    intake: Intake,
    db: DBSession,
) -> NominationBatchResult:
    result = await intake.nominate(
        body.participant_assessment_id,
        user["sub"],
        reviewer_ids=body.reviewer_ids,
        external_emails=body.external_emails,
    )
    await db.commit()
    return result


@router.get("/nominations/{nomination_id}", response_model=NominationView)
async def get_nomination(
    nomination_id: str,
    user: CurrentUser,
    engine: StateEngine,
    directory: Directory,
) -> NominationView:
    nomination = await engine.get_nomination(nomination_id)
    return await nomination_view(nomination, directory)


@router.get("/participant-assessments/{participant_assessment_id}/nominations", response_model=list[NominationView])
async def list_assessment_nominations(
    participant_assessment_id: str,
    user: CurrentUser,
    directory: Directory,
    db: DBSession,
) -> list[NominationView]:
    if await ParticipantAssessmentRepository(db).get(participant_assessment_id) is None:
        raise NotFoundError("ParticipantAssessment", participant_assessment_id)
    nominations = await NominationRepository(db).list_for_assessment(participant_assessment_id)
    await directory.prefetch_for(nominations)
    return [await nomination_view(n, directory) for n in nominations]


@router.get("/reviews", response_model=list[NominationView])
async def list_my_reviews(
    user: CurrentUser,
    directory: Directory,
    db: DBSession,
    request_status: RequestStatus | None = None,
) -> list[NominationView]:
    """Nominations where the caller is the reviewer, internally or via any external record."""
    identities = await directory.external_identities(user.get("email"))
    nominations = await NominationRepository(db).list_for_reviewer_identity(
        user["sub"],
        [row.external_reviewer_id for row in identities],
        request_status=request_status,
    )
    await directory.prefetch_for(nominations)
    return [await nomination_view(n, directory) for n in nominations]


@router.post("/nominations/{nomination_id}/decision", response_model=NominationView)
async def decide_nomination(
    nomination_id: str,
    body: NominationDecisionRequest,
    user: CurrentUser,
    engine: StateEngine,
    directory: Directory,
    db: DBSession,
) -> NominationView:
    nomination = await engine.apply_request_decision(nomination_id, body.decision)
    await db.commit()
    return await nomination_view(nomination, directory)


@router.post("/nominations/{nomination_id}/progress", response_model=NominationView)
async def progress_review(
    nomination_id: str,
    body: ReviewProgressRequest,
    user: CurrentUser,
    engine: StateEngine,
    directory: Directory,
    db: DBSession,
) -> NominationView:
    nomination = await engine.apply_review_progress(nomination_id, body.status)
    await db.commit()
    return await nomination_view(nomination, directory)


@router.post("/nominations/{nomination_id}/answers", response_model=ReviewProgress)
async def save_answer(
    nomination_id: str,
    body: AnswerCreate,
    user: CurrentUser,
    questionnaire: Questionnaire,
    db: DBSession,
) -> ReviewProgress:
    progress = await questionnaire.save_answer(nomination_id, body.question_id, body.answer_text)
    await db.commit()
    return progress


@router.post("/nominations/{nomination_id}/submit", response_model=ReviewProgress)
async def submit_review(
    nomination_id: str,
    user: CurrentUser,
    questionnaire: Questionnaire,
    db: DBSession,
) -> ReviewProgress:
    progress = await questionnaire.submit(nomination_id)
    await db.commit()
    return progress


@router.get("/nominations/{nomination_id}/progress", response_model=ReviewProgress)
async def get_review_progress(
    nomination_id: str,
    user: CurrentUser,
    questionnaire: Questionnaire,
) -> ReviewProgress:
    return await questionnaire.progress(nomination_id)
