"""Review questionnaire progress: response sessions drive review status.

Saving the first answered response begins the review; submitting completes
it. Both go through the state engine, which writes to the authoritative
status source.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from reviewhub.db.models.response import ReviewResponseSessionRow
from reviewhub.errors.exceptions import InvalidTransitionError
from reviewhub.models.enums import RequestStatus, ReviewStatus
from reviewhub.models.nomination import ReviewProgress
from reviewhub.repositories.nomination_repo import get_unified_review_status
from reviewhub.repositories.response_repo import ResponseRepository, ResponseSessionRepository
from reviewhub.services.fallback import with_timeout
from reviewhub.services.id_generator import RESPONSE, RESPONSE_SESSION, generate_id
from reviewhub.services.review_state import ReviewStateEngine

logger = logging.getLogger(__name__)


class ReviewQuestionnaire:
    def __init__(self, session: AsyncSession, engine: ReviewStateEngine | None = None):
        self.sessions = ResponseSessionRepository(session)
        self.responses = ResponseRepository(session)
        self.engine = engine or ReviewStateEngine(session)

    async def save_answer(self, nomination_id: str, question_id: str, answer_text: str | None) -> ReviewProgress:
        """Upsert one answer; the first answered response begins the review.

        Raises:
            NotFoundError: if the nomination does not exist.
            InvalidTransitionError: if the nomination is not accepted or the
                review is already completed.
        """
        nomination = await self.engine.get_nomination(nomination_id)
        if nomination.request_status is not RequestStatus.ACCEPTED:
            raise InvalidTransitionError(
                "Only accepted nominations can be answered",
                current=nomination.request_status.value,
            )
        review_status = get_unified_review_status(nomination)
        if review_status is ReviewStatus.COMPLETED:
            raise InvalidTransitionError("Review is already completed", current=review_status.value)

        session_row = await self._open_session(nomination_id)
        text = (answer_text or "").strip()
        answered = bool(text)

        existing = await with_timeout("load_response", lambda: self.responses.get_answer(session_row.session_id, question_id))
        if existing is None:
            await with_timeout(
                "save_response",
                lambda: self.responses.create(
                    response_id=generate_id(RESPONSE),
                    session_id=session_row.session_id,
                    question_id=question_id,
                    answer_text=text or None,
                    is_answered=answered,
                ),
            )
        else:
            await with_timeout(
                "save_response",
                lambda: self.responses.update(existing, answer_text=text or None, is_answered=answered),
            )

        if answered and review_status is ReviewStatus.NOT_STARTED:
            try:
                await self.engine.apply_review_progress(nomination_id, ReviewStatus.IN_PROGRESS)
            except InvalidTransitionError:
                # Another request began the review first; the answer still stands
                current = get_unified_review_status(await self.engine.get_nomination(nomination_id))
                if current is not ReviewStatus.IN_PROGRESS:
                    raise
                logger.info("Review for nomination %s was already begun", nomination_id)
        return await self.progress(nomination_id)

    async def submit(self, nomination_id: str) -> ReviewProgress:
        """Complete the review.

        Raises:
            InvalidTransitionError: if the review is not in progress.
        """
        await self.engine.apply_review_progress(nomination_id, ReviewStatus.COMPLETED)
        session_row = await self._open_session(nomination_id)
        await with_timeout(
            "close_response_session",
            lambda: self.sessions.update(session_row, status=ReviewStatus.COMPLETED.value),
        )
        logger.info("Review submitted for nomination %s", nomination_id)
        return await self.progress(nomination_id)

    async def progress(self, nomination_id: str) -> ReviewProgress:
        """Review status plus questionnaire counters.

        A session with zero answered responses reports ``not_started``.
        """
        nomination = await self.engine.get_nomination(nomination_id)
        review_status = get_unified_review_status(nomination)
        session_row = await with_timeout(
            "load_response_session", lambda: self.sessions.get_for_nomination(nomination_id)
        )
        answered = 0
        if session_row is not None:
            answered = await with_timeout(
                "count_responses", lambda: self.sessions.answered_count(session_row.session_id)
            )

        if session_row is not None and ReviewStatus.coerce(session_row.status) is ReviewStatus.COMPLETED:
            session_status = ReviewStatus.COMPLETED
        elif answered > 0:
            session_status = ReviewStatus.IN_PROGRESS
        else:
            session_status = ReviewStatus.NOT_STARTED

        return ReviewProgress(
            nomination_id=nomination_id,
            review_status=review_status,
            session_status=session_status,
            answered_count=answered,
        )

    async def _open_session(self, nomination_id: str) -> ReviewResponseSessionRow:
        row = await with_timeout("load_response_session", lambda: self.sessions.get_for_nomination(nomination_id))
        if row is not None:
            return row
        return await with_timeout(
            "open_response_session",
            lambda: self.sessions.create(
                session_id=generate_id(RESPONSE_SESSION),
                nomination_id=nomination_id,
                status=ReviewStatus.IN_PROGRESS.value,
            ),
        )
