"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewhub.config import settings
from reviewhub.db.base import Base
from reviewhub.db.engine import create_db_engine
# Import all models to register with Base.metadata
import reviewhub.db.models  # noqa: F401
from reviewhub.db.models import (
    AssessmentTypeRow,
    ClientRow,
    ClientUserRow,
    CohortAssessmentRow,
    CohortParticipantRow,
    CohortRow,
    ExternalReviewerRow,
    NotificationWatermarkRow,
    ParticipantAssessmentRow,
    ReviewerNominationRow,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """A fixed point ``minutes`` after T0."""
    return T0 + timedelta(minutes=minutes)


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine configured like the app's."""
    engine = create_db_engine("sqlite+aiosqlite:///")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(db_engine):
    """Create a test application instance with in-memory DB."""
    from reviewhub.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Mint a bearer token the way the identity boundary does."""

    def _headers(user_id: str, email: str, client_id: str = "cl_acme") -> dict:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": user_id,
                "email": email,
                "client_id": client_id,
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(minutes=15)).timestamp()),
            },
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

@pytest.fixture
async def world(db_session):
    """Two tenants, a cohort with one participant assessment per tenant.

    Acme: Alice (participant), Bob and Carol (colleagues).
    Globex: Dave (participant).
    """
    db_session.add_all([
        ClientRow(client_id="cl_acme", name="Acme", subdomain="acme", created_at=T0),
        ClientRow(client_id="cl_globex", name="Globex", subdomain="globex", created_at=T0),
    ])
    await db_session.flush()
    db_session.add_all([
        ClientUserRow(user_id="usr_alice", client_id="cl_acme", email="alice@acme.test", name="Alice", surname="Smith"),
        ClientUserRow(user_id="usr_bob", client_id="cl_acme", email="bob@acme.test", name="Bob", surname="Jones"),
        ClientUserRow(user_id="usr_carol", client_id="cl_acme", email="carol@acme.test", name="Carol", surname=None),
        ClientUserRow(user_id="usr_dave", client_id="cl_globex", email="dave@globex.test", name="Dave", surname="Lee"),
        AssessmentTypeRow(assessment_type_id="at_360", name="Leadership 360"),
    ])
    await db_session.flush()
    db_session.add_all([
        CohortRow(cohort_id="coh_spring", client_id="cl_acme", name="Spring Cohort"),
        CohortRow(cohort_id="coh_globex", client_id="cl_globex", name="Globex Cohort"),
    ])
    await db_session.flush()
    db_session.add_all([
        CohortAssessmentRow(cohort_assessment_id="ca_spring", cohort_id="coh_spring", assessment_type_id="at_360"),
        CohortAssessmentRow(
            cohort_assessment_id="ca_globex",
            cohort_id="coh_globex",
            assessment_type_id="at_360",
            name="Globex Pulse",
        ),
        CohortParticipantRow(participant_id="part_alice", cohort_id="coh_spring", user_id="usr_alice"),
        CohortParticipantRow(participant_id="part_bob", cohort_id="coh_spring", user_id="usr_bob"),
        CohortParticipantRow(participant_id="part_dave", cohort_id="coh_globex", user_id="usr_dave"),
    ])
    await db_session.flush()
    db_session.add_all([
        ParticipantAssessmentRow(
            participant_assessment_id="pa_alice",
            cohort_assessment_id="ca_spring",
            participant_id="part_alice",
            created_at=T0,
        ),
        ParticipantAssessmentRow(
            participant_assessment_id="pa_bob",
            cohort_assessment_id="ca_spring",
            participant_id="part_bob",
            created_at=T0,
        ),
        ParticipantAssessmentRow(
            participant_assessment_id="pa_dave",
            cohort_assessment_id="ca_globex",
            participant_id="part_dave",
            created_at=T0,
        ),
    ])
    await db_session.commit()
    return SimpleNamespace(client_id="cl_acme", other_client_id="cl_globex", assessment_id="pa_alice")


@pytest.fixture
def make_external(db_session):
    async def _make(
        external_reviewer_id: str,
        email: str,
        client_id: str = "cl_acme",
        review_status: str | None = None,
        name: str | None = None,
    ) -> ExternalReviewerRow:
        row = ExternalReviewerRow(
            external_reviewer_id=external_reviewer_id,
            client_id=client_id,
            email=email,
            name=name,
            review_status=review_status,
            created_at=T0,
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _make


@pytest.fixture
def make_nomination(db_session):
    async def _make(
        nomination_id: str,
        *,
        reviewer_id: str | None = None,
        external_reviewer_id: str | None = None,
        nominated_by_id: str = "usr_alice",
        participant_assessment_id: str = "pa_alice",
        request_status: str = "pending",
        review_status: str | None = None,
        created_at: datetime = T0,
        responded_at: datetime | None = None,
        review_started_at: datetime | None = None,
        review_submitted_at: datetime | None = None,
    ) -> ReviewerNominationRow:
        row = ReviewerNominationRow(
            nomination_id=nomination_id,
            participant_assessment_id=participant_assessment_id,
            nominated_by_id=nominated_by_id,
            reviewer_id=reviewer_id,
            external_reviewer_id=external_reviewer_id,
            is_external=external_reviewer_id is not None,
            request_status=request_status,
            review_status=review_status,
            created_at=created_at,
            responded_at=responded_at,
            review_started_at=review_started_at,
            review_submitted_at=review_submitted_at,
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _make


@pytest.fixture
def set_watermark(db_session):
    async def _set(user_id: str, session_start: datetime, last_checked: datetime | None = None) -> None:
        db_session.add(NotificationWatermarkRow(user_id=user_id, session_start=session_start, last_checked=last_checked))
        await db_session.commit()

    return _set
