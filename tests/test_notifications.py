"""Tests for the notification watermark service.

Covers:
- Watermark is created on first access and reused afterwards
- count_from is last_checked when set, else session_start
- Unseen count: incoming requests by member id and by external email, plus decisions
- Strict "after the watermark" comparison
- Self-nominated external requests never count
- mark_checked zeroes the count but keeps listed items (unseen=False)
- reset_session starts a new session
- Degraded reads contribute zero and report an error
- A watermark created concurrently by another session is reused, not duplicated
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reviewhub.errors.exceptions import StorageUnavailableError
from reviewhub.models.enums import NotificationType
from reviewhub.repositories.watermark_repo import WatermarkRepository
from reviewhub.services.notifications import NotificationWatermarkService

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

BOB = {"sub": "usr_bob", "email": "bob@acme.test", "client_id": "cl_acme"}
CAROL = {"sub": "usr_carol", "email": "carol@acme.test", "client_id": "cl_acme"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _at(minutes: int) -> datetime:
    return T0 + timedelta(minutes=minutes)


async def _seed_for_bob(make_external, make_nomination, set_watermark):
    await set_watermark("usr_bob", session_start=T0)
    await make_external("extr_bob_globex", "bob@acme.test", client_id="cl_globex")
    await make_nomination("nom_in", reviewer_id="usr_bob", created_at=_at(5))
    await make_nomination(
        "nom_ext_bob",
        external_reviewer_id="extr_bob_globex",
        nominated_by_id="usr_dave",
        participant_assessment_id="pa_dave",
        created_at=_at(6),
    )
    await make_nomination("nom_before", reviewer_id="usr_bob", created_at=_at(-5))
    await make_nomination("nom_at_start", reviewer_id="usr_bob", created_at=T0)
    await make_nomination(
        "nom_bob_decided",
        reviewer_id="usr_carol",
        nominated_by_id="usr_bob",
        participant_assessment_id="pa_bob",
        request_status="accepted",
        created_at=_at(-30),
        responded_at=_at(7),
    )
    await make_nomination(
        "nom_bob_waiting",
        reviewer_id="usr_alice",
        nominated_by_id="usr_bob",
        participant_assessment_id="pa_bob",
        created_at=_at(8),
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_watermark_created_on_first_access(db_session, world):
    service = NotificationWatermarkService(db_session)

    first = await service.get_watermark("usr_carol")
    assert first.last_checked is None
    assert first.count_from == first.session_start

    second = await service.get_watermark("usr_carol")
    assert second.session_start == first.session_start


@pytest.mark.asyncio
async def test_count_from_prefers_last_checked(db_session, world, set_watermark):
    await set_watermark("usr_bob", session_start=T0, last_checked=_at(30))
    assert await NotificationWatermarkService(db_session).count_from_time("usr_bob") == _at(30)


@pytest.mark.asyncio
async def test_unseen_count(db_session, world, make_external, make_nomination, set_watermark):
    await _seed_for_bob(make_external, make_nomination, set_watermark)

    unseen = await NotificationWatermarkService(db_session).compute_unseen_count(BOB)
    assert unseen.count == 3
    assert unseen.since == T0
    assert unseen.errors == []


@pytest.mark.asyncio
async def test_self_nomination_never_counts(db_session, world, make_external, make_nomination, set_watermark):
    await set_watermark("usr_carol", session_start=T0)
    await make_external("extr_carol", "carol@acme.test")
    await make_nomination("nom_self", external_reviewer_id="extr_carol", nominated_by_id="usr_carol", created_at=_at(1))

    service = NotificationWatermarkService(db_session)
    assert (await service.compute_unseen_count(CAROL)).count == 0
    assert (await service.list_notifications(CAROL)).notifications == []


@pytest.mark.asyncio
async def test_list_notifications(db_session, world, make_external, make_nomination, set_watermark):
    await _seed_for_bob(make_external, make_nomination, set_watermark)

    listing = await NotificationWatermarkService(db_session).list_notifications(BOB)

    assert listing.session_start == T0
    assert [(n.id, n.unseen) for n in listing.notifications] == [
        ("status_change_nom_bob_decided", True),
        ("review_request_nom_ext_bob", True),
        ("review_request_nom_in", True),
        ("review_request_nom_at_start", False),
    ]
    by_id = {n.id: n for n in listing.notifications}
    assert by_id["review_request_nom_in"].message == "Alice Smith has requested a review nomination from you"
    assert by_id["review_request_nom_ext_bob"].message == "Dave Lee has requested a review nomination from you"
    decided = by_id["status_change_nom_bob_decided"]
    assert decided.type is NotificationType.NOMINATION_ACCEPTED
    assert decided.message == "Carol accepted your review request for Leadership 360"
    assert decided.created_at == _at(7)
    assert decided.counterpart.email == "carol@acme.test"


@pytest.mark.asyncio
async def test_mark_checked_keeps_items_listed(db_session, world, make_external, make_nomination, set_watermark):
    await _seed_for_bob(make_external, make_nomination, set_watermark)
    service = NotificationWatermarkService(db_session)

    watermark = await service.mark_checked("usr_bob")
    assert watermark.last_checked is not None
    assert watermark.session_start == T0

    assert (await service.compute_unseen_count(BOB)).count == 0
    listing = await service.list_notifications(BOB)
    assert len(listing.notifications) == 4
    assert not any(n.unseen for n in listing.notifications)


@pytest.mark.asyncio
async def test_reset_session(db_session, world, make_external, make_nomination, set_watermark):
    await _seed_for_bob(make_external, make_nomination, set_watermark)
    service = NotificationWatermarkService(db_session)
    await service.mark_checked("usr_bob")

    watermark = await service.reset_session("usr_bob")
    assert watermark.last_checked is None
    assert watermark.session_start > _at(10)
    assert (await service.list_notifications(BOB)).notifications == []


@pytest.mark.asyncio
async def test_rejected_decision_is_counted(db_session, world, make_nomination, set_watermark):
    await set_watermark("usr_alice", session_start=T0)
    await make_nomination("nom_no", reviewer_id="usr_bob", request_status="rejected", responded_at=_at(2))

    service = NotificationWatermarkService(db_session)
    alice = {"sub": "usr_alice", "email": "alice@acme.test"}
    assert (await service.compute_unseen_count(alice)).count == 1
    [notification] = (await service.list_notifications(alice)).notifications
    assert notification.type is NotificationType.NOMINATION_REJECTED
    assert notification.message == "Bob Jones rejected your review request for Leadership 360"


@pytest.mark.asyncio
async def test_degraded_part_contributes_zero(db_session, world, make_external, make_nomination, set_watermark, monkeypatch):
    await _seed_for_bob(make_external, make_nomination, set_watermark)
    service = NotificationWatermarkService(db_session)

    async def unavailable(*args, **kwargs):
        raise StorageUnavailableError("list_decided_for_nominator")

    monkeypatch.setattr(service.nominations, "list_decided_for_nominator", unavailable)
    unseen = await service.compute_unseen_count(BOB)

    assert unseen.count == 2
    assert [e.source for e in unseen.errors] == ["status_changes"]


@pytest.mark.asyncio
async def test_unavailable_watermark_returns_zero(db_session, world, monkeypatch):
    service = NotificationWatermarkService(db_session)

    async def broken(*args, **kwargs):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))

    monkeypatch.setattr(service.watermarks, "get_or_create", broken)
    unseen = await service.compute_unseen_count(BOB)

    assert unseen.count == 0
    assert [(e.source, e.code) for e in unseen.errors] == [("watermark", "STORAGE_UNAVAILABLE")]


@pytest.mark.asyncio
async def test_concurrent_first_access_reuses_watermark(db_engine, world, monkeypatch):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    # Another request creates the row between our read and our insert
    async with session_factory() as other:
        await WatermarkRepository(other).get_or_create("usr_bob", _at(1))
        await other.commit()

    original_get = WatermarkRepository.get
    calls = []

    async def stale_first_read(self, user_id):
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return await original_get(self, user_id)

    monkeypatch.setattr(WatermarkRepository, "get", stale_first_read)

    async with session_factory() as session:
        service = NotificationWatermarkService(session)
        unseen = await service.compute_unseen_count(BOB)
        assert unseen.errors == []
        assert unseen.since == _at(1)
        await session.commit()

    monkeypatch.setattr(WatermarkRepository, "get", original_get)
    async with session_factory() as session:
        row = await WatermarkRepository(session).get("usr_bob")
        assert row.last_checked is None
        assert row.session_start.replace(tzinfo=timezone.utc) == _at(1)


@pytest.mark.asyncio
async def test_watermark_helpers_create_missing_row(db_session, world):
    repo = WatermarkRepository(db_session)

    checked = await repo.set_last_checked("usr_bob", _at(3))
    assert checked.last_checked is not None

    started = await repo.start_session("usr_carol", _at(4))
    assert started.last_checked is None
    await db_session.commit()
