import uuid
import httpx
import pytest
from sqlalchemy import select
from movetogether.config import settings
from movetogether.jobs.deliver_push import build_payload, deliver_push
from movetogether.models.activity import ActivityRecord
from movetogether.models.notification import NotificationReceipt
from movetogether.schemas.activity import ActivitySubmission
from movetogether.services.activity_store import upsert_activity
from movetogether.services.clock import utc_today
from movetogether.services.notifications import NotificationDispatcher, PushMessage
from movetogether.services.scorer import Goals, score
from conftest import FailingSender, RecordingSender, join, make_competition, make_profile

async def _submit(session, uid, move, exercise, stand):
    sub = ActivitySubmission(
        user_id=uid, date=utc_today(),
        move_calories=move, exercise_minutes=exercise, stand_hours=stand, steps=1000,
    )
    rec = await upsert_activity(session, uid, sub.date, sub, score(sub, Goals()))
    await session.commit()
    return rec

@pytest.mark.asyncio
async def test_rings_closed_sent_once_per_day(session):
    uid = await make_profile(session, name="Sam")
    sender = RecordingSender()
    dispatcher = NotificationDispatcher(session, sender)

    await _submit(session, uid, 600, 40, 12)
    assert await dispatcher.dispatch_rings_closed(uid, utc_today()) is True
    await _submit(session, uid, 700, 45, 13)
    assert await dispatcher.dispatch_rings_closed(uid, utc_today()) is False

    assert len(sender.of_type("rings_closed")) == 1
    rec = await session.scalar(select(ActivityRecord).where(ActivityRecord.user_id == uid))
    assert rec.rings_closed_notified is True

@pytest.mark.asyncio
async def test_partial_rings_do_not_trigger_personal_notification(session):
    uid = await make_profile(session)
    sender = RecordingSender()
    await _submit(session, uid, 600, 10, 12)
    assert await NotificationDispatcher(session, sender).dispatch_rings_closed(uid, utc_today()) is False
    assert sender.of_type("rings_closed") == []

@pytest.mark.asyncio
async def test_competitors_get_each_ring_closure_once(session):
    me = await make_profile(session, name="Sam")
    rival = uuid.uuid4()
    comp = await make_competition(session)
    await join(session, comp.id, me)
    await join(session, comp.id, rival, order=1)
    sender = RecordingSender()
    dispatcher = NotificationDispatcher(session, sender)

    await _submit(session, me, 600, 10, 12)
    await dispatcher.dispatch_rings_closed(me, utc_today())
    await dispatcher.dispatch_rings_closed(me, utc_today())
    await _submit(session, me, 600, 40, 12)
    await dispatcher.dispatch_rings_closed(me, utc_today())

    broadcasts = sender.of_type("ring_closure")
    assert [m.data["rings"] for m in broadcasts] == [["move", "stand"], ["exercise", "all"]]
    assert all(m.recipient_ids == [str(rival)] for m in broadcasts)
    assert broadcasts[0].body == "Sam closed their Move and Stand rings!"
    assert broadcasts[1].body == "Sam closed all their rings today!"

    keys = (await session.execute(select(NotificationReceipt.key))).scalars().all()
    assert len(keys) == 4

@pytest.mark.asyncio
async def test_claim_once(session):
    dispatcher = NotificationDispatcher(session, RecordingSender())
    assert await dispatcher.claim_once("unlock:abc") is True
    assert await dispatcher.claim_once("unlock:abc") is False
    assert await dispatcher.claim_once("unlock:def") is True

@pytest.mark.asyncio
async def test_delivery_failure_is_swallowed(session):
    uid = await make_profile(session)
    await _submit(session, uid, 600, 40, 12)
    dispatcher = NotificationDispatcher(session, FailingSender())
    assert await dispatcher.dispatch_rings_closed(uid, utc_today()) is False
    assert await dispatcher.dispatch_rank_overtake(uuid.uuid4(), uid, uuid.uuid4(), 2, 1) is False

@pytest.mark.asyncio
async def test_rank_overtake_message(session):
    passer = await make_profile(session, name="Jordan")
    passed, comp_id = uuid.uuid4(), uuid.uuid4()
    sender = RecordingSender()
    assert await NotificationDispatcher(session, sender).dispatch_rank_overtake(passed, passer, comp_id, 3, 2)
    (msg,) = sender.sent
    assert msg.recipient_ids == [str(passed)]
    assert "Jordan" in msg.body and "#2 to #3" in msg.body
    assert msg.data["competition_id"] == str(comp_id)

def test_deliver_push_posts_to_onesignal(monkeypatch):
    monkeypatch.setattr(settings, "onesignal_app_id", "app-1")
    monkeypatch.setattr(settings, "onesignal_rest_api_key", "key-1")
    seen = {}

    def handler(request: httpx.Request):
        seen["auth"] = request.headers["authorization"]
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"id": "n1"})

    message = {"recipient_ids": ["u1"], "title": "Hi", "body": "There", "data": {"type": "rings_closed"}}
    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert deliver_push(message, client=client) is True
    assert seen["auth"] == "Key key-1"
    assert seen["url"].startswith("https://api.onesignal.com/")
    assert build_payload(message)["include_aliases"] == {"external_id": ["u1"]}

def test_deliver_push_skips_when_unconfigured(monkeypatch):
    monkeypatch.setattr(settings, "onesignal_app_id", "")
    message = PushMessage(recipient_ids=["u1"], title="t", body="b")
    assert deliver_push(message.__dict__) is False

@pytest.mark.asyncio
async def test_ring_just_short_of_goal_is_not_broadcast_as_closed(session):
    me = await make_profile(session, name="Sam")
    rival = uuid.uuid4()
    comp = await make_competition(session)
    await join(session, comp.id, me)
    await join(session, comp.id, rival, order=1)
    sender = RecordingSender()

    rec = await _submit(session, me, 499.99, 30, 12)
    assert rec.move_percentage == 100.0
    assert rec.rings_closed == 2
    await NotificationDispatcher(session, sender).dispatch_rings_closed(me, utc_today())

    assert [m.data["rings"] for m in sender.of_type("ring_closure")] == [["exercise", "stand"]]
    assert sender.of_type("rings_closed") == []

@pytest.mark.asyncio
async def test_progress_nudges_sent_once_per_ring(session):
    uid = await make_profile(session)
    sender = RecordingSender()
    dispatcher = NotificationDispatcher(session, sender)

    await _submit(session, uid, 450, 25, 6)
    assert await dispatcher.dispatch_progress_nudges(uid, utc_today()) == ["move", "exercise"]
    assert await dispatcher.dispatch_progress_nudges(uid, utc_today()) == []

    nudges = sender.of_type("ring_progress_nudge")
    assert len(nudges) == 2
    assert nudges[0].body == "Just 50 calories to close your Move ring! You're at 90%."
    assert nudges[1].data["remaining"] == 5
    assert all(m.recipient_ids == [str(uid)] for m in nudges)

@pytest.mark.asyncio
async def test_closed_ring_gets_no_nudge(session):
    uid = await make_profile(session)
    await _submit(session, uid, 600, 29, 12)
    sent = await NotificationDispatcher(session, RecordingSender()).dispatch_progress_nudges(uid, utc_today())
    assert sent == ["exercise"]
