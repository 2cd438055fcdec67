import uuid
from datetime import timedelta
import pytest
from sqlalchemy import select
from movetogether.errors import Forbidden, NotFound
from movetogether.models.chat import ChatMessageFlag
from movetogether.models.competition import Participant
from movetogether.models.user import UserModeration
from movetogether.services.clock import as_utc, utcnow
from movetogether.services.moderation import ModerationPipeline
from conftest import BrokenClassifier, FixedClassifier, join, make_competition

async def _setup(session):
    comp = await make_competition(session)
    author = uuid.uuid4()
    await join(session, comp.id, author)
    return comp.id, author

async def _participant(session, comp_id, author):
    return await session.scalar(
        select(Participant)
        .where(Participant.competition_id == comp_id, Participant.user_id == author)
        .execution_options(populate_existing=True)
    )

async def _flags(session, author):
    return (await session.execute(
        select(ChatMessageFlag).where(ChatMessageFlag.author_id == author)
    )).scalars().all()

@pytest.mark.asyncio
async def test_clean_message_allowed_without_flag(session):
    comp_id, author = await _setup(session)
    d = await ModerationPipeline(session, FixedClassifier(0.1)).moderate(author, comp_id, "nice run today!")
    assert d.allowed is True and d.status_code == 200
    assert await _flags(session, author) == []

@pytest.mark.asyncio
async def test_blocklist_blocks_regardless_of_classifier(session):
    comp_id, author = await _setup(session)
    clf = FixedClassifier(0.0)
    d = await ModerationPipeline(session, clf).moderate(author, comp_id, "you lazy ass")
    assert d.allowed is False and d.blocked is True
    assert clf.calls == 0
    (flag,) = await _flags(session, author)
    assert flag.is_hidden is True and flag.auto_hidden is False

@pytest.mark.asyncio
async def test_blocklist_does_not_catch_substrings(session):
    comp_id, author = await _setup(session)
    d = await ModerationPipeline(session, FixedClassifier(0.0)).moderate(author, comp_id, "a classic comeback")
    assert d.allowed is True

@pytest.mark.asyncio
async def test_borderline_message_allowed_and_flagged_for_review(session):
    comp_id, author = await _setup(session)
    d = await ModerationPipeline(session, FixedClassifier(0.65)).moderate(author, comp_id, "meh")
    assert d.allowed is True and d.flagged is True
    (flag,) = await _flags(session, author)
    assert flag.auto_hidden is False and flag.is_hidden is False
    assert flag.toxicity_score == 0.65

@pytest.mark.asyncio
async def test_third_block_within_an_hour_mutes_for_24_hours(session):
    comp_id, author = await _setup(session)
    pipeline = ModerationPipeline(session, FixedClassifier(0.9))
    now = utcnow().replace(microsecond=0)

    first = await pipeline.moderate(author, comp_id, "x", uuid.uuid4(), now=now - timedelta(minutes=40))
    second = await pipeline.moderate(author, comp_id, "x", uuid.uuid4(), now=now - timedelta(minutes=20))
    third = await pipeline.moderate(author, comp_id, "x", uuid.uuid4(), now=now)

    assert (first.blocked, first.warnings_remaining) == (True, 2)
    assert (second.blocked, second.warnings_remaining) == (True, 1)
    assert third.outcome == "muted"
    assert third.allowed is False
    assert third.muted_until == now + timedelta(hours=24)

    p = await _participant(session, comp_id, author)
    assert p.is_muted is True
    assert as_utc(p.muted_until) == now + timedelta(hours=24)

    after = await pipeline.moderate(author, comp_id, "hello", uuid.uuid4(), now=now + timedelta(minutes=1))
    assert after.allowed is False and after.status_code == 403
    assert after.muted_until == now + timedelta(hours=24)

@pytest.mark.asyncio
async def test_blocks_outside_the_window_do_not_count(session):
    comp_id, author = await _setup(session)
    pipeline = ModerationPipeline(session, FixedClassifier(0.95))
    now = utcnow().replace(microsecond=0)

    await pipeline.moderate(author, comp_id, "x", uuid.uuid4(), now=now - timedelta(minutes=90))
    await pipeline.moderate(author, comp_id, "x", uuid.uuid4(), now=now - timedelta(minutes=70))
    d = await pipeline.moderate(author, comp_id, "x", uuid.uuid4(), now=now)
    assert d.outcome == "blocked"
    assert d.warnings_remaining == 2

@pytest.mark.asyncio
async def test_retried_message_counts_once(session):
    comp_id, author = await _setup(session)
    pipeline = ModerationPipeline(session, FixedClassifier(0.9))
    mid = uuid.uuid4()
    now = utcnow()
    await pipeline.moderate(author, comp_id, "x", mid, now=now - timedelta(seconds=5))
    d = await pipeline.moderate(author, comp_id, "x", mid, now=now)
    assert d.warnings_remaining == 2
    assert len(await _flags(session, author)) == 1

@pytest.mark.asyncio
async def test_classifier_outage_fails_open(session):
    comp_id, author = await _setup(session)
    d = await ModerationPipeline(session, BrokenClassifier()).moderate(author, comp_id, "hello")
    assert d.allowed is True
    assert await _flags(session, author) == []

@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["suspended", "banned"])
async def test_restricted_account_rejected_before_content_checks(session, status):
    comp_id, author = await _setup(session)
    session.add(UserModeration(user_id=author, status=status))
    await session.commit()
    clf = FixedClassifier(0.0)
    d = await ModerationPipeline(session, clf).moderate(author, comp_id, "hello")
    assert d.allowed is False and d.status_code == 403
    assert d.reason == "Your account is restricted"
    assert clf.calls == 0

@pytest.mark.asyncio
async def test_warned_account_can_still_chat(session):
    comp_id, author = await _setup(session)
    session.add(UserModeration(user_id=author, status="warned"))
    await session.commit()
    d = await ModerationPipeline(session, FixedClassifier(0.0)).moderate(author, comp_id, "hello")
    assert d.allowed is True

@pytest.mark.asyncio
async def test_expired_mute_is_lifted(session):
    comp_id, author = await _setup(session)
    p = await _participant(session, comp_id, author)
    p.is_muted = True
    p.muted_until = utcnow() - timedelta(hours=1)
    await session.commit()

    d = await ModerationPipeline(session, FixedClassifier(0.0)).moderate(author, comp_id, "back again")
    assert d.allowed is True
    p = await _participant(session, comp_id, author)
    assert p.is_muted is False and p.muted_until is None

@pytest.mark.asyncio
async def test_non_participant_and_unknown_competition(session):
    comp_id, _ = await _setup(session)
    pipeline = ModerationPipeline(session, FixedClassifier(0.0))
    with pytest.raises(Forbidden):
        await pipeline.moderate(uuid.uuid4(), comp_id, "hello")
    with pytest.raises(NotFound):
        await pipeline.moderate(uuid.uuid4(), uuid.uuid4(), "hello")
