"""Races the single-session model allows, and the ones storage prevents."""
import asyncio

import pytest

from app import accounts, channels, crud
from app.errors import Conflict, ExpiredOrRevoked
from app.schemas import SubscriptionOut
from conftest import PASSWORD, seed_user


def gate_first_calls(func, count=2):
    """Hold the first ``count`` calls of ``func`` until all of them arrived."""
    arrived = 0
    release = asyncio.Event()

    async def gated(*args, **kwargs):
        nonlocal arrived
        arrived += 1
        if arrived <= count:
            if arrived == count:
                release.set()
            await release.wait()
        return await func(*args, **kwargs)

    return gated


async def test_interleaved_refreshes_both_succeed(session_factory, settings, monkeypatch):
    async with session_factory() as db:
        user = await seed_user(db, "racer")
        original = (await accounts.login(db, settings, username="racer", password=PASSWORD)).refreshToken

    # both exchanges read the stored token before either writes its rotation
    monkeypatch.setattr(accounts, "issue_session", gate_first_calls(accounts.issue_session))

    async def exchange():
        async with session_factory() as db:
            return await accounts.refresh_session(db, settings, original)

    first, second = await asyncio.gather(exchange(), exchange())
    assert first.refreshToken != second.refreshToken

    async with session_factory() as db:
        stored = await crud.get_refresh_token(db, user.id)
    assert stored in (first.refreshToken, second.refreshToken)

    loser = second if stored == first.refreshToken else first
    monkeypatch.undo()
    async with session_factory() as db:
        with pytest.raises(ExpiredOrRevoked):
            await accounts.refresh_session(db, settings, loser.refreshToken)


async def test_sequential_refreshes_invalidate_the_old_token(session_factory, settings):
    async with session_factory() as db:
        await seed_user(db, "steady")
        original = (await accounts.login(db, settings, username="steady", password=PASSWORD)).refreshToken

    async with session_factory() as db:
        await accounts.refresh_session(db, settings, original)
    async with session_factory() as db:
        with pytest.raises(ExpiredOrRevoked):
            await accounts.refresh_session(db, settings, original)


async def test_concurrent_subscribes_create_one_edge(session_factory, monkeypatch):
    async with session_factory() as db:
        await seed_user(db, "popular")
        fan = await seed_user(db, "eager")

    # both requests pass the existence check before either inserts
    monkeypatch.setattr(crud, "get_subscription", gate_first_calls(crud.get_subscription))

    async def subscribe():
        async with session_factory() as db:
            return await channels.subscribe(db, fan.id, "popular")

    results = await asyncio.gather(subscribe(), subscribe(), return_exceptions=True)
    assert sum(isinstance(r, SubscriptionOut) for r in results) == 1
    assert sum(isinstance(r, Conflict) for r in results) == 1

    async with session_factory() as db:
        profile = await channels.get_channel_profile(db, "popular", fan.id)
    assert profile.subscribersCount == 1
    assert profile.isSubscribed is True
