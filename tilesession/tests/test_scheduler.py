"""
Unit Tests: RefreshScheduler

Timings use sub-second token lifetimes and margins on the real clock,
with generous slack around every deadline.
"""

import asyncio

import pytest

from tilesession.core.errors import TokenAcquisitionError
from tilesession.core.types import Timestamp
from tilesession.session.acquirer import TokenAcquirer
from tilesession.session.scheduler import RefreshScheduler, SchedulerState
from tilesession.session.store import SessionTokenStore
from tilesession.session.token import SessionToken
from tilesession.tests.fakes import FakeTransport, json_response, make_config
from tilesession.transport.protocols import HttpResponse


def make_scheduler(transport, **refresh):
    config = make_config(**refresh)
    store = SessionTokenStore(TokenAcquirer(config, transport))
    scheduler = RefreshScheduler(store, config.refresh)
    store.add_listener(scheduler.arm)
    scheduler.attach()
    return store, scheduler


class TestProactiveRefresh:

    def test_refresh_fires_at_margin_not_before(self):
        async def run():
            transport = FakeTransport(lifetime_s=1.0)
            store, scheduler = make_scheduler(transport, safety_margin_s=0.6)

            await store.get_token()
            assert scheduler.state is SchedulerState.ARMED
            assert store.state.refresh_armed

            await asyncio.sleep(0.2)
            early = transport.handshakes
            await asyncio.sleep(0.4)
            late = transport.handshakes
            token = await store.get_token()
            scheduler.disarm()
            return early, late, token

        early, late, token = asyncio.run(run())

        assert early == 1
        assert late == 2
        assert token.value == "token-2"

    def test_next_refresh_at_tracks_margin(self):
        async def run():
            store, scheduler = make_scheduler(FakeTransport(lifetime_s=7200))
            token = await store.get_token()
            deadline = scheduler.next_refresh_at
            scheduler.disarm()
            return token, deadline

        token, deadline = asyncio.run(run())

        assert (token.expires_at - deadline) / 1e9 == pytest.approx(3600, abs=1)

    def test_token_inside_margin_refreshes_immediately(self):
        async def run():
            transport = FakeTransport(lifetime_s=10)
            store, scheduler = make_scheduler(transport, safety_margin_s=3600)

            await store.get_token()
            await asyncio.sleep(0.05)
            result = (
                transport.handshakes,
                store.current_token.value,
                scheduler.state,
                scheduler.next_refresh_at,
            )
            scheduler.disarm()
            return result

        handshakes, value, state, deadline = asyncio.run(run())

        # First token is refreshed at once; its replacement is again
        # inside the margin and is refreshed at half its lifetime.
        assert handshakes == 2
        assert value == "token-2"
        assert state is SchedulerState.ARMED
        assert (deadline - Timestamp.now()) / 1e9 == pytest.approx(5, abs=1)


class TestFailedRefresh:

    def test_expired_replacements_back_off(self):
        async def run():
            transport = FakeTransport(lifetime_s=0)
            store, scheduler = make_scheduler(
                transport, retry_base_ms=20, retry_max_ms=100, retry_jitter=False,
            )

            await store.get_token()
            await asyncio.sleep(0.2)
            result = (transport.handshakes, scheduler.consecutive_failures, scheduler.state)
            scheduler.disarm()
            return result

        handshakes, failures, state = asyncio.run(run())

        # Initial token, one immediate refresh, then 20/40/80ms backoff.
        assert 3 <= handshakes <= 6
        assert failures >= 2
        assert state is SchedulerState.ARMED

    def test_past_absolute_expiry_backs_off(self):
        async def run():
            transport = FakeTransport(session_script=[
                json_response({"session": f"skewed-{n}", "expiry": "1600000000"})
                for n in range(20)
            ])
            store, scheduler = make_scheduler(
                transport, retry_base_ms=20, retry_max_ms=100, retry_jitter=False,
            )

            await store.get_token()
            await asyncio.sleep(0.2)
            handshakes = transport.handshakes
            scheduler.disarm()
            return handshakes

        assert asyncio.run(run()) <= 6

    def test_failed_refresh_retries_with_backoff(self):
        async def run():
            transport = FakeTransport(lifetime_s=10, session_script=[
                json_response({"session": "first", "expiry": "10"}),
                HttpResponse(500, b""),
                HttpResponse(500, b""),
            ])
            store, scheduler = make_scheduler(
                transport,
                safety_margin_s=3600,
                retry_base_ms=10,
                retry_max_ms=50,
                retry_jitter=False,
            )

            await store.get_token()
            await asyncio.sleep(0.3)
            result = (transport.handshakes, store.current_token.value, scheduler.consecutive_failures)
            scheduler.disarm()
            return result

        handshakes, value, failures = asyncio.run(run())

        assert handshakes == 4
        assert value == "token-4"
        assert failures == 0

    def test_retry_after_failed_first_acquisition(self):
        async def run():
            transport = FakeTransport(session_script=[HttpResponse(503, b"")] * 20)
            store, scheduler = make_scheduler(
                transport, retry_base_ms=10, retry_max_ms=50, retry_jitter=False,
            )

            with pytest.raises(TokenAcquisitionError) as info:
                await store.get_token()
            scheduler.arm_retry(info.value)
            await asyncio.sleep(0.2)
            result = (transport.handshakes, scheduler.consecutive_failures, scheduler.state)
            scheduler.disarm()
            return result

        handshakes, failures, state = asyncio.run(run())

        assert handshakes >= 3
        assert failures >= 2
        assert state is SchedulerState.ARMED


class TestDisarm:

    def test_detach_stops_refresh(self):
        async def run():
            transport = FakeTransport(lifetime_s=0.3)
            store, scheduler = make_scheduler(transport, safety_margin_s=0.2)

            await store.get_token()
            scheduler.disarm()
            await asyncio.sleep(0.3)
            return transport, scheduler, store

        transport, scheduler, store = asyncio.run(run())

        assert transport.handshakes == 1
        assert scheduler.state is SchedulerState.IDLE
        assert not scheduler.refresh_armed
        assert not store.state.refresh_armed
        assert scheduler.next_refresh_at is None

    def test_arm_while_detached_is_ignored(self):
        async def run():
            store, scheduler = make_scheduler(FakeTransport())
            scheduler.disarm()
            scheduler.arm(SessionToken("seed", Timestamp.now().plus_seconds(10)))
            return scheduler

        scheduler = asyncio.run(run())

        assert scheduler.state is SchedulerState.IDLE
        assert not scheduler.refresh_armed

    def test_disarm_is_idempotent(self):
        async def run():
            store, scheduler = make_scheduler(FakeTransport())
            await store.get_token()
            scheduler.disarm()
            scheduler.disarm()
            return scheduler

        scheduler = asyncio.run(run())

        assert scheduler.state is SchedulerState.IDLE
        assert not scheduler.attached

    def test_detach_during_refresh_drops_result(self):
        async def run():
            gate = asyncio.Event()
            transport = FakeTransport(session_gate=gate)
            store, scheduler = make_scheduler(transport, safety_margin_s=3600)

            scheduler.arm(SessionToken("seed", Timestamp.now().plus_seconds(10)))
            await asyncio.sleep(0.01)
            refreshing = scheduler.state

            scheduler.disarm()
            store.clear()
            gate.set()
            await asyncio.sleep(0.01)
            return transport, store, scheduler, refreshing

        transport, store, scheduler, refreshing = asyncio.run(run())

        assert refreshing is SchedulerState.REFRESHING
        assert transport.handshakes == 1
        assert store.current_token is None
        assert scheduler.state is SchedulerState.IDLE
        assert not scheduler.refresh_armed
