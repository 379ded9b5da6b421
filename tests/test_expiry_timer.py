"""Client-side expiry timer and persisted state."""

import asyncio
import json
import os
import stat

import pytest

from portal_auth.client.expiry_timer import AsyncioScheduler, ClientExpiryTimer, LogoutReason
from portal_auth.client.state import ClientSessionState, ClientStateStore

T0 = 1_767_225_600.0
TTL = 3600


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeHandle:
    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks instead of running them."""

    def __init__(self) -> None:
        self.handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled]


@pytest.fixture
def store(tmp_path) -> ClientStateStore:
    return ClientStateStore(tmp_path / "session.json")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def logouts() -> list[LogoutReason]:
    return []


@pytest.fixture
def timer(store, scheduler, clock, logouts) -> ClientExpiryTimer:
    return ClientExpiryTimer(store, scheduler, clock=clock, on_logout=logouts.append)


class TestStart:
    def test_schedules_logout_at_expiry(self, timer, scheduler, store):
        timer.start("tok", TTL)

        assert [h.delay for h in scheduler.pending] == [TTL]
        assert timer.is_active
        assert timer.token == "tok"
        assert store.load() == ClientSessionState(token="tok", issued_at=T0, ttl_seconds=TTL)

    def test_new_session_cancels_previous_callback(self, timer, scheduler):
        timer.start("first", TTL)
        timer.start("second", TTL)

        assert len(scheduler.handles) == 2
        assert scheduler.handles[0].cancelled
        assert len(scheduler.pending) == 1
        assert timer.token == "second"

    def test_elapsed_callback_forces_logout(self, timer, scheduler, store, clock, logouts):
        timer.start("tok", TTL)
        clock.now = T0 + TTL
        scheduler.pending[0].callback()

        assert logouts == [LogoutReason.EXPIRED]
        assert timer.token is None
        assert not timer.is_active
        assert store.load() is None

    def test_remaining(self, timer, clock):
        assert timer.remaining() is None
        timer.start("tok", TTL)
        clock.now = T0 + 600
        assert timer.remaining() == TTL - 600


class TestRestore:
    def test_restore_midway_schedules_remaining_time(self, store, scheduler, clock, timer):
        store.save(ClientSessionState(token="tok", issued_at=T0, ttl_seconds=TTL))
        clock.now = T0 + 1800

        assert timer.restore() is True
        assert [h.delay for h in scheduler.pending] == [1800]
        assert timer.token == "tok"

    def test_restore_after_expiry_logs_out_immediately(self, store, scheduler, clock, timer, logouts):
        store.save(ClientSessionState(token="tok", issued_at=T0, ttl_seconds=TTL))
        clock.now = T0 + 3700

        assert timer.restore() is False
        assert scheduler.handles == []
        assert logouts == [LogoutReason.EXPIRED]
        assert timer.token is None
        assert store.load() is None

    def test_restore_at_exact_expiry(self, store, scheduler, clock, timer):
        store.save(ClientSessionState(token="tok", issued_at=T0, ttl_seconds=TTL))
        clock.now = T0 + TTL

        assert timer.restore() is False
        assert scheduler.handles == []

    def test_restore_without_state(self, timer, scheduler, logouts):
        assert timer.restore() is False
        assert scheduler.handles == []
        assert logouts == []


class TestLogout:
    def test_user_logout_cancels_and_clears(self, timer, scheduler, store, logouts):
        timer.start("tok", TTL)
        timer.logout()

        assert scheduler.handles[0].cancelled
        assert store.load() is None
        assert logouts == [LogoutReason.USER]

    def test_logout_twice_is_harmless(self, timer, logouts):
        timer.start("tok", TTL)
        timer.logout()
        timer.logout()
        assert logouts == [LogoutReason.USER]

    def test_session_invalid_from_server(self, timer, scheduler, logouts):
        timer.start("tok", TTL)
        timer.handle_session_invalid()

        assert scheduler.handles[0].cancelled
        assert logouts == [LogoutReason.SESSION_INVALID]


class TestStateStore:
    def test_file_is_private(self, store):
        store.save(ClientSessionState(token="tok", issued_at=T0, ttl_seconds=TTL))
        assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600

    @pytest.mark.parametrize(
        "content",
        ["", "{", "[]", json.dumps({"token": "tok"}), json.dumps({"token": "", "issued_at": T0, "ttl_seconds": TTL})],
    )
    def test_corrupt_state_is_ignored(self, store, content):
        store.path.write_text(content)
        assert store.load() is None

    def test_clear_missing_file(self, store):
        store.clear()
        assert store.load() is None


class TestAsyncioScheduler:
    async def test_fires_on_the_running_loop(self, store):
        fired = asyncio.Event()
        timer = ClientExpiryTimer(
            store,
            AsyncioScheduler(),
            on_logout=lambda reason: fired.set(),
        )
        timer.start("tok", 1, issued_at=0.0)

        # Issued long ago, so the callback is due immediately
        await asyncio.wait_for(fired.wait(), timeout=1)
        assert timer.token is None
