"""Tests for the search cooldown dependency."""

import pytest
from starlette.requests import Request

from middleware.cooldown import Cooldown, _caller_key


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_request(headers=None, client=("10.0.0.1", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/search",
        "query_string": b"q=Paris",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_first_call_is_free_and_next_waits():
    clock = FakeClock()
    cooldown = Cooldown(500, clock=clock, sleep=clock.sleep)

    assert cooldown.reserve("a") == 0
    assert cooldown.reserve("a") == pytest.approx(0.5)
    assert cooldown.reserve("a") == pytest.approx(1.0)
    assert cooldown.reserve("b") == 0


def test_slot_frees_up_after_delay():
    clock = FakeClock()
    cooldown = Cooldown(500, clock=clock, sleep=clock.sleep)

    cooldown.reserve("a")
    clock.now += 0.8

    assert cooldown.reserve("a") == 0


@pytest.mark.asyncio
async def test_call_delays_rapid_requests():
    clock = FakeClock()
    cooldown = Cooldown(500, clock=clock, sleep=clock.sleep)
    request = make_request({"x-user-id": "u1"})

    await cooldown(request)
    await cooldown(request)

    assert clock.sleeps == [pytest.approx(0.5)]


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps():
    clock = FakeClock()
    cooldown = Cooldown(0, clock=clock, sleep=clock.sleep)

    for _ in range(3):
        await cooldown(make_request())

    assert clock.sleeps == []


def test_caller_key_prefers_user_then_forwarded_then_client():
    assert _caller_key(make_request({"x-user-id": "u1", "X-Forwarded-For": "1.1.1.1"})) == "user:u1"
    assert _caller_key(make_request({"X-Forwarded-For": "1.1.1.1, 2.2.2.2"})) == "ip:1.1.1.1"
    assert _caller_key(make_request()) == "ip:10.0.0.1"
    assert _caller_key(make_request(client=None)) == "unknown"
