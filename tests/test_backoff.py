from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from payment_relay.webhooks.backoff import RETRY_DELAYS, next_retry_at, retry_delay

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_default_table():
    assert RETRY_DELAYS == (60, 300, 900, 3600, 21600)


@pytest.mark.parametrize(
    "attempts, seconds",
    [(0, 60), (1, 300), (2, 900), (3, 3600), (4, 21600), (5, 21600), (50, 21600)],
)
def test_retry_delay_steps_and_cap(attempts, seconds):
    assert retry_delay(attempts) == timedelta(seconds=seconds)


def test_negative_attempts_use_first_step():
    assert retry_delay(-3) == timedelta(seconds=60)


def test_next_retry_at_is_non_decreasing():
    times = [next_retry_at(a, now=NOW) for a in range(12)]
    assert times == sorted(times)
    assert all(t > NOW for t in times)


def test_next_retry_at_caps():
    assert next_retry_at(5, now=NOW) == next_retry_at(10, now=NOW)


def test_next_retry_at_defaults_to_current_time():
    before = datetime.now(timezone.utc)
    result = next_retry_at(0)
    after = datetime.now(timezone.utc)
    assert before + timedelta(seconds=60) <= result <= after + timedelta(seconds=60)


def test_custom_delays():
    assert next_retry_at(7, now=NOW, delays=(1, 2)) == NOW + timedelta(seconds=2)
