"""Tests for bounded job status polling"""

import pytest

from cli.client.poller import (
    CONNECTION_STATUS_INTERVAL_S,
    GENERATION_INTERVAL_S,
    REFRESH_WINDOW_S,
    StatusPoller,
)


class FakeTime:
    """Monotonic clock advanced only by sleep()"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def scripted_status(statuses):
    """fetch_status returning statuses in order, repeating the last"""
    calls = []

    def fetch(job_id):
        calls.append(job_id)
        index = min(len(calls) - 1, len(statuses) - 1)
        return {"job_id": job_id, "status": statuses[index], "progress": 10 * len(calls)}

    return fetch, calls


def make_poller(fetch, fake, **kwargs):
    return StatusPoller(fetch, clock=fake.clock, sleep=fake.sleep, **kwargs)


def test_interval_constants():
    assert GENERATION_INTERVAL_S == 2.0
    assert CONNECTION_STATUS_INTERVAL_S == 12.0
    assert REFRESH_WINDOW_S == 60.0


def test_stops_as_soon_as_status_is_terminal():
    fake = FakeTime()
    fetch, calls = scripted_status(["queued", "processing", "done"])
    poller = make_poller(fetch, fake, interval_s=2.0, window_s=120.0)

    result = poller.poll("job-1")

    assert result.terminal is True
    assert result.timed_out is False
    assert result.status["status"] == "done"
    assert result.requests == 3
    assert len(calls) == 3
    assert fake.sleeps == [2.0, 2.0]


def test_polling_is_bounded_by_the_window():
    fake = FakeTime()
    fetch, calls = scripted_status(["processing"])
    poller = make_poller(fetch, fake, interval_s=12.0, window_s=30.0)

    result = poller.poll("job-1")

    assert result.timed_out is True
    assert result.terminal is False
    # Requests at t=0, 12, 24 and a last one at the 30s deadline
    assert fake.sleeps == [12.0, 12.0, 6.0]
    assert result.requests == 4
    assert fake.now == 30.0


def test_zero_window_fetches_once():
    fake = FakeTime()
    fetch, calls = scripted_status(["processing"])
    poller = make_poller(fetch, fake, window_s=0)

    result = poller.poll("job-1")

    assert result.requests == 1
    assert result.timed_out is True
    assert fake.sleeps == []


def test_refresh_fetches_immediately_and_polls_for_refresh_window():
    fake = FakeTime()
    fetch, calls = scripted_status(["processing"])
    poller = make_poller(fetch, fake, interval_s=12.0, window_s=0)

    first = poller.poll("job-1")
    refreshed = poller.refresh("job-1")

    assert first.requests == 1
    assert refreshed.timed_out is True
    assert refreshed.requests == 6  # t=0, 12, 24, 36, 48, 60
    assert fake.now == 60.0


def test_refresh_stops_early_on_terminal_status():
    fake = FakeTime()
    fetch, calls = scripted_status(["failed"])
    poller = make_poller(fetch, fake)

    result = poller.refresh("job-1")

    assert result.terminal is True
    assert result.requests == 1
    assert fake.sleeps == []


def test_on_update_receives_every_status():
    fake = FakeTime()
    fetch, _ = scripted_status(["queued", "canceled"])
    seen = []
    poller = make_poller(fetch, fake)

    poller.poll("job-1", seen.append)

    assert [status["status"] for status in seen] == ["queued", "canceled"]


@pytest.mark.parametrize(
    "kwargs",
    [{"interval_s": 0}, {"interval_s": -1}, {"window_s": -5}, {"refresh_window_s": -1}],
)
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        StatusPoller(lambda job_id: {}, **kwargs)
