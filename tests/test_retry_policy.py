from types import SimpleNamespace

import pytest

from api.v1.infra.queue.retry import JOB_RETRY, QUEUE_ITEM_RETRY


@pytest.mark.parametrize(
    "attempts,max_attempts,expected",
    [
        (1, 3, "PENDING"),
        (2, 3, "PENDING"),
        (3, 3, "FAILED"),
        (1, 1, "FAILED"),
    ],
)
def test_queue_item_retry_decision(attempts, max_attempts, expected):
    item = SimpleNamespace(attempts=attempts, max_attempts=max_attempts)

    assert QUEUE_ITEM_RETRY.decide(item) == expected
    assert QUEUE_ITEM_RETRY.is_final(item) is (expected == "FAILED")


def test_job_retry_uses_job_vocabulary():
    assert JOB_RETRY.decide(SimpleNamespace(attempts=1, max_attempts=2)) == "queued"
    assert JOB_RETRY.decide(SimpleNamespace(attempts=2, max_attempts=2)) == "failed"
