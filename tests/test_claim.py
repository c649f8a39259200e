import asyncio

from api.v1.infra.queue.models import JobStatus, QueueItemStatus


async def enqueue_many(store, session, clock, count, work_type="store-alert", max_attempts=3):
    ids = []
    for n in range(count):
        result = await store.enqueue(session, work_type, {"key": f"item-{n}"}, max_attempts)
        ids.append(result.id)
        clock.advance(1)
    return ids


async def test_claim_marks_batch_processing(db_session, item_store, clock):
    ids = await enqueue_many(item_store, db_session, clock, 3)

    claimed = await item_store.claim_batch(db_session, "store-alert", 2)

    assert [item.id for item in claimed] == ids[:2]
    for item in claimed:
        assert item.status == QueueItemStatus.PROCESSING.value
        assert item.attempts == 1
        assert item.claim_token
        assert item.last_attempt_at is not None

    remaining = await item_store.get(db_session, ids[2])
    assert remaining.status == QueueItemStatus.PENDING.value
    assert remaining.attempts == 0


async def test_claim_only_touches_requested_work_type(db_session, item_store, clock):
    await enqueue_many(item_store, db_session, clock, 2, work_type="cashback-whatsapp")

    claimed = await item_store.claim_batch(db_session, "store-alert", 10)

    assert claimed == []


async def test_claim_with_zero_limit_claims_nothing(db_session, item_store, clock):
    await enqueue_many(item_store, db_session, clock, 2)

    assert await item_store.claim_batch(db_session, "store-alert", 0) == []


async def test_claimed_items_are_not_claimed_again(session_factory, item_store, clock):
    """Two dispatch sessions claiming at the same time never receive the same item."""
    async with session_factory() as setup:
        ids = await enqueue_many(item_store, setup, clock, 20)

    async with session_factory() as first, session_factory() as second:
        batch_a, batch_b = await asyncio.gather(
            item_store.claim_batch(first, "store-alert", 15),
            item_store.claim_batch(second, "store-alert", 15),
        )

    claimed_a = {item.id for item in batch_a}
    claimed_b = {item.id for item in batch_b}
    assert claimed_a.isdisjoint(claimed_b)
    assert claimed_a | claimed_b == set(ids)
    assert sorted([len(batch_a), len(batch_b)]) == [5, 15]
    assert all(item.attempts == 1 for item in batch_a + batch_b)


async def test_stale_claim_is_reclaimed(db_session, item_store, clock):
    [item_id] = await enqueue_many(item_store, db_session, clock, 1)
    [first] = await item_store.claim_batch(db_session, "store-alert", 10)
    first_token = first.claim_token

    # Not stale yet
    clock.advance(120)
    assert await item_store.claim_batch(db_session, "store-alert", 10) == []

    clock.advance(200)
    [second] = await item_store.claim_batch(db_session, "store-alert", 10)

    assert second.id == item_id
    assert second.attempts == 2
    assert second.claim_token != first_token


async def test_late_write_from_abandoned_claim_is_discarded(db_session, item_store, clock):
    await enqueue_many(item_store, db_session, clock, 1)
    [first] = await item_store.claim_batch(db_session, "store-alert", 10)
    first_token = first.claim_token

    clock.advance(301)
    [second] = await item_store.claim_batch(db_session, "store-alert", 10)

    applied = await item_store.update_status(
        db_session, first.id, "SENT", claim_token=first_token
    )
    assert applied is False

    item = await item_store.get(db_session, first.id)
    assert item.status == QueueItemStatus.PROCESSING.value
    assert item.claim_token == second.claim_token


async def test_exhausted_stale_claim_is_not_reclaimed(db_session, item_store, clock):
    await enqueue_many(item_store, db_session, clock, 1, max_attempts=1)
    await item_store.claim_batch(db_session, "store-alert", 10)

    clock.advance(301)
    assert await item_store.claim_batch(db_session, "store-alert", 10) == []


async def test_fail_abandoned_fails_exhausted_stale_claims(db_session, item_store, clock):
    [exhausted] = await enqueue_many(item_store, db_session, clock, 1, max_attempts=1)
    [retryable] = await enqueue_many(item_store, db_session, clock, 1, max_attempts=2)
    await item_store.claim_batch(db_session, "store-alert", 10)

    clock.advance(301)
    count = await item_store.fail_abandoned(db_session, "store-alert")

    assert count == 1
    item = await item_store.get(db_session, exhausted)
    assert item.status == QueueItemStatus.FAILED.value
    assert item.claim_token is None
    assert "abandoned" in item.error_message

    still_processing = await item_store.get(db_session, retryable)
    assert still_processing.status == QueueItemStatus.PROCESSING.value


async def test_fail_abandoned_ignores_fresh_claims(db_session, item_store, clock):
    await enqueue_many(item_store, db_session, clock, 1, max_attempts=1)
    await item_store.claim_batch(db_session, "store-alert", 10)

    assert await item_store.fail_abandoned(db_session, "store-alert") == 0


async def test_jobs_are_claimed_from_queued(db_session, job_store, clock):
    created = await job_store.create(db_session, "marketing-image", {"prompt": "x"}, 2)

    [job] = await job_store.claim_batch(db_session, "marketing-image", 10)

    assert job.id == created.id
    assert job.status == JobStatus.PROCESSING.value
    assert job.attempts == 1


async def test_abandoned_jobs_get_claim_timeout_code(db_session, job_store, clock):
    created = await job_store.create(db_session, "marketing-video", {"prompt": "x"}, 1)
    await job_store.claim_batch(db_session, "marketing-video", 10)

    clock.advance(301)
    assert await job_store.fail_abandoned(db_session, "marketing-video") == 1

    job = await job_store.get(db_session, created.id)
    assert job.status == JobStatus.FAILED.value
    assert job.error_code == "CLAIM_TIMEOUT"
