"""
Tests for the pool controller.

These exercise the public surface: construction, result values for every
outcome, the connection context manager and shutdown.
"""

import asyncio

import pytest
from pydantic import SecretStr, ValidationError

from conftest import FakeFactory, make_config
from poolkit import (
    CreationFailed,
    NotCheckedOut,
    PoolClosed,
    PoolController,
    PoolOutcome,
    PoolResult,
    create_pool,
)


@pytest.mark.asyncio
async def test_create_fills_min_size(factory):
    controller = await PoolController.create(make_config(min_size=3, max_size=5), factory)

    assert controller.idle() == 3
    assert controller.in_use() == 0
    assert controller.size() == 3
    assert controller.name == "test-pool"


@pytest.mark.asyncio
async def test_create_failure_leaves_nothing_open(factory):
    factory.fail_after = 1

    with pytest.raises(CreationFailed):
        await PoolController.create(make_config(min_size=3, max_size=5), factory)

    assert len(factory.created) == 1
    assert factory.created[0].closed


@pytest.mark.asyncio
async def test_five_concurrent_acquires_then_sixth_blocks(factory):
    controller = await PoolController.create(make_config(min_size=3, max_size=5), factory)

    results = await asyncio.gather(*(controller.acquire() for _ in range(5)))

    assert all(r.success and r.outcome == PoolOutcome.ACQUIRED for r in results)
    assert len({id(r.data) for r in results}) == 5
    assert len(factory.created) == 5
    assert controller.in_use() == 5

    sixth = await controller.acquire(timeout=0.1)
    assert not sixth.success
    assert sixth.outcome == PoolOutcome.ACQUIRE_TIMEOUT


@pytest.mark.asyncio
async def test_sixth_acquire_unblocks_on_release(factory):
    controller = await PoolController.create(
        make_config(min_size=3, max_size=5, acquire_timeout=2.0), factory
    )
    results = await asyncio.gather(*(controller.acquire() for _ in range(5)))

    sixth = asyncio.create_task(controller.acquire())
    await asyncio.sleep(0.02)
    assert not sixth.done()

    released = await controller.release(results[0].data)
    assert released.success
    assert released.outcome == PoolOutcome.RELEASED

    result = await asyncio.wait_for(sixth, 1.0)
    assert result.success
    assert result.data is results[0].data
    assert len(factory.created) == 5


@pytest.mark.asyncio
async def test_exhausted_result_when_not_blocking(factory):
    controller = await PoolController.create(
        make_config(max_size=1, acquire_blocks_on_exhaustion=False), factory
    )
    await controller.acquire()

    result = await controller.acquire()

    assert not result.success
    assert result.outcome == PoolOutcome.POOL_EXHAUSTED
    assert result.data is None


@pytest.mark.asyncio
async def test_creation_failed_result(factory):
    controller = await PoolController.create(make_config(), factory)
    factory.fail_after = 0

    result = await controller.acquire()

    assert result.outcome == PoolOutcome.CREATION_FAILED
    assert isinstance(result.error, CreationFailed)
    assert isinstance(result.error.cause, ConnectionRefusedError)


@pytest.mark.asyncio
async def test_release_not_checked_out_leaves_counts(factory):
    controller = await PoolController.create(make_config(min_size=2), factory)
    handle = (await controller.acquire()).data
    await controller.release(handle)
    before = controller.snapshot()

    result = await controller.release(handle)

    assert not result.success
    assert result.outcome == PoolOutcome.NOT_CHECKED_OUT
    assert isinstance(result.error, NotCheckedOut)
    assert controller.snapshot() == before


@pytest.mark.asyncio
async def test_operations_after_shutdown_report_closed(factory):
    controller = await PoolController.create(make_config(min_size=2), factory)
    handle = (await controller.acquire()).data

    report = await controller.shutdown()

    assert report.closed_count == 2
    assert controller.size() == 0
    assert controller.closed
    assert (await controller.acquire()).outcome == PoolOutcome.POOL_CLOSED
    assert (await controller.release(handle)).outcome == PoolOutcome.POOL_CLOSED


@pytest.mark.asyncio
async def test_second_shutdown_reports_nothing(factory):
    controller = await PoolController.create(make_config(min_size=1), factory)
    await controller.shutdown()

    report = await controller.shutdown()

    assert report.closed_count == 0
    assert report.failures == []


@pytest.mark.asyncio
async def test_invalid_handles_are_never_returned(factory, validator):
    controller = await PoolController.create(make_config(min_size=3, max_size=3), factory, validator)
    validator.invalidate(*factory.created)

    results = [await controller.acquire() for _ in range(3)]

    handles = [r.data for r in results]
    assert all(r.success for r in results)
    assert not any(id(h) in {id(s) for s in factory.created[:3]} for h in handles)
    assert all(h.closed for h in factory.created[:3])
    assert controller.size() == 3


@pytest.mark.asyncio
async def test_connection_context_releases(factory):
    controller = await PoolController.create(make_config(), factory)

    async with controller.connection() as handle:
        assert controller.in_use() == 1
        assert handle is factory.created[0]

    assert controller.in_use() == 0
    assert controller.idle() == 1


@pytest.mark.asyncio
async def test_connection_context_releases_on_error(factory):
    controller = await PoolController.create(make_config(), factory)

    with pytest.raises(KeyError):
        async with controller.connection():
            raise KeyError("boom")

    assert controller.idle() == 1


@pytest.mark.asyncio
async def test_connection_context_raises_pool_error(factory):
    controller = await PoolController.create(make_config(), factory)
    await controller.shutdown()

    with pytest.raises(PoolClosed):
        async with controller.connection():
            pass


@pytest.mark.asyncio
async def test_async_with_shuts_down(factory):
    async with await PoolController.create(make_config(min_size=1), factory) as controller:
        assert controller.idle() == 1

    assert controller.closed
    assert factory.created[0].closed


@pytest.mark.asyncio
async def test_create_pool_builds_config():
    factory = FakeFactory()

    controller = await create_pool(
        "db.local:3306/app", "app", "s3cret", 1, 4,
        factory=factory, name="orders", validate_on_release=True
    )

    assert controller.config.max_size == 4
    assert controller.config.validate_on_release
    assert isinstance(controller.config.credential, SecretStr)
    params = factory.created[0].params
    assert params.principal == "app"
    assert params.credential.get_secret_value() == "s3cret"


@pytest.mark.asyncio
async def test_create_pool_rejects_bad_bounds():
    with pytest.raises(ValidationError):
        await create_pool("db", "app", "pw", 5, 2, factory=FakeFactory())


def test_result_unwrap():
    ok = PoolResult.success_result(PoolOutcome.ACQUIRED, data="handle")
    failed = PoolResult.error_result(PoolClosed("p"))

    assert ok.unwrap() == "handle"
    with pytest.raises(PoolClosed):
        failed.unwrap()
    assert failed.outcome == PoolOutcome.POOL_CLOSED
    assert "pool_closed" in str(failed)
