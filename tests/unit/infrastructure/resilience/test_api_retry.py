import pytest
from unittest.mock import AsyncMock

from ledgerfeed.domain.models.errors import NotFoundError, RateLimitedError, TransientUpstreamError
from ledgerfeed.infrastructure.resilience.api_retry import ApiRetryService, MaxRetryError
from ledgerfeed.infrastructure.resilience.rate_limiter import RateLimiter


@pytest.fixture
def retry_service(clock):
    return ApiRetryService(clock=clock, provider_name="ledger", max_attempts=3, initial_backoff_s=1.0)


@pytest.mark.asyncio
async def test_success_on_first_attempt(retry_service, clock):
    func = AsyncMock(return_value="0xowner")
    result = await retry_service.execute_with_retry(func, "0xcontract", endpoint_name="owner")
    assert result == "0xowner"
    func.assert_awaited_once_with("0xcontract")
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_backoff_doubles_between_attempts(retry_service, clock):
    """Test that transient failures are retried after 1s and then 2s."""
    func = AsyncMock(side_effect=[TransientUpstreamError("503"), RateLimitedError(), "ok"])
    assert await retry_service.execute_with_retry(func) == "ok"
    assert func.await_count == 3
    assert clock.sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_raises_max_retry_error_after_last_attempt(retry_service, clock):
    error = TransientUpstreamError("timeout")
    func = AsyncMock(side_effect=error)
    with pytest.raises(MaxRetryError) as exc_info:
        await retry_service.execute_with_retry(func, endpoint_name="uri")
    assert exc_info.value.original_exception is error
    assert exc_info.value.attempts == 3
    assert func.await_count == 3
    assert clock.sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_not_found_is_not_retried(retry_service, clock):
    func = AsyncMock(side_effect=NotFoundError("reverted"))
    with pytest.raises(NotFoundError):
        await retry_service.execute_with_retry(func)
    func.assert_awaited_once()
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_unexpected_errors_are_retried(retry_service):
    func = AsyncMock(side_effect=[RuntimeError("odd"), "ok"])
    assert await retry_service.execute_with_retry(func) == "ok"


@pytest.mark.asyncio
async def test_pre_call_delay_precedes_every_attempt(clock):
    service = ApiRetryService(clock=clock, max_attempts=2, initial_backoff_s=1.0, pre_call_delay_s=0.1)
    func = AsyncMock(side_effect=[TransientUpstreamError("503"), "ok"])
    await service.execute_with_retry(func)
    assert clock.sleeps == [0.1, 1.0, 0.1]


@pytest.mark.asyncio
async def test_rate_limiter_gated_before_each_attempt(clock, mocker):
    limiter = RateLimiter(min_interval=0.0, clock=clock)
    gate = mocker.spy(limiter, "gate")
    service = ApiRetryService(clock=clock, rate_limiter=limiter, max_attempts=2)
    func = AsyncMock(side_effect=[TransientUpstreamError("503"), "ok"])
    await service.execute_with_retry(func)
    assert gate.call_count == 2


def test_max_attempts_must_be_positive(clock):
    with pytest.raises(ValueError):
        ApiRetryService(clock=clock, max_attempts=0)
