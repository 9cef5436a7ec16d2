"""Service for executing upstream calls with automatic retries.

Implements exponential backoff for handling transient errors like
rate limits (429), timeouts or temporary server issues (5xx). Fallback values
are the caller's concern; this service either returns a result or raises
MaxRetryError.
"""

import logging
import time
from typing import Any, Callable, Coroutine, Optional

from ledgerfeed.domain.events.api_events import (
    ApiCallDeferred, ApiCallFailed, ApiCallInitiated, ApiCallSucceeded, RetryScheduled,
)
from ledgerfeed.domain.interfaces.clock import Clock
from ledgerfeed.domain.models.errors import (
    MalformedResponseError, NotFoundError, RateLimitedError, TransientUpstreamError,
)
from ledgerfeed.infrastructure.clock import SystemClock
from ledgerfeed.infrastructure.resilience.rate_limiter import RateLimiter

RETRYABLE_EXCEPTIONS = (TransientUpstreamError, RateLimitedError, MalformedResponseError)
NON_RETRYABLE_EXCEPTIONS = (NotFoundError, ValueError, TypeError)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_BACKOFF_SECONDS = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0

logger = logging.getLogger(__name__)

# --- Custom Exceptions ---
class MaxRetryError(Exception):
    """Exception raised when max attempts are exhausted."""
    def __init__(self, original_exception: Exception, attempts: int):
        self.original_exception = original_exception
        self.attempts = attempts
        super().__init__(f"Max attempts ({attempts}) exceeded. Last error: {original_exception}")

# --- Retry Service ---

class ApiRetryService:
    """Handles upstream call execution with rate limiting and retries."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        rate_limiter: Optional[RateLimiter] = None,
        provider_name: str = "upstream",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_backoff_s: float = DEFAULT_INITIAL_BACKOFF_SECONDS,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        pre_call_delay_s: float = 0.0,
    ):
        """Initializes the ApiRetryService.

        Args:
            clock: Clock used for backoff sleeps.
            rate_limiter: Optional limiter gated before every attempt.
            provider_name: Name of the upstream provider (for logging/events).
            max_attempts: Total number of attempts, including the first one.
            initial_backoff_s: Delay in seconds before the second attempt.
            backoff_factor: Multiplier for the backoff delay (e.g., 2 for exponential).
            pre_call_delay_s: Fixed delay slept before every attempt.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.clock = clock or SystemClock()
        self.rate_limiter = rate_limiter
        self.provider_name = provider_name
        self.max_attempts = max_attempts
        self.initial_backoff_s = initial_backoff_s
        self.backoff_factor = backoff_factor
        self.pre_call_delay_s = pre_call_delay_s
        self.retryable_exceptions = RETRYABLE_EXCEPTIONS
        self.non_retryable_exceptions = NON_RETRYABLE_EXCEPTIONS

        logger.info(
            f"ApiRetryService initialized for '{provider_name}': max_attempts={max_attempts}, "
            f"initial_backoff={initial_backoff_s}s, factor={backoff_factor}, pre_call_delay={pre_call_delay_s}s"
        )

    def dispatch_event(self, event: Any) -> None:
        logger.debug(f"EVENT: {event}")

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        endpoint_name: Optional[str] = None,
        **kwargs: Any
    ) -> Any:
        """Executes an async function with rate limiting and retries.

        Args:
            func: The async function (upstream call) to execute.
            *args: Positional arguments for the function.
            endpoint_name: Name of the endpoint/method called, for logging.
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the function call.

        Raises:
            MaxRetryError: If every attempt failed with a retryable error.
            Exception: If a non-retryable exception occurs.
        """
        last_exception: Optional[Exception] = None
        current_backoff = self.initial_backoff_s
        endpoint = endpoint_name or getattr(func, "__name__", "call")

        for attempt in range(1, self.max_attempts + 1):
            try:
                if self.pre_call_delay_s > 0:
                    await self.clock.sleep(self.pre_call_delay_s)
                if self.rate_limiter is not None:
                    wait_duration = await self.rate_limiter.get_wait_time()
                    if wait_duration > 0:
                        self.dispatch_event(ApiCallDeferred(provider=self.provider_name, endpoint=endpoint, wait_time_seconds=wait_duration))
                    await self.rate_limiter.gate()

                self.dispatch_event(ApiCallInitiated(provider=self.provider_name, endpoint=endpoint))
                start_time = time.perf_counter()
                result = await func(*args, **kwargs)
                latency_ms = (time.perf_counter() - start_time) * 1000
                self.dispatch_event(ApiCallSucceeded(provider=self.provider_name, endpoint=endpoint, latency_ms=latency_ms))
                return result

            except self.non_retryable_exceptions as e:
                logger.info(f"Non-retryable error calling {self.provider_name}.{endpoint} on attempt {attempt}: {e}")
                self.dispatch_event(ApiCallFailed(provider=self.provider_name, endpoint=endpoint, error_type=type(e).__name__, error_message=str(e)))
                raise

            except self.retryable_exceptions as e:
                last_exception = e
                logger.warning(
                    f"Retryable error calling {self.provider_name}.{endpoint} on attempt {attempt}/{self.max_attempts}: "
                    f"{type(e).__name__}: {e}"
                )
            except Exception as e:
                last_exception = e
                logger.error(f"Unexpected error calling {self.provider_name}.{endpoint} on attempt {attempt}: {e}", exc_info=True)

            if attempt < self.max_attempts:
                self.dispatch_event(RetryScheduled(provider=self.provider_name, endpoint=endpoint, attempt_number=attempt, delay_seconds=current_backoff))
                logger.info(f"Retrying {self.provider_name}.{endpoint} in {current_backoff:.2f}s...")
                await self.clock.sleep(current_backoff)
                current_backoff *= self.backoff_factor

        final_error = last_exception or Exception("Unknown error after retries")
        logger.error(f"All {self.max_attempts} attempts failed for {self.provider_name}.{endpoint}. Last error: {final_error}")
        self.dispatch_event(ApiCallFailed(provider=self.provider_name, endpoint=endpoint, error_type=type(final_error).__name__, error_message=str(final_error)))
        raise MaxRetryError(final_error, self.max_attempts)
