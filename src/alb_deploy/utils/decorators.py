"""Decorator utilities for cross-cutting concerns."""
import time
import logging
import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar, cast

# Setup logging
logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])
T = TypeVar('T')


def log_operation(description: str):
    """Decorator for timing and logging a remote deployment step.

    The ``Failed:`` line names the step that aborted a command.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Starting: {description}")
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.info(f"Completed: {description} in {duration:.2f}s")
                return result
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"Failed: {description} after {duration:.2f}s - {str(e)}")
                raise
        return cast(F, wrapper)
    return decorator


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry budget with exponential backoff and a delay ceiling."""
    max_attempts: int = 10
    delay: float = 2.0
    backoff: float = 2.0
    max_delay: float = 10.0

    def delays(self):
        """Yield the sleep before each retry (``max_attempts - 1`` values)."""
        current_delay = self.delay
        for _ in range(self.max_attempts - 1):
            yield min(current_delay, self.max_delay)
            current_delay *= self.backoff


def retry_call(func: Callable[[], T], policy: RetryPolicy,
               exceptions: tuple = (Exception,),
               sleep: Callable[[float], None] = time.sleep,
               logger_name: Optional[str] = None) -> T:
    """Call ``func`` until it succeeds or ``policy`` is exhausted.

    Args:
        func: Zero-argument callable to attempt
        policy: Attempt count and backoff schedule
        exceptions: Tuple of exceptions that trigger a retry
        sleep: Sleep function (injected by tests)
        logger_name: Optional logger name (defaults to module logger)

    Returns:
        The first successful result of ``func``

    Raises:
        The last exception raised by ``func`` once every attempt failed
    """
    retry_logger = logging.getLogger(logger_name) if logger_name else logger
    delays = policy.delays()
    attempt = 1

    while True:
        try:
            return func()
        except exceptions as e:
            current_delay = next(delays, None)
            if current_delay is None:
                retry_logger.error(f"All {policy.max_attempts} attempts failed: {str(e)}")
                raise

            retry_logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed: {str(e)}. "
                f"Retrying in {current_delay:.2f}s"
            )
            sleep(current_delay)
            attempt += 1
