"""Retry decorator with exponential backoff."""
import time
import functools
from typing import Callable, Tuple, Type, Union
from cgunit.core.logger import get_logger

logger = get_logger(__name__)

Setting = Union[int, float, Callable[[], Union[int, float]]]


def _resolve(value: Setting):
    return value() if callable(value) else value


def retry(
    max_attempts: Setting = 3,
    delay: Setting = 2.0,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
):
    """Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts, or a callable returning it
        delay: Initial delay in seconds between retries, or a callable returning it
        backoff: Backoff multiplier for each retry
        exceptions: Tuple of exception types to catch and retry

    Callables are evaluated on every invocation so settings that come from
    the runtime configuration are picked up without re-decorating.

    Example:
        @retry(max_attempts=5, delay=0.01, exceptions=(OSError,))
        def remove_cgroup(path):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempts = max(int(_resolve(max_attempts)), 1)
            current_delay = _resolve(delay)

            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts:
                        logger.error(
                            f"{func.__name__} failed after {attempts} attempts: {e}"
                        )
                        raise

                    logger.debug(
                        f"{func.__name__} failed (attempt {attempt}/{attempts}): {e}"
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

            return None

        return wrapper

    return decorator
