import logging
import time
from typing import Callable, Tuple, Type, TypeVar

T = TypeVar("T")


def with_retries(
    operation_to_retry: Callable[[], T],
    log: logging.Logger,
    max_attempts: int = 5,
    delay: float = 2,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Retry an operation with exponential backoff on transient errors.
    Exceptions not listed in retry_on propagate immediately.

    :param operation_to_retry: The function/operation to retry.
    :param log: The logger used to report attempts and failures.
    :param max_attempts: Maximum number of attempts.
    :param delay: Initial delay between attempts (doubled after every failure).
    :param retry_on: Exception types treated as transient.
    :return: The operation result.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            log.info("Attempt: %s", attempt)
            return operation_to_retry()
        except retry_on as e:
            log.error(e)
            if attempt == max_attempts:
                raise  # re-raise on final failure
            time.sleep(delay * 2 ** (attempt - 1))
    raise ValueError(f"max_attempts must be positive, got {max_attempts}")
