"""
retries.py
- Retry-with-exponential-backoff wrapper used by every mutating cluster call.
- Backoff starts at 1s and doubles per retry, capped at 60s: 1, 2, 4, 8, 16.
- Fatal errors (NodeManagerError) are not retried; they propagate immediately.
"""

import time
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    Retrying,
    retry_if_not_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from swarm_node_manager.core.constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_INITIAL_DELAY,
    DEFAULT_RETRY_MAX_DELAY,
)
from swarm_node_manager.core.errors import NodeManagerError


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = DEFAULT_RETRY_ATTEMPTS
    initial_delay: float = DEFAULT_RETRY_INITIAL_DELAY
    max_delay: float = DEFAULT_RETRY_MAX_DELAY

    def delays(self):
        """The full backoff schedule, one delay per retry."""
        return [min(self.initial_delay * 2 ** n, self.max_delay) for n in range(self.retries)]


def _failed(result):
    return not result


def retry(operation, description="operation", policy=None, sleep=time.sleep):
    """
    Run `operation` until it succeeds or the retry budget is spent.

    A falsy return value or a raised exception counts as a failed attempt.
    The first call is not a retry: with the default policy the operation runs
    at most six times, sleeping 1, 2, 4, 8 and 16 seconds in between.

    Args:
        operation (callable): Zero-argument callable; truthy result means success.
        description (str): Human-readable action used in log lines.
        policy (RetryPolicy): Attempt ceiling and delay bounds.
        sleep (callable): Sleep function, replaced in tests.

    Returns:
        bool: True on success, False once every retry failed.

    Raises:
        NodeManagerError: Fatal errors raised by the operation are not retried.
    """
    policy = policy or RetryPolicy()

    def log_attempt(retry_state):
        outcome = retry_state.outcome
        reason = outcome.exception() if outcome.failed else "unsuccessful"
        logger.warning(
            f"[retry] {description} failed ({reason}). "
            f"Attempt {retry_state.attempt_number}/{policy.retries}. "
            f"Retrying in {retry_state.next_action.sleep:g} seconds..."
        )

    def give_up(retry_state):
        outcome = retry_state.outcome
        if outcome.failed:
            logger.error(f"[retry] {description} failed after {policy.retries} retries: {outcome.exception()}")
        else:
            logger.error(f"[retry] {description} failed after {policy.retries} retries")
        return False

    retrying = Retrying(
        stop=stop_after_attempt(policy.retries + 1),
        wait=wait_exponential(multiplier=policy.initial_delay, max=policy.max_delay),
        retry=retry_if_not_exception_type(NodeManagerError) | retry_if_result(_failed),
        before_sleep=log_attempt,
        retry_error_callback=give_up,
        sleep=sleep,
    )
    return bool(retrying(operation))
