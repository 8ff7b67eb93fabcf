"""
drain_monitor.py
- Polls the task list of a draining node until nothing is running or about to run.
- Bounded by a timeout; elapsed time is accumulated from the poll interval so
  tests can drive it with a fake sleep.
- A task query that fails ends the wait early instead of looping on a broken API.
"""

import time

from loguru import logger

from swarm_node_manager.core.errors import TaskQueryError
from swarm_node_manager.core.models import NON_TERMINAL_STATES, DrainOutcome, TaskState


def count_tasks(tasks):
    """
    Classify a task snapshot.

    Returns:
        tuple[int, int]: (running, non_terminal) counts.
    """
    running = sum(1 for t in tasks if t.state is TaskState.RUNNING)
    non_terminal = sum(1 for t in tasks if t.state in NON_TERMINAL_STATES)
    return running, non_terminal


class DrainMonitor:
    def __init__(self, task_source, sleep=time.sleep):
        """
        Args:
            task_source (callable): node_id -> list[Task]; raises TaskQueryError.
            sleep (callable): Sleep function, replaced in tests.
        """
        self.task_source = task_source
        self.sleep = sleep

    def wait_for_drain(self, node_id, timeout, interval):
        """
        Wait until `node_id` has no running or non-terminal tasks.

        The node is checked at t = 0, interval, 2*interval, ... up to and
        including the first check at or past `timeout`.

        Returns:
            DrainOutcome: DRAINED, TIMED_OUT (elapsed >= timeout) or QUERY_FAILED.
        """
        elapsed = 0
        logger.info(f"[drain] Waiting for tasks to drain on node '{node_id}' (timeout {timeout}s, interval {interval}s)...")

        while True:
            try:
                tasks = self.task_source(node_id)
            except TaskQueryError as e:
                logger.warning(f"[drain] Cannot query tasks: {e}. Proceeding without drain confirmation.")
                return DrainOutcome.QUERY_FAILED

            running, non_terminal = count_tasks(tasks)
            logger.debug(f"[drain] t={elapsed}s running_tasks={running} non_terminal_tasks={non_terminal}")

            if running == 0 and non_terminal == 0:
                logger.info(f"[drain] All tasks have been drained from node '{node_id}' after {elapsed}s.")
                return DrainOutcome.DRAINED

            if elapsed >= timeout:
                logger.warning(
                    f"[drain] Timeout reached after {elapsed}s with {running} running and "
                    f"{non_terminal} non-terminal tasks on node '{node_id}'."
                )
                return DrainOutcome.TIMED_OUT

            logger.info(f"[drain] Tasks still running on node '{node_id}': {running} running, {non_terminal} non-terminal. Waiting...")
            self.sleep(interval)
            elapsed += interval
