"""
lifecycle.py
- Drives the two lifecycle workflows of a Swarm node:
    - startup: label GPU nodes, activate this node, and on managers reactivate
      every worker left in drain by a cold cluster restart
    - shutdown: drain this node, wait for its tasks to vacate, then force-remove
      whatever containers are left
- Every mutation runs through the retry executor; exhausting it is fatal.
- Simulation mode logs the same ACTION lines as a real run, prefixed with
  "(Simulation) ", and performs no mutation.
"""

import time

import requests
from docker.errors import DockerException
from loguru import logger

from swarm_node_manager.core.config import Mode
from swarm_node_manager.core.constants import GPU_LABEL, GPU_LABEL_VALUE
from swarm_node_manager.core.errors import LifecycleError
from swarm_node_manager.core.http_client import HttpClient
from swarm_node_manager.core.models import Availability, DrainOutcome
from swarm_node_manager.lib.cluster_client import ClusterClient
from swarm_node_manager.lib.drain_monitor import DrainMonitor
from swarm_node_manager.lib.node_detector import NodeDetector
from swarm_node_manager.lib.node_updaters import LocalNodeUpdater, ProxiedNodeUpdater
from swarm_node_manager.lib.retries import retry

SIMULATION_PREFIX = "(Simulation) "


class LifecycleController:
    def __init__(self, config, detector, updater, is_manager, node_id, docker_client=None,
                 monitor=None, retry_policy=None, sleep=time.sleep):
        self.config = config
        self.detector = detector
        self.updater = updater
        self.is_manager = is_manager
        self.node_id = node_id
        self.docker_client = docker_client
        self.monitor = monitor or DrainMonitor(updater.list_tasks, sleep=sleep)
        self.retry_policy = retry_policy
        self.sleep = sleep
        self.hostname = detector.hostname()

    @property
    def role_name(self):
        return "manager" if self.is_manager else "worker"

    def run(self):
        if self.config.mode is Mode.STARTUP:
            return self.startup()
        return self.shutdown()

    # --- Action Helpers ---

    def _action(self, description):
        prefix = SIMULATION_PREFIX if self.config.simulate else ""
        logger.info(f"[lifecycle] {prefix}ACTION: {description}")

    def _mutate(self, description, operation):
        """Log the action, then run it with retries unless simulating."""
        self._action(description)
        if self.config.simulate:
            return
        if not retry(operation, description=description, policy=self.retry_policy, sleep=self.sleep):
            raise LifecycleError(f"Failed to {description[0].lower()}{description[1:]}")

    # --- Startup ---

    def startup(self):
        logger.debug("[lifecycle] Starting startup mode")

        gpu = self.config.gpu_node or self.detector.detect_gpu()
        if gpu:
            self._mutate(
                f"Add label {GPU_LABEL}={GPU_LABEL_VALUE} to {self.role_name} node '{self.hostname}' (ID: {self.node_id})",
                lambda: self.updater.add_labels(self.node_id, {GPU_LABEL: GPU_LABEL_VALUE}),
            )

        self._mutate(
            f"Activate {self.role_name} node '{self.hostname}' (ID: {self.node_id})",
            lambda: self.updater.set_availability(self.node_id, Availability.ACTIVE),
        )

        if self.is_manager:
            self.reactivate_drained_workers()

        logger.debug("[lifecycle] Completed startup mode")

    def reactivate_drained_workers(self):
        """Set every worker left in drain back to active, one at a time."""
        found = []

        def list_drained():
            drained = self.updater.list_drained_workers()
            if drained is None:
                return False
            found[:] = drained
            return True

        if not retry(list_drained, "List drained worker nodes", policy=self.retry_policy, sleep=self.sleep):
            raise LifecycleError("Failed to list drained worker nodes")

        drained = found
        if not drained:
            logger.debug("[lifecycle] No drained worker nodes found.")
            return []

        logger.info(f"[lifecycle] Found {len(drained)} drained worker node(s) to reactivate.")
        for spec in drained:
            name = spec.hostname or spec.node_id
            self._mutate(
                f"Activate node '{name}' (ID: {spec.node_id})",
                lambda node_id=spec.node_id: self.updater.set_availability(node_id, Availability.ACTIVE),
            )
        return drained

    # --- Shutdown ---

    def shutdown(self):
        logger.debug("[lifecycle] Starting shutdown mode")

        self._mutate(
            f"Drain {self.role_name} node '{self.hostname}' (ID: {self.node_id})",
            lambda: self.updater.set_availability(self.node_id, Availability.DRAIN),
        )

        self._action(
            f"Wait for tasks to drain on node '{self.hostname}' (ID: {self.node_id}, "
            f"timeout {self.config.timeout}s, interval {self.config.interval}s)"
        )
        if self.config.simulate:
            # the node was not actually drained, so polling would only run into the timeout
            logger.debug("[lifecycle] Simulation mode: skipping drain polling")
            return None

        outcome = self.monitor.wait_for_drain(self.node_id, self.config.timeout, self.config.interval)
        if outcome is DrainOutcome.DRAINED:
            logger.info("[lifecycle] All tasks have been drained successfully.")
        else:
            if outcome is DrainOutcome.TIMED_OUT:
                logger.warning(f"[lifecycle] Timeout reached before all tasks drained on node '{self.hostname}'. Proceeding with forced container removal.")
            else:
                logger.warning(f"[lifecycle] Drain state of node '{self.hostname}' is unknown. Proceeding with forced container removal.")
            self.remove_leftover_containers()

        logger.debug("[lifecycle] Completed shutdown mode")
        return outcome

    def remove_leftover_containers(self):
        """Force-remove every container still present on this host. Best effort."""
        self._action("Force-remove leftover containers")
        if self.docker_client is None:
            logger.warning("[lifecycle] No local Docker client; cannot remove leftover containers.")
            return []

        try:
            containers = self.docker_client.containers.list()
        except (DockerException, requests.RequestException) as e:
            logger.error(f"[lifecycle] Cannot list leftover containers: {e}")
            return []

        if not containers:
            logger.info("[lifecycle] No leftover containers found. Nothing to force-remove.")
            return []

        logger.info(f"[lifecycle] Forcing removal of leftover containers: {', '.join(c.name for c in containers)}")
        removed = []
        for container in containers:
            try:
                container.remove(force=True)
                removed.append(container.name)
            except (DockerException, requests.RequestException) as e:
                logger.error(f"[lifecycle] Failed to remove container {container.name}: {e}")
        return removed


def build_controller(config, docker_client, http=None, sleep=time.sleep):
    """
    Detect the node's role and wire the matching update strategy.

    Managers mutate through the local daemon; workers proxy through the
    managers' HTTP API, whose endpoints are resolved here so a discovery
    failure stops the run before anything is changed.

    Raises:
        DiscoveryError: If a worker has no manager to proxy through.
        DetectionError: If the local node ID cannot be determined.
    """
    detector = NodeDetector(docker_client)
    is_manager = detector.is_manager()
    node_id = detector.local_node_id()

    if is_manager:
        updater = LocalNodeUpdater(docker_client)
    else:
        cluster = ClusterClient(http or HttpClient(timeout=config.request_timeout), config, docker_client)
        cluster.resolve_managers()
        updater = ProxiedNodeUpdater(cluster)

    return LifecycleController(
        config,
        detector,
        updater,
        is_manager,
        node_id,
        docker_client=docker_client,
        sleep=sleep,
    )
