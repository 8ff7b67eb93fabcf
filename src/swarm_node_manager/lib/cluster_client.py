"""
cluster_client.py
- Talks to the Docker Engine API of one or more Swarm managers over HTTP.
- Reads node specs (with their optimistic-concurrency version) and posts updates.
- Fails over across managers in a fixed order: one unreachable or stale
  manager never blocks a lifecycle transition on its own.
"""

import json

import requests
from docker.errors import DockerException
from loguru import logger

from swarm_node_manager.core.constants import GPU_LABEL, GPU_LABEL_VALUE
from swarm_node_manager.core.errors import DiscoveryError, TaskQueryError
from swarm_node_manager.core.models import ManagerEndpoint, NodeSpec, Task


def _is_success(status_code):
    return 200 <= status_code < 300


class ClusterClient:
    """
    Manager-proxied access to node and task records.

    Args:
        http: Transport exposing get(url, params) and post(url, params, json).
        config (NodeManagerConfig): Pinned managers and API port.
        docker_client: Local Docker SDK client, used only for manager discovery.
    """

    def __init__(self, http, config, docker_client=None):
        self.http = http
        self.config = config
        self.docker_client = docker_client
        self._managers = None

    # --- Manager Endpoints ---

    def resolve_managers(self):
        """
        Return the manager endpoints to proxy through, in a fixed order.

        Configured addresses win; otherwise the local membership view is asked
        for role=manager nodes. Resolved once per client.

        Raises:
            DiscoveryError: If no manager is configured or discoverable.
        """
        if self._managers is not None:
            return self._managers

        managers = self.config.manager_endpoints()
        if managers:
            logger.debug(f"[cluster] Using specified manager addresses: {[str(m) for m in managers]}")
        else:
            managers = self._discover_managers()
            logger.debug(f"[cluster] Discovered manager nodes: {[str(m) for m in managers]}")

        if not managers:
            raise DiscoveryError("No manager nodes found. Please specify manager addresses with -a.")
        self._managers = managers
        return managers

    def _discover_managers(self):
        if self.docker_client is None:
            return []
        try:
            nodes = self.docker_client.nodes.list(filters={"role": "manager"})
        except DockerException as e:
            logger.warning(f"[cluster] Manager discovery failed (this node cannot list nodes): {e}")
            return []
        hostnames = [n.attrs.get("Description", {}).get("Hostname") for n in nodes]
        return [ManagerEndpoint(host=h, port=self.config.docker_api_port) for h in hostnames if h]

    # --- Node Records ---

    def get_node_spec(self, node_id, manager):
        """
        Fetch the current spec of `node_id` through `manager`.

        Returns:
            NodeSpec or None: None on transport errors, non-2xx answers, or an
            empty/unparseable body, so the caller can try the next manager.
        """
        url = f"{manager.base_url}/nodes/{node_id}"
        try:
            response = self.http.get(url)
        except requests.RequestException as e:
            logger.warning(f"[cluster] Failed to retrieve node spec from manager {manager}: {e}")
            return None

        if not _is_success(response.status_code):
            logger.warning(f"[cluster] Manager {manager} returned HTTP {response.status_code} for node {node_id}")
            return None
        if not response.text.strip():
            logger.warning(f"[cluster] Empty node spec from manager {manager}")
            return None

        try:
            return NodeSpec.from_api(node_id, response.json())
        except ValueError as e:
            logger.warning(f"[cluster] Unparseable node spec from manager {manager}: {e}")
            return None

    def update_node(self, node_id, availability=None, gpu=False, labels=None):
        """
        Read-modify-write a node record, failing over across managers.

        Args:
            node_id (str): Swarm node ID.
            availability (Availability): Target availability; None keeps the current one.
            gpu (bool): Merge gpu=true into the node's labels.
            labels (dict): Additional labels to merge.

        Returns:
            bool: True on the first 2xx answer; False if every manager failed.
        """
        extra_labels = dict(labels or {})
        if gpu:
            extra_labels[GPU_LABEL] = GPU_LABEL_VALUE

        for manager in self.resolve_managers():
            logger.debug(f"[cluster] Attempting to update node {node_id} on manager {manager}")
            spec = self.get_node_spec(node_id, manager)
            if spec is None:
                continue

            if availability is None:
                logger.debug(f"[cluster] Using current node availability: {spec.availability.value}")
            payload = spec.update_payload(availability=availability, extra_labels=extra_labels)
            logger.debug(f"[cluster] Payload for {node_id} (version {spec.version_index}): {payload}")

            if self._post_update(manager, node_id, spec.version_index, payload):
                logger.info(f"[cluster] Successfully updated node '{node_id}' via manager '{manager}'.")
                return True
            logger.warning(f"[cluster] Failed to update node '{node_id}' via manager '{manager}'.")

        logger.error(f"[cluster] Failed to update node '{node_id}' on all manager nodes.")
        return False

    def _post_update(self, manager, node_id, version, payload):
        url = f"{manager.base_url}/nodes/{node_id}/update"
        try:
            response = self.http.post(url, params={"version": version}, json=payload)
        except requests.RequestException as e:
            logger.warning(f"[cluster] Update request to manager {manager} failed: {e}")
            return False

        logger.debug(f"[cluster] HTTP status from {manager}: {response.status_code}")
        if _is_success(response.status_code):
            return True
        logger.error(f"[cluster] Manager {manager} rejected update of {node_id}: HTTP {response.status_code} {response.text.strip()}")
        return False

    # --- Tasks ---

    def list_tasks(self, node_id):
        """
        List the tasks scheduled on `node_id`.

        Raises:
            TaskQueryError: If no manager returned a parseable task list.
        """
        params = {"filters": json.dumps({"node": [node_id]})}
        for manager in self.resolve_managers():
            try:
                response = self.http.get(f"{manager.base_url}/tasks", params=params)
            except requests.RequestException as e:
                logger.warning(f"[cluster] Cannot query tasks on manager {manager}: {e}")
                continue
            if not _is_success(response.status_code):
                logger.warning(f"[cluster] Task query on manager {manager} returned HTTP {response.status_code}")
                continue
            try:
                payload = response.json()
            except ValueError as e:
                logger.warning(f"[cluster] Unparseable task list from manager {manager}: {e}")
                continue
            if not isinstance(payload, list):
                logger.warning(f"[cluster] Unexpected task list from manager {manager}: {type(payload).__name__}")
                continue
            return [Task.from_api(t) for t in payload if isinstance(t, dict)]

        raise TaskQueryError(f"Could not query tasks for node {node_id} on any manager")
