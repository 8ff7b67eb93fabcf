"""
node_updaters.py
- Two ways of mutating a node record, chosen once from the node's role:
    - LocalNodeUpdater: managers update through the local Docker SDK (no network hop)
    - ProxiedNodeUpdater: workers proxy through a manager's HTTP API
- Both re-read the node before writing and carry Role and Labels forward,
  so an availability change never drops labels or flips the role.
"""

import requests
from docker.errors import DockerException
from loguru import logger

from swarm_node_manager.core.errors import TaskQueryError
from swarm_node_manager.core.models import Availability, NodeRole, NodeSpec, Task


class LocalNodeUpdater:
    """Node mutations through the local manager daemon."""

    proxied = False

    def __init__(self, client):
        self.client = client

    def _update(self, node_id, availability=None, labels=None):
        node = self.client.nodes.get(node_id)
        node.reload()
        spec = NodeSpec.from_api(node.id, node.attrs)
        payload = spec.update_payload(availability=availability, extra_labels=labels)
        logger.debug(f"[updater] Local update of {node_id} (version {spec.version_index}): {payload}")
        # Node.update sends the version read by reload(); a concurrent write makes it fail
        return node.update(payload)

    def set_availability(self, node_id, availability):
        return self._update(node_id, availability=availability)

    def add_labels(self, node_id, labels):
        return self._update(node_id, labels=labels)

    def list_tasks(self, node_id):
        try:
            tasks = self.client.api.tasks(filters={"node": node_id})
        except (DockerException, requests.RequestException) as e:
            raise TaskQueryError(f"Cannot query tasks for node {node_id}: {e}")
        return [Task.from_api(t) for t in tasks]

    def list_drained_workers(self):
        """Return specs of worker nodes currently in drain, or None if the listing failed."""
        try:
            workers = self.client.nodes.list(filters={"role": NodeRole.WORKER.value})
            specs = [NodeSpec.from_api(node.id, node.attrs) for node in workers]
        except (DockerException, requests.RequestException, ValueError) as e:
            logger.warning(f"[updater] Cannot list worker nodes: {e}")
            return None
        return [spec for spec in specs if spec.availability is Availability.DRAIN]


class ProxiedNodeUpdater:
    """Node mutations proxied through the Cluster Client's managers."""

    proxied = True

    def __init__(self, cluster):
        self.cluster = cluster

    def set_availability(self, node_id, availability):
        return self.cluster.update_node(node_id, availability=availability)

    def add_labels(self, node_id, labels):
        # availability None: keep whatever the manager reports right now
        return self.cluster.update_node(node_id, labels=labels)

    def list_tasks(self, node_id):
        return self.cluster.list_tasks(node_id)
