"""
models.py
- Typed views of the Swarm objects this tool reads and writes.
- Decodes Docker Engine API JSON into closed enums at the boundary.
- Builds node update payloads that always carry Role and Labels forward.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Availability(str, Enum):
    """Scheduling eligibility of a Swarm node."""
    ACTIVE = "active"
    PAUSE = "pause"
    DRAIN = "drain"

    @classmethod
    def parse(cls, value, default=None):
        # docker node ls renders "Drain", the API uses "drain"
        if not value:
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


class NodeRole(str, Enum):
    """Role of a node in the Swarm."""
    MANAGER = "manager"
    WORKER = "worker"

    @classmethod
    def parse(cls, value, default=None):
        if not value:
            return default
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


class TaskState(str, Enum):
    """Swarm task states as reported in Status.State."""
    NEW = "new"
    PENDING = "pending"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    READY = "ready"
    PREPARING = "preparing"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETE = "complete"
    SHUTDOWN = "shutdown"
    FAILED = "failed"
    REJECTED = "rejected"
    ORPHANED = "orphaned"
    REMOVE = "remove"


# Tasks that have not reached running yet but will land on the node.
NON_TERMINAL_STATES = frozenset({
    TaskState.NEW,
    TaskState.PENDING,
    TaskState.ASSIGNED,
    TaskState.ACCEPTED,
    TaskState.READY,
    TaskState.PREPARING,
    TaskState.STARTING,
})


class DrainOutcome(str, Enum):
    """Result of waiting for a node's tasks to vacate."""
    DRAINED = "drained"
    TIMED_OUT = "timed_out"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class ManagerEndpoint:
    """A host:port pair through which the Docker Engine API is reachable."""
    host: str
    port: int

    @classmethod
    def parse(cls, address, default_port):
        """
        Parse "host" or "host:port" into an endpoint.

        Args:
            address (str): Manager address from config or discovery.
            default_port (int): Port used when the address carries none.

        Returns:
            ManagerEndpoint

        Raises:
            ValueError: If the address is empty or the port is not numeric.
        """
        address = address.strip()
        if not address:
            raise ValueError("empty manager address")
        host, sep, port = address.rpartition(":")
        if not sep:
            return cls(host=address, port=int(default_port))
        if not host or not port.isdigit():
            raise ValueError(f"invalid manager address: {address!r}")
        return cls(host=host, port=int(port))

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __str__(self):
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class NodeSpec:
    """
    Snapshot of a node record, fetched fresh before every mutation.

    version_index is the optimistic-concurrency counter the cluster checks
    on update; a stale value makes the update fail rather than overwrite.
    """
    node_id: str
    version_index: int
    role: NodeRole
    availability: Availability
    labels: Dict[str, str] = field(default_factory=dict)
    hostname: Optional[str] = None

    @classmethod
    def from_api(cls, node_id, payload):
        """
        Decode a GET /nodes/{id} response body.

        Raises:
            ValueError: If the payload is not an object or has no version index.
        """
        if not isinstance(payload, dict):
            raise ValueError("node payload is not a JSON object")
        version = (payload.get("Version") or {}).get("Index")
        if version is None:
            raise ValueError(f"node {node_id} payload has no Version.Index")
        spec = payload.get("Spec") or {}
        description = payload.get("Description") or {}
        return cls(
            node_id=payload.get("ID") or node_id,
            version_index=int(version),
            role=NodeRole.parse(spec.get("Role"), NodeRole.WORKER),
            availability=Availability.parse(spec.get("Availability"), Availability.ACTIVE),
            labels=dict(spec.get("Labels") or {}),
            hostname=description.get("Hostname"),
        )

    def update_payload(self, availability=None, extra_labels=None):
        """
        Build the body for POST /nodes/{id}/update.

        Role is always the current one and existing labels are kept; only the
        requested availability and any extra labels change.
        """
        labels = dict(self.labels)
        if extra_labels:
            labels.update(extra_labels)
        target = availability or self.availability
        return {
            "Availability": Availability(target).value,
            "Role": self.role.value,
            "Labels": labels,
        }


@dataclass(frozen=True)
class Task:
    """One scheduled workload instance placed on a node."""
    task_id: str
    node_id: Optional[str]
    state: Optional[TaskState]

    @classmethod
    def from_api(cls, payload):
        status = payload.get("Status") or {}
        try:
            state = TaskState(status.get("State"))
        except ValueError:
            state = None
        return cls(
            task_id=payload.get("ID", ""),
            node_id=payload.get("NodeID"),
            state=state,
        )
