"""
errors.py
- Exception hierarchy for fatal conditions that stop a lifecycle run.
- Transient per-manager failures are never raised; they surface as None/False.
"""


class NodeManagerError(Exception):
    """Base class for every fatal error raised by swarm_node_manager."""


class ConfigError(NodeManagerError):
    """Invalid configuration value (port, timeout, mode...)."""


class DependencyError(NodeManagerError):
    """A required host tool or the Docker daemon is unavailable."""


class DiscoveryError(NodeManagerError):
    """No manager endpoint is configured or discoverable."""


class DetectionError(NodeManagerError):
    """The local node identity could not be determined."""


class TaskQueryError(NodeManagerError):
    """The task list for a node could not be fetched or parsed."""


class LifecycleError(NodeManagerError):
    """A mutating lifecycle step exhausted its retries."""
