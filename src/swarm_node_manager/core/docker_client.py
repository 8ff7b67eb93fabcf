"""
docker_client.py
- Creates the Docker SDK client used for local (no network hop) node operations.
- Only managers can list or update nodes through it; workers use it for
  Swarm identity and local containers.
"""

import docker
from docker.errors import DockerException

from swarm_node_manager.core.constants import DEFAULT_REQUEST_TIMEOUT
from swarm_node_manager.core.errors import DependencyError


def create_client(timeout=DEFAULT_REQUEST_TIMEOUT):
    """
    Build a client from the environment (DOCKER_HOST or the local socket).

    Raises:
        DependencyError: If the Docker daemon cannot be reached.
    """
    try:
        client = docker.from_env(timeout=timeout)
        client.ping()
        return client
    except DockerException as e:
        raise DependencyError(f"Docker daemon is not reachable: {e}")
