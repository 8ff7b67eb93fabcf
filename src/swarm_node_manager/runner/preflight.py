"""
preflight.py
- Environment checks run before any cluster interaction:
    - warn on non-Linux hosts
    - verify required host commands are installed
    - connect to the Docker daemon, starting it via systemd at boot if needed
"""

import shutil
import subprocess
import sys
import time

from loguru import logger

from swarm_node_manager.core.config import Mode
from swarm_node_manager.core.constants import REQUIRED_COMMANDS
from swarm_node_manager.core.docker_client import create_client
from swarm_node_manager.core.errors import DependencyError
from swarm_node_manager.lib.retries import retry

INSTALL_HINTS = {
    "systemctl": "systemctl (part of systemd, usually included in most distributions)",
    "lspci": "lspci (part of pciutils, e.g., sudo apt install pciutils)",
}


def check_platform(platform=None):
    platform = platform or sys.platform
    if not platform.startswith("linux"):
        logger.warning(f"[preflight] This tool is designed for Linux systems. Detected OS: {platform}")
        return False
    return True


def check_dependencies(required=REQUIRED_COMMANDS, which=shutil.which):
    """
    Raises:
        DependencyError: Listing every missing command with an install hint.
    """
    missing = [cmd for cmd in required if not which(cmd)]
    if missing:
        hints = "; ".join(INSTALL_HINTS.get(cmd, cmd) for cmd in missing)
        raise DependencyError(f"Missing dependencies: {', '.join(missing)}. Please install: {hints}")
    logger.debug("[preflight] All dependencies are installed.")


def start_docker_service():
    """Ask systemd to start Docker; True once the unit reports active."""
    subprocess.run(["systemctl", "start", "docker"], capture_output=True, text=True, timeout=60)
    status = subprocess.run(["systemctl", "is-active", "--quiet", "docker"], timeout=10)
    return status.returncode == 0


def connect_docker(config, client_factory=create_client, starter=start_docker_service, sleep=time.sleep):
    """
    Return a connected Docker SDK client.

    In startup mode a stopped daemon is started (with retries); at shutdown
    it is never started.

    Raises:
        DependencyError: If the daemon is unreachable and cannot be started.
    """
    try:
        return client_factory(timeout=config.request_timeout)
    except DependencyError as e:
        if config.mode is not Mode.STARTUP:
            raise
        logger.info(f"[preflight] Docker is not running ({e}). Attempting to start Docker...")

    if not retry(starter, description="Start Docker service", sleep=sleep):
        raise DependencyError("Failed to start Docker after multiple attempts. Please ensure Docker is installed and can be started.")
    logger.info("[preflight] Docker service started.")
    return client_factory(timeout=config.request_timeout)


def run_preflight(config, client_factory=create_client, which=shutil.which, sleep=time.sleep):
    check_platform()
    check_dependencies(which=which)
    return connect_docker(config, client_factory=client_factory, sleep=sleep)
