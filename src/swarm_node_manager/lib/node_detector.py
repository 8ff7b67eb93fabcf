"""
node_detector.py
- Determines whether the local node is a Swarm manager or worker.
- Resolves the local node ID and hostname.
- Detects GPU hardware (NVIDIA/AMD) from the PCI bus listing for labeling.
"""

import shutil
import socket
import subprocess

from docker.errors import DockerException
from loguru import logger

from swarm_node_manager.core.constants import GPU_VENDOR_SIGNATURES
from swarm_node_manager.core.errors import DetectionError


class NodeDetector:
    def __init__(self, docker_client, lspci_path=None):
        self.client = docker_client
        self.lspci_path = lspci_path

    def hostname(self):
        return socket.gethostname()

    def is_manager(self):
        """
        True iff the local node may list Swarm nodes.

        Workers are refused this query by the cluster itself, so a failure
        means "worker" rather than an error.
        """
        try:
            self.client.nodes.list()
        except DockerException as e:
            logger.debug(f"[detector] Node listing refused: {e}")
            logger.info(f"[detector] Node '{self.hostname()}' is a worker node.")
            return False
        logger.info(f"[detector] Node '{self.hostname()}' is a manager node.")
        return True

    def local_node_id(self):
        """
        Return the Swarm node ID of this host.

        Raises:
            DetectionError: If the daemon is not part of a Swarm.
        """
        try:
            node_id = (self.client.info().get("Swarm") or {}).get("NodeID")
        except DockerException as e:
            raise DetectionError(f"Cannot read Swarm info from the local daemon: {e}")
        if not node_id:
            raise DetectionError("This host is not part of a Swarm (empty Swarm.NodeID)")
        logger.debug(f"[detector] Local node ID: {node_id}")
        return node_id

    def detect_gpu(self):
        """
        Look for a known accelerator vendor in `lspci` output.

        Returns:
            bool: False (with a warning) when lspci is unavailable.
        """
        lspci = self.lspci_path or shutil.which("lspci")
        if not lspci:
            logger.warning("[detector] lspci command not found. Cannot detect GPU automatically.")
            return False

        try:
            result = subprocess.run([lspci], capture_output=True, text=True, timeout=10)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"[detector] lspci failed, assuming no GPU: {e}")
            return False

        if result.returncode != 0:
            logger.warning(f"[detector] lspci exited with {result.returncode}, assuming no GPU")
            return False

        listing = result.stdout.lower()
        if any(vendor in listing for vendor in GPU_VENDOR_SIGNATURES):
            logger.info(f"[detector] Detected GPU on node '{self.hostname()}'.")
            return True
        logger.info(f"[detector] No GPU detected on node '{self.hostname()}'.")
        return False
