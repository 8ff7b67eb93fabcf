"""
constants.py
- Project-wide constants shared across the lifecycle, client and CLI modules.
- Includes retry timing, drain polling defaults and hardware signatures.
"""

# --- Retry Timing Defaults ---
DEFAULT_RETRY_ATTEMPTS = 5    # retries after the first attempt
DEFAULT_RETRY_INITIAL_DELAY = 1  # seconds, doubled per retry
DEFAULT_RETRY_MAX_DELAY = 60  # seconds

# --- Cluster API ---
DEFAULT_DOCKER_API_PORT = 2375
DEFAULT_REQUEST_TIMEOUT = 10  # seconds per HTTP call

# --- Drain Polling ---
DEFAULT_DRAIN_TIMEOUT = 90  # seconds
DEFAULT_DRAIN_INTERVAL = 10  # seconds between task checks

# --- Config Paths ---
DEFAULT_CONFIG_PATH = "/etc/swarm-node-manager/config.yml"

# --- Node Labels ---
GPU_LABEL = "gpu"
GPU_LABEL_VALUE = "true"

# --- Hardware Detection ---
GPU_VENDOR_SIGNATURES = ("nvidia", "amd")

# --- Preflight ---
REQUIRED_COMMANDS = ("systemctl",)

# --- Logging ---
SYSLOG_IDENT = "swarm_node_manager"
SYSLOG_SOCKET = "/dev/log"
CONSOLE_DEVICE = "/dev/console"
MAX_LOG_MESSAGE_LENGTH = 1024
