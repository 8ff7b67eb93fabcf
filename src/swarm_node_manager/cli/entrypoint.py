#!/usr/bin/env python3
"""
entrypoint.py
- Command-line entrypoint invoked by the host's service manager.
- Usage:
    swarm-node-manager -m startup  [-a mgr1,mgr2:2376] [-g] [-s]
    swarm-node-manager -m shutdown [-t 90] [-i 10] [-s]

- Exit codes: 0 success, 1 fatal runtime error, 2 invalid arguments.
"""

import argparse
import signal
import sys

import requests
import sentry_sdk
from docker.errors import DockerException
from loguru import logger

from swarm_node_manager import __version__
from swarm_node_manager.core.config import build_config, config_path_from_env
from swarm_node_manager.core.config_loader import load_yaml, preview_yaml
from swarm_node_manager.core.errors import ConfigError, NodeManagerError
from swarm_node_manager.core.logging_setup import configure_logging
from swarm_node_manager.runner.lifecycle import build_controller
from swarm_node_manager.runner.preflight import run_preflight

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

EPILOG = """Examples:
  swarm-node-manager -m startup -a "manager1.example.com" -p 2376
  swarm-node-manager -m shutdown --simulate
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="swarm-node-manager",
        description="Activate a Docker Swarm node at boot and drain it at shutdown.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-m", "--mode", help="startup|su or shutdown|sd")
    parser.add_argument("-a", "--manager-address", dest="manager_addresses",
                        help="Comma-separated list of manager addresses (host or host:port)")
    parser.add_argument("-p", "--port", dest="docker_api_port", help="Docker API port (default: 2375)")
    parser.add_argument("-g", "--gpu-node", dest="gpu_node", action="store_true", default=None,
                        help="Treat this node as a GPU node without auto-detection")
    parser.add_argument("-s", "--simulate", action="store_true", default=None,
                        help="Log intended actions without changing the cluster")
    parser.add_argument("-t", "--timeout", help="Seconds to wait for tasks to drain (default: 90)")
    parser.add_argument("-i", "--interval", help="Seconds between task checks (default: 10)")
    parser.add_argument("-c", "--config", dest="config_path", help="YAML config file with default overrides")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Always log to the terminal")
    parser.add_argument("-d", "--debug", action="store_true", default=None, help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def handle_exit(signum, frame):
    logger.warning(f"[main] Received signal {signum}. Exiting before completion.")
    sys.exit(128 + signum)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config_path = args.config_path or config_path_from_env()
    cli_values = {k: v for k, v in vars(args).items() if k not in ("mode", "config_path")}

    try:
        config = build_config(args.mode, cli_values=cli_values, file_values=load_yaml(config_path), config_path=config_path)
    except ConfigError as e:
        configure_logging("DEBUG" if args.debug else "INFO", force_console=True)
        logger.error(f"[main] {e}")
        parser.print_usage(sys.stderr)
        return EXIT_USAGE

    configure_logging(config.log_level, force_console=config.verbose)
    if config.debug:
        preview_yaml(config_path, name="config")
    if config.sentry_dsn:
        sentry_sdk.init(dsn=config.sentry_dsn, traces_sample_rate=1.0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    logger.info(f"[main] swarm-node-manager {__version__}: mode={config.mode.value}"
                f"{' (simulation)' if config.simulate else ''}")
    try:
        docker_client = run_preflight(config)
        controller = build_controller(config, docker_client)
        controller.run()
    except NodeManagerError as e:
        logger.error(f"[main] {e}")
        return EXIT_FAILURE
    except (DockerException, requests.RequestException) as e:
        logger.error(f"[main] Docker API error: {e}")
        return EXIT_FAILURE

    logger.info(f"[main] {config.mode.value.capitalize()} completed.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
