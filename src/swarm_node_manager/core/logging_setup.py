"""
logging_setup.py
- Configures loguru sinks for boot/shutdown runs:
    - stderr when attached to a terminal or started by systemd
    - syslog (ident swarm_node_manager) when /dev/log exists
    - /dev/console so messages stay visible while the host shuts down
- Every sink is added with catch=True: a console that is already tearing down
  must never turn a log call into an exception.
"""

import os
import sys
from functools import partial
from logging.handlers import SysLogHandler

from loguru import logger

from swarm_node_manager.core.constants import (
    CONSOLE_DEVICE,
    MAX_LOG_MESSAGE_LENGTH,
    SYSLOG_IDENT,
    SYSLOG_SOCKET,
)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
PLAIN_FORMAT = "[{time:YYYY-MM-DD HH:mm:ssZZ}][{level}] {message}"


def truncate_message(record):
    if len(record["message"]) > MAX_LOG_MESSAGE_LENGTH:
        record["message"] = record["message"][:MAX_LOG_MESSAGE_LENGTH]


def wants_console(environ=None, stream=None):
    environ = os.environ if environ is None else environ
    stream = stream or sys.stderr
    try:
        is_tty = stream.isatty()
    except (AttributeError, ValueError):
        is_tty = False
    return is_tty or bool(environ.get("INVOCATION_ID"))


def write_console_device(message, path=CONSOLE_DEVICE):
    with open(path, "a") as console:
        console.write(message)


def configure_logging(level="INFO", force_console=False, syslog_socket=SYSLOG_SOCKET, console_device=CONSOLE_DEVICE, environ=None):
    """
    Replace loguru's default sink with the boot/shutdown sink set.

    Args:
        level (str): Minimum level for every sink ("DEBUG" or "INFO").
        syslog_socket (str): Unix socket of the local syslog daemon.
        console_device (str): Path of the system console device.
        force_console (bool): Log to stderr even without a terminal (--verbose).
        environ (Mapping): Environment used to detect systemd invocation.
    """
    logger.remove()
    logger.configure(patcher=truncate_message)

    if force_console or wants_console(environ):
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True, catch=True)

    if syslog_socket and os.path.exists(syslog_socket):
        try:
            handler = SysLogHandler(address=syslog_socket, facility=SysLogHandler.LOG_USER)
            handler.ident = f"{SYSLOG_IDENT}: "
            logger.add(handler, level=level, format="{message}", catch=True)
        except OSError as e:
            logger.warning(f"[logging] Syslog unavailable at {syslog_socket}: {e}")

    if console_device and os.access(console_device, os.W_OK):
        logger.add(partial(write_console_device, path=console_device), level=level, format=PLAIN_FORMAT, colorize=False, catch=True)
