"""
Team Utility Functions

This module provides logging setup and compact one-line renderings of
ports and options used in log messages.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from teamnl.cache import Option, Port

PACKAGE_LOGGER = "teamnl"
NETLINK_LOGGER = "pyroute2"

DUPLEX_NAMES = {0: "half", 1: "full"}


def format_port(port: "Port") -> str:
    """
    Format a port into a compact string representation.

    Args:
        port: Port record

    Returns:
        String such as "ifindex 12: up, 1000Mbit, full duplex"
    """
    link = "up" if port.linkup else "down"
    duplex = DUPLEX_NAMES.get(port.duplex, f"duplex {port.duplex}")
    text = f"ifindex {port.ifindex}: {link}, {port.speed}Mbit, {duplex} duplex"
    if port.changed:
        text += " (changed)"
    return text


def format_option(option: "Option") -> str:
    """
    Format an option into a compact string representation.

    Args:
        option: Option record

    Returns:
        String such as 'mode "roundrobin"' or "activeport 12"
    """
    if isinstance(option.value, str):
        text = f'{option.name} "{option.value}"'
    else:
        text = f"{option.name} {option.value}"
    if option.changed:
        text += " (changed)"
    return text


def _level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper())
    return level


def setup_logging(
    level: str | int = logging.INFO,
    format_string: str | None = None,
    log_file: str | None = None,
    netlink_level: str | int = logging.WARNING,
) -> logging.Logger:
    """
    Route teamnl log records to stderr and optionally a file.

    Only the ``teamnl`` package logger is configured, so applications
    embedding a session keep their own root logger setup. The ``pyroute2``
    logger is held at ``netlink_level`` independently of ``level``.

    Args:
        level: Level for teamnl messages (string or int)
        format_string: Custom format string for log messages
        log_file: Optional log file path
        netlink_level: Level for the pyroute2 netlink library

    Returns:
        The configured teamnl package logger
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(format_string)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(_level(level))
    package_logger.propagate = False
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    logging.getLogger(NETLINK_LOGGER).setLevel(_level(netlink_level))
    return package_logger
