"""
Team Netlink Client

A Python client for the Linux team network device driver. It talks to the
driver over generic netlink, mirrors the device's ports and options and
notifies registered handlers when they change.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later

Example:
    >>> from teamnl import ChangeType, TeamSession, setup_logging
    >>> setup_logging("debug")
    >>> with TeamSession() as session:
    ...     session.init(session.ifname2ifindex("team0"))
    ...     print(session.get_mode_name())
    ...     session.change_handler_register(lambda s: print(s.ports), ChangeType.PORT)
    ...     session.check_events()
"""

__version__ = "1.0.0"
__author__ = "LACP Daemon Team"
__email__ = "team@example.com"

from teamnl.cache import Option, OptionType, Port
from teamnl.dispatch import ChangeType
from teamnl.errors import (
    TeamAllocError,
    TeamConnectError,
    TeamEncodeError,
    TeamError,
    TeamExistsError,
    TeamInvalidArgumentError,
    TeamMembershipError,
    TeamNotFoundError,
    TeamProtocolError,
    TeamResolveError,
    TeamSyncError,
)
from teamnl.session import TeamSession
from teamnl.utils import setup_logging

__all__ = [
    "TeamSession",
    "ChangeType",
    "Port",
    "Option",
    "OptionType",
    "TeamError",
    "TeamAllocError",
    "TeamConnectError",
    "TeamResolveError",
    "TeamMembershipError",
    "TeamProtocolError",
    "TeamSyncError",
    "TeamEncodeError",
    "TeamNotFoundError",
    "TeamInvalidArgumentError",
    "TeamExistsError",
    "setup_logging",
]
