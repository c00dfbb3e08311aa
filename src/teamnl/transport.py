"""
Team Netlink Transport

This module wraps the two generic netlink sockets a team session uses:
the command channel for synchronous request/response and the event
channel subscribed to the driver's change-event multicast group.
Socket I/O, framing and sequence bookkeeping are left to pyroute2.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import errno
import logging
import struct
from collections.abc import Callable
from typing import Any

from pyroute2.netlink import NLM_F_ACK, NLM_F_REQUEST, NLMSG_DONE
from pyroute2.netlink.exceptions import NetlinkError
from pyroute2.netlink.generic import GenericNetlinkSocket

from teamnl.attrs import teamcmd
from teamnl.errors import (
    TeamAllocError,
    TeamConnectError,
    TeamEncodeError,
    TeamMembershipError,
    TeamResolveError,
)

logger = logging.getLogger(__name__)

# <linux/netlink.h>
SOL_NETLINK = 270
NETLINK_ADD_MEMBERSHIP = 1

MessageHandler = Callable[[Any], None]


class NetlinkChannel:
    """
    A generic netlink socket bound to one family.

    Args:
        name: Channel name used in log messages
        socket_factory: Callable returning a pyroute2 GenericNetlinkSocket
    """

    def __init__(self, name: str, socket_factory: Callable[[], Any] = GenericNetlinkSocket) -> None:
        self.name = name
        self.family_id: int | None = None
        self.groups: dict[str, int] = {}
        try:
            self.sock = socket_factory()
        except OSError as e:
            raise TeamAllocError(f"Could not allocate {name} channel: {e}") from e

    def connect(self, family_name: str, msg_class: type = teamcmd) -> int:
        """
        Attach the socket to the bus and resolve the netlink family.

        Args:
            family_name: Generic netlink family name
            msg_class: Message class used to parse the family's messages

        Returns:
            Resolved family identifier

        Raises:
            TeamResolveError: If the kernel does not know the family
            TeamConnectError: If the socket could not be attached
        """
        try:
            self.sock.bind(family_name, msg_class)
        except NetlinkError as e:
            if e.code == errno.ENOENT:
                raise TeamResolveError(f"Failed to resolve netlink family '{family_name}'") from e
            raise TeamConnectError(f"Failed to connect to netlink {self.name} sock: {e}") from e
        except OSError as e:
            raise TeamConnectError(f"Failed to connect to netlink {self.name} sock: {e}") from e

        self.family_id = self.sock.prid
        self.groups = dict(getattr(self.sock, "mcast_groups", None) or {})
        logger.debug(f"{self.name} channel bound to family '{family_name}' (id {self.family_id})")
        return self.family_id

    def resolve_group(self, group_name: str) -> int:
        """
        Look up a multicast group of the resolved family.

        Raises:
            TeamResolveError: If the family has no such group
        """
        group_id = self.groups.get(group_name)
        if group_id is None:
            raise TeamResolveError(f"Failed to resolve netlink multicast group '{group_name}'")
        return group_id

    def fileno(self) -> int:
        return self.sock.fileno()

    def close(self) -> None:
        self.sock.close()
        logger.debug(f"{self.name} channel closed")


class CommandChannel(NetlinkChannel):
    """
    Synchronous request/response channel.

    ``pending_error`` is 1 while a command is in flight, 0 once the driver
    acknowledged it and the driver's errno when it was rejected.
    """

    def __init__(self, socket_factory: Callable[[], Any] = GenericNetlinkSocket) -> None:
        super().__init__("command", socket_factory)
        self.pending_error = 0

    def on_ack(self) -> None:
        self.pending_error = 0

    def on_finish(self) -> None:
        self.pending_error = 0

    def on_error(self, code: int) -> None:
        self.pending_error = code

    def send_and_receive(self, msg: Any, valid_handler: MessageHandler | None = None) -> int:
        """
        Send a command and wait for its completion.

        Blocks until the driver acknowledges or rejects the command; there
        is no timeout.

        Args:
            msg: Team message to send
            valid_handler: Called with every reply message carrying data

        Returns:
            0 on success, the driver-reported errno otherwise

        Raises:
            TeamConnectError: If the channel was never connected or the socket failed
            TeamEncodeError: If the message could not be serialized
        """
        if self.family_id is None:
            raise TeamConnectError("Command channel is not connected")

        self.pending_error = 1
        try:
            replies = self.sock.nlm_request(msg, msg_type=self.family_id, msg_flags=NLM_F_REQUEST | NLM_F_ACK)
        except NetlinkError as e:
            self.on_error(e.code)
            logger.debug(f"Command {msg.get('cmd')} rejected by driver: {e}")
            return self.pending_error
        except struct.error as e:
            raise TeamEncodeError(f"Could not encode command {msg.get('cmd')}: {e}") from e
        except OSError as e:
            self.on_error(e.errno or errno.EIO)
            raise TeamConnectError(f"Command {msg.get('cmd')} failed on the socket: {e}", e.errno) from e

        for reply in replies:
            if reply["header"]["type"] == NLMSG_DONE:
                self.on_finish()
                continue
            if valid_handler is not None:
                valid_handler(reply)

        # nlm_request only returns once the ack was consumed
        self.on_ack()
        return self.pending_error


class EventChannel(NetlinkChannel):
    """
    Asynchronous notification channel.

    Multicast messages carry no request sequence, so replies are read
    without sequence matching.
    """

    def __init__(self, socket_factory: Callable[[], Any] = GenericNetlinkSocket) -> None:
        super().__init__("event", socket_factory)

    def join(self, group_id: int) -> None:
        """
        Subscribe to a multicast group.

        Raises:
            TeamMembershipError: If the membership could not be added
        """
        try:
            self.sock.setsockopt(SOL_NETLINK, NETLINK_ADD_MEMBERSHIP, group_id)
        except OSError as e:
            raise TeamMembershipError(f"Failed to add netlink membership to group {group_id}: {e}") from e
        logger.debug(f"Event channel joined multicast group {group_id}")

    def drain(self, valid_handler: MessageHandler) -> int:
        """
        Perform one receive pass and hand every message to ``valid_handler``.

        Returns:
            Number of messages received
        """
        messages = self.sock.get()
        for msg in messages:
            valid_handler(msg)
        return len(messages)
