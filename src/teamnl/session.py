"""
Team Session

This module implements the TeamSession class, the public entry point for
controlling one team network device. A session mirrors the device's ports
and options, lets callers read and change options, and delivers change
notifications to registered handlers.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import logging
import select
from collections.abc import Callable
from typing import Any

from pyroute2 import IPRoute
from pyroute2.netlink.generic import GenericNetlinkSocket

from teamnl.attrs import (
    TEAM_CMD_OPTIONS_GET,
    TEAM_CMD_PORT_LIST_GET,
    TEAM_GENL_CHANGE_EVENT_MC_GRP_NAME,
    TEAM_GENL_NAME,
    build_option_set,
    build_request,
    decode_option_list,
    decode_port_list,
)
from teamnl.cache import EntityCache, Option, OptionType, Port
from teamnl.dispatch import ChangeDispatcher, ChangeHandlerFunc, ChangeType
from teamnl.errors import (
    TeamError,
    TeamInvalidArgumentError,
    TeamNotFoundError,
    TeamProtocolError,
    TeamSyncError,
)
from teamnl.link import LinkResolver
from teamnl.transport import CommandChannel, EventChannel
from teamnl.utils import format_option, format_port

logger = logging.getLogger(__name__)

MODE_OPTION = "mode"
ACTIVE_PORT_OPTION = "activeport"


class TeamSession:
    """
    Control session for one team device.

    Constructing a session allocates its channels; ``init()`` attaches it to
    a team device and performs the initial sync; ``free()`` releases
    everything. Sessions are not thread safe.

    Args:
        family_name: Generic netlink family of the team driver
        group_name: Multicast group carrying change notifications
        socket_factory: Callable returning a pyroute2 GenericNetlinkSocket
        link_factory: Callable returning a pyroute2 IPRoute socket

    Raises:
        TeamAllocError: If a channel or the link resolver cannot be created
    """

    def __init__(
        self,
        family_name: str = TEAM_GENL_NAME,
        group_name: str = TEAM_GENL_CHANGE_EVENT_MC_GRP_NAME,
        socket_factory: Callable[[], Any] = GenericNetlinkSocket,
        link_factory: Callable[[], Any] = IPRoute,
    ) -> None:
        self.family_name = family_name
        self.group_name = group_name
        self.family_id: int | None = None
        self.group_id: int | None = None
        self.ifindex = 0
        self.cache = EntityCache()
        self.dispatcher = ChangeDispatcher(owner=self)
        self.freed = False

        allocated: list[Any] = []
        try:
            self.cmd_channel = CommandChannel(socket_factory)
            allocated.append(self.cmd_channel)
            self.event_channel = EventChannel(socket_factory)
            allocated.append(self.event_channel)
            self.link_resolver = LinkResolver(link_factory)
        except TeamError:
            for resource in reversed(allocated):
                resource.close()
            raise

        self._event_handlers = {
            TEAM_CMD_PORT_LIST_GET: self._port_list_handler,
            TEAM_CMD_OPTIONS_GET: self._options_handler,
        }

    def __enter__(self) -> "TeamSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.free()

    def __repr__(self) -> str:
        return f"TeamSession(ifindex={self.ifindex}, family_id={self.family_id})"

    def init(self, ifindex: int) -> None:
        """
        Attach the session to a team device and sync its state.

        On failure the session is left as far as it got; the caller is
        expected to ``free()`` it.

        Args:
            ifindex: Interface index of the team device

        Raises:
            TeamInvalidArgumentError: If ``ifindex`` is zero
            TeamConnectError: If a channel cannot attach to netlink
            TeamResolveError: If the family or multicast group is unknown
            TeamMembershipError: If the multicast group cannot be joined
            TeamSyncError: If the initial port or option sync fails
        """
        if not ifindex:
            logger.error(f"Passed interface index {ifindex} is not valid.")
            raise TeamInvalidArgumentError(f"Passed interface index {ifindex} is not valid")
        self.ifindex = ifindex

        try:
            self.family_id = self.cmd_channel.connect(self.family_name)
            self.event_channel.connect(self.family_name)
            self.group_id = self.cmd_channel.resolve_group(self.group_name)
            self.event_channel.join(self.group_id)
        except TeamError as e:
            logger.error(f"Failed to set up team netlink channels: {e}")
            raise

        try:
            self.refresh_ports()
        except TeamError as e:
            logger.error("Failed to get port list.")
            raise TeamSyncError(f"Failed to get port list: {e}", e.errno) from e

        try:
            self.refresh_options()
        except TeamError as e:
            logger.error("Failed to get options.")
            raise TeamSyncError(f"Failed to get options: {e}", e.errno) from e

        logger.info(
            f"Team session initialized for ifindex {ifindex}: "
            f"{len(self.cache.ports)} port(s), {len(self.cache.options)} option(s)"
        )

    def free(self) -> None:
        """Release cached state, the link resolver and both channels."""
        if self.freed:
            return
        self.freed = True
        self.cache.clear()
        self.link_resolver.close()
        self.event_channel.close()
        self.cmd_channel.close()
        logger.debug(f"Team session for ifindex {self.ifindex} freed")

    # Message handlers, shared by command replies and notifications

    def _port_list_handler(self, msg: Any) -> None:
        ports = decode_port_list(msg, self.ifindex)
        if ports is None:
            return
        self.cache.replace_ports(ports)
        for port in ports:
            logger.debug(f"Port {format_port(port)}")
        self.dispatcher.mark_due(ChangeType.PORT)

    def _options_handler(self, msg: Any) -> None:
        options = decode_option_list(msg, self.ifindex)
        if options is None:
            return
        self.cache.replace_options(options)
        for option in options:
            logger.debug(f"Option {format_option(option)}")
        self.dispatcher.mark_due(ChangeType.OPTION)

    def _event_handler(self, msg: Any) -> None:
        handler = self._event_handlers.get(msg.get("cmd"))
        if handler is None:
            logger.debug(f"Ignoring team event with command {msg.get('cmd')}")
            return
        handler(msg)

    def _command(self, msg: Any, valid_handler: Callable[[Any], None] | None = None) -> None:
        err = self.cmd_channel.send_and_receive(msg, valid_handler)
        if err:
            raise TeamProtocolError(f"Team command {msg.get('cmd')} failed with error {err}", err)

    # Sync

    def refresh_ports(self) -> None:
        """
        Fetch the full port list from the driver and fire due port handlers.

        Raises:
            TeamProtocolError: If the driver rejects the request
        """
        self._command(build_request(TEAM_CMD_PORT_LIST_GET, self.ifindex), self._port_list_handler)
        self.dispatcher.fire_due(ChangeType.PORT)

    def refresh_options(self) -> None:
        """
        Fetch the full option list from the driver and fire due option handlers.

        Raises:
            TeamProtocolError: If the driver rejects the request
        """
        self._command(build_request(TEAM_CMD_OPTIONS_GET, self.ifindex), self._options_handler)
        self.dispatcher.fire_due(ChangeType.OPTION)

    # Events

    def get_event_fd(self) -> int:
        """Return the event channel descriptor for external polling."""
        return self.event_channel.fileno()

    def process_event(self) -> None:
        """Receive one batch of notifications and run due handlers."""
        self.event_channel.drain(self._event_handler)
        self.dispatcher.fire_due(ChangeType.ALL)

    def check_events(self) -> None:
        """Process notifications until the event channel is no longer readable."""
        fd = self.get_event_fd()
        while True:
            try:
                readable, _, _ = select.select([fd], [], [], 0)
            except InterruptedError:
                continue
            if fd not in readable:
                break
            self.process_event()

    # Change handlers

    def change_handler_register(self, func: ChangeHandlerFunc, change_type: ChangeType = ChangeType.ALL) -> None:
        """
        Register ``func(session)`` to be called on changes of ``change_type``.

        Raises:
            TeamExistsError: If ``func`` is already registered
        """
        self.dispatcher.register(func, change_type)

    def change_handler_unregister(self, func: ChangeHandlerFunc) -> None:
        self.dispatcher.unregister(func)

    # Ports

    @property
    def ports(self) -> tuple[Port, ...]:
        return self.cache.ports

    def get_next_port(self, port: Port | None = None) -> Port | None:
        return self.cache.next_port(port)

    # Options

    @property
    def options(self) -> tuple[Option, ...]:
        return self.cache.options

    def get_next_option(self, option: Option | None = None) -> Option | None:
        return self.cache.next_option(option)

    def get_option_by_name(self, name: str) -> Option | None:
        return self.cache.find_option(name)

    def _get_typed_option(self, name: str, opt_type: OptionType) -> Option:
        option = self.cache.find_option(name)
        if option is None:
            raise TeamNotFoundError(f"No option named '{name}'")
        if option.type != opt_type:
            raise TeamInvalidArgumentError(f"Option '{name}' is of type {option.type.name}, not {opt_type.name}")
        return option

    def get_option_value_by_name_u32(self, name: str) -> int:
        """
        Return the value of u32 option ``name``.

        Raises:
            TeamNotFoundError: If there is no such option
            TeamInvalidArgumentError: If the option is not a u32 option
        """
        return int(self._get_typed_option(name, OptionType.U32).value)

    def get_option_value_by_name_string(self, name: str) -> str:
        """
        Return the value of string option ``name``.

        Raises:
            TeamNotFoundError: If there is no such option
            TeamInvalidArgumentError: If the option is not a string option
        """
        return str(self._get_typed_option(name, OptionType.STRING).value)

    def _set_option_value(self, name: str, opt_type: OptionType, value: int | str) -> None:
        msg = build_option_set(self.ifindex, name, opt_type, value)
        self._command(msg)
        logger.debug(f"Option '{name}' set to {value!r}")

    def set_option_value_by_name_u32(self, name: str, value: int) -> None:
        """
        Set u32 option ``name``.

        The cached snapshot is updated by the driver's change notification.

        Raises:
            TeamEncodeError: If the value cannot be encoded
            TeamProtocolError: If the driver rejects the change
        """
        self._set_option_value(name, OptionType.U32, value)

    def set_option_value_by_name_string(self, name: str, value: str) -> None:
        """
        Set string option ``name``.

        Raises:
            TeamEncodeError: If the value cannot be encoded
            TeamProtocolError: If the driver rejects the change
        """
        self._set_option_value(name, OptionType.STRING, value)

    def get_mode_name(self) -> str:
        return self.get_option_value_by_name_string(MODE_OPTION)

    def set_mode_name(self, mode_name: str) -> None:
        self.set_option_value_by_name_string(MODE_OPTION, mode_name)

    def get_active_port(self) -> int:
        return self.get_option_value_by_name_u32(ACTIVE_PORT_OPTION)

    def set_active_port(self, ifindex: int) -> None:
        self.set_option_value_by_name_u32(ACTIVE_PORT_OPTION, ifindex)

    # Link names

    def ifname2ifindex(self, ifname: str) -> int:
        """Return the interface index of ``ifname``, 0 if unknown."""
        return self.link_resolver.name2index(ifname)

    def ifindex2ifname(self, ifindex: int) -> str | None:
        """Return the name of interface ``ifindex``, None if unknown."""
        return self.link_resolver.index2name(ifindex)
