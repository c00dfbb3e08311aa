"""
Team Netlink Attribute Codec

This module defines the generic netlink message layout of the team driver
and converts between its nested attribute trees and the cache's Port and
Option records.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import logging
import struct

from pyroute2.netlink import genlmsg, nla

from teamnl.cache import U32_FORMAT, Option, OptionType, Port
from teamnl.errors import TeamEncodeError, TeamInvalidArgumentError

logger = logging.getLogger(__name__)

# Generic netlink family
TEAM_GENL_NAME = "team"
TEAM_GENL_VERSION = 1
TEAM_GENL_CHANGE_EVENT_MC_GRP_NAME = "change_event"

# Commands
TEAM_CMD_NOOP = 0
TEAM_CMD_OPTIONS_SET = 1
TEAM_CMD_OPTIONS_GET = 2
TEAM_CMD_PORT_LIST_GET = 3

# Option type tags carried in TEAM_ATTR_OPTION_TYPE
NLA_U32 = 3
NLA_STRING = 5

NLA_TYPE_TO_OPTION_TYPE = {
    NLA_U32: OptionType.U32,
    NLA_STRING: OptionType.STRING,
}
OPTION_TYPE_TO_NLA_TYPE = {opt_type: nla_type for nla_type, opt_type in NLA_TYPE_TO_OPTION_TYPE.items()}

NLA_HDRLEN = 4
NLA_MAX_LEN = 0xFFFF


class teamcmd(genlmsg):
    """Team generic netlink message."""

    nla_map = (
        ("TEAM_ATTR_UNSPEC", "none"),
        ("TEAM_ATTR_TEAM_IFINDEX", "uint32"),
        ("TEAM_ATTR_LIST_OPTION", "option_list"),
        ("TEAM_ATTR_LIST_PORT", "port_list"),
    )

    class option_list(nla):
        nla_map = (
            ("TEAM_ATTR_ITEM_OPTION_UNSPEC", "none"),
            ("TEAM_ATTR_ITEM_OPTION", "item_option"),
        )

        class item_option(nla):
            nla_map = (
                ("TEAM_ATTR_OPTION_UNSPEC", "none"),
                ("TEAM_ATTR_OPTION_NAME", "asciiz"),
                ("TEAM_ATTR_OPTION_CHANGED", "flag"),
                ("TEAM_ATTR_OPTION_TYPE", "uint32"),
                ("TEAM_ATTR_OPTION_DATA", "cdata"),
            )

    class port_list(nla):
        nla_map = (
            ("TEAM_ATTR_ITEM_PORT_UNSPEC", "none"),
            ("TEAM_ATTR_ITEM_PORT", "item_port"),
        )

        class item_port(nla):
            nla_map = (
                ("TEAM_ATTR_PORT_UNSPEC", "none"),
                ("TEAM_ATTR_PORT_IFINDEX", "uint32"),
                ("TEAM_ATTR_PORT_CHANGED", "flag"),
                ("TEAM_ATTR_PORT_LINKUP", "flag"),
                ("TEAM_ATTR_PORT_SPEED", "uint32"),
                ("TEAM_ATTR_PORT_DUPLEX", "uint8"),
            )


def _has_flag(attrs: nla, name: str) -> bool:
    # Flags carry no payload, only presence matters
    return bool(attrs.get_attrs(name))


def _nla_size(payload_len: int) -> int:
    return (NLA_HDRLEN + payload_len + 3) & ~3


def pack_option_data(opt_type: OptionType, value: int | str) -> bytes:
    """
    Convert an option value into its wire buffer.

    Args:
        opt_type: Option type
        value: Integer for u32 options, string for string options

    Returns:
        Four native-endian bytes for u32, UTF-8 bytes plus NUL for strings

    Raises:
        TeamInvalidArgumentError: If the type is not supported
        TeamEncodeError: If the value does not fit the type
    """
    if opt_type == OptionType.U32:
        try:
            return struct.pack(U32_FORMAT, value)
        except struct.error as e:
            raise TeamEncodeError(f"Invalid u32 option value {value!r}: {e}") from e
    if opt_type == OptionType.STRING:
        if not isinstance(value, str):
            raise TeamEncodeError(f"Invalid string option value {value!r}")
        if "\x00" in value:
            raise TeamEncodeError("String option value must not contain NUL characters")
        return value.encode("utf-8") + b"\x00"
    raise TeamInvalidArgumentError(f"Option type {opt_type!r} not supported")


def unpack_option_data(opt_type: OptionType, data: bytes) -> bytes:
    """
    Normalize a received option buffer to the size of its type.

    Strings are cut at the first NUL and get exactly one terminator back.

    Raises:
        ValueError: If a u32 buffer is too short
    """
    data = bytes(data)
    if opt_type == OptionType.U32:
        if len(data) < struct.calcsize(U32_FORMAT):
            raise ValueError(f"u32 option data too short ({len(data)} bytes)")
        return data[: struct.calcsize(U32_FORMAT)]
    return data.split(b"\x00", 1)[0] + b"\x00"


def build_request(cmd: int, ifindex: int) -> teamcmd:
    """
    Build a team command carrying only the team interface index.

    Args:
        cmd: Command identifier (e.g. TEAM_CMD_PORT_LIST_GET)
        ifindex: Team device interface index

    Returns:
        Message ready to be sent on the command channel
    """
    try:
        struct.pack(U32_FORMAT, ifindex)
    except struct.error as e:
        raise TeamEncodeError(f"Invalid team ifindex {ifindex!r}: {e}") from e

    msg = teamcmd()
    msg["cmd"] = cmd
    msg["version"] = TEAM_GENL_VERSION
    msg["attrs"] = [("TEAM_ATTR_TEAM_IFINDEX", ifindex)]
    return msg


def build_option_set(ifindex: int, name: str, opt_type: OptionType, value: int | str) -> teamcmd:
    """
    Build an OPTIONS_SET command for a single option.

    The option item (name, wire type tag, data) is nested in a one-item
    option list next to the team interface index.

    Raises:
        TeamInvalidArgumentError: If the option type is not supported
        TeamEncodeError: If an attribute does not fit the message
    """
    nla_type = OPTION_TYPE_TO_NLA_TYPE.get(opt_type)
    if nla_type is None:
        raise TeamInvalidArgumentError(f"Option type {opt_type!r} not supported")

    data = pack_option_data(opt_type, value)
    try:
        name_bytes = name.encode("utf-8")
    except (AttributeError, UnicodeEncodeError) as e:
        raise TeamEncodeError(f"Invalid option name {name!r}") from e

    item_len = _nla_size(len(name_bytes) + 1) + _nla_size(4) + _nla_size(len(data))
    if NLA_HDRLEN + _nla_size(item_len) > NLA_MAX_LEN:
        raise TeamEncodeError(f"Option '{name}' does not fit into a netlink attribute")

    msg = build_request(TEAM_CMD_OPTIONS_SET, ifindex)
    msg["attrs"].append(
        (
            "TEAM_ATTR_LIST_OPTION",
            {
                "attrs": [
                    (
                        "TEAM_ATTR_ITEM_OPTION",
                        {
                            "attrs": [
                                ("TEAM_ATTR_OPTION_NAME", name),
                                ("TEAM_ATTR_OPTION_TYPE", nla_type),
                                ("TEAM_ATTR_OPTION_DATA", data),
                            ]
                        },
                    )
                ]
            },
        )
    )
    return msg


def _is_own_team(msg: teamcmd, ifindex: int) -> bool:
    team_ifindex = msg.get_attr("TEAM_ATTR_TEAM_IFINDEX")
    if team_ifindex != ifindex:
        logger.debug(f"Ignoring message for team ifindex {team_ifindex} (ours is {ifindex})")
        return False
    return True


def decode_port_list(msg: teamcmd, ifindex: int) -> list[Port] | None:
    """
    Decode the port list of a PORT_LIST_GET reply or notification.

    Args:
        msg: Parsed team message
        ifindex: Interface index of the team device the session manages

    Returns:
        Ports in arrival order, or None if the message is for another team
        device or carries no port list
    """
    if not _is_own_team(msg, ifindex):
        return None

    port_list = msg.get_attr("TEAM_ATTR_LIST_PORT")
    if port_list is None:
        return None

    ports = []
    for item in port_list.get_attrs("TEAM_ATTR_ITEM_PORT"):
        port_ifindex = item.get_attr("TEAM_ATTR_PORT_IFINDEX")
        if port_ifindex is None:
            logger.warning("Port ifindex attribute not found, skipping port")
            continue

        ports.append(
            Port(
                ifindex=port_ifindex,
                speed=item.get_attr("TEAM_ATTR_PORT_SPEED") or 0,
                duplex=item.get_attr("TEAM_ATTR_PORT_DUPLEX") or 0,
                changed=_has_flag(item, "TEAM_ATTR_PORT_CHANGED"),
                linkup=_has_flag(item, "TEAM_ATTR_PORT_LINKUP"),
            )
        )

    return ports


def decode_option_list(msg: teamcmd, ifindex: int) -> list[Option] | None:
    """
    Decode the option list of an OPTIONS_GET reply or notification.

    Items missing the name, type or data attribute, items of an unknown
    type and repeated names are skipped; the first occurrence of a name wins.

    Args:
        msg: Parsed team message
        ifindex: Interface index of the team device the session manages

    Returns:
        Options in arrival order, or None if the message is for another team
        device or carries no option list
    """
    if not _is_own_team(msg, ifindex):
        return None

    option_list = msg.get_attr("TEAM_ATTR_LIST_OPTION")
    if option_list is None:
        return None

    options: list[Option] = []
    seen: set[str] = set()
    for item in option_list.get_attrs("TEAM_ATTR_ITEM_OPTION"):
        name = item.get_attr("TEAM_ATTR_OPTION_NAME")
        nla_type = item.get_attr("TEAM_ATTR_OPTION_TYPE")
        data = item.get_attr("TEAM_ATTR_OPTION_DATA")
        if name is None or nla_type is None or data is None:
            logger.warning("Option item lacks name, type or data attribute, skipping option")
            continue

        if name in seen:
            logger.warning(f'Option named "{name}" is already in list, skipping duplicate')
            continue

        opt_type = NLA_TYPE_TO_OPTION_TYPE.get(nla_type)
        if opt_type is None:
            logger.warning(f'Unknown type {nla_type} received for option "{name}", skipping option')
            continue

        try:
            value_data = unpack_option_data(opt_type, data)
        except ValueError as e:
            logger.warning(f'Malformed data for option "{name}": {e}')
            continue

        seen.add(name)
        options.append(Option(name, opt_type, value_data, changed=_has_flag(item, "TEAM_ATTR_OPTION_CHANGED")))

    return options
