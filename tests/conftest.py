"""
Shared fixtures for the team session tests.

The fake driver answers team commands the way the kernel team driver
does; messages are built with the real team message class and parsed
back from their wire bytes.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import errno
import struct

import pytest
from pyroute2.netlink.exceptions import NetlinkError

from teamnl.attrs import (
    NLA_STRING,
    NLA_U32,
    TEAM_CMD_OPTIONS_GET,
    TEAM_CMD_OPTIONS_SET,
    TEAM_CMD_PORT_LIST_GET,
    TEAM_GENL_VERSION,
    teamcmd,
)

FAMILY_ID = 0x1C
GROUP_ID = 9
TEAM_IFINDEX = 7


def wire(msg: teamcmd) -> teamcmd:
    """Encode a message and parse it back as the receiving side would."""
    msg.encode()
    parsed = teamcmd(msg.data)
    parsed.decode()
    return parsed


def port_attrs(ifindex=None, linkup=False, speed=None, duplex=None, changed=False):
    attrs = []
    if ifindex is not None:
        attrs.append(("TEAM_ATTR_PORT_IFINDEX", ifindex))
    if changed:
        attrs.append(("TEAM_ATTR_PORT_CHANGED", True))
    if linkup:
        attrs.append(("TEAM_ATTR_PORT_LINKUP", True))
    if speed is not None:
        attrs.append(("TEAM_ATTR_PORT_SPEED", speed))
    if duplex is not None:
        attrs.append(("TEAM_ATTR_PORT_DUPLEX", duplex))
    return attrs


def option_attrs(name, value, changed=False):
    if isinstance(value, int):
        nla_type, data = NLA_U32, struct.pack("=I", value)
    else:
        nla_type, data = NLA_STRING, value.encode("utf-8") + b"\x00"
    attrs = [
        ("TEAM_ATTR_OPTION_NAME", name),
        ("TEAM_ATTR_OPTION_TYPE", nla_type),
        ("TEAM_ATTR_OPTION_DATA", data),
    ]
    if changed:
        attrs.append(("TEAM_ATTR_OPTION_CHANGED", True))
    return attrs


def _list_msg(cmd, team_ifindex, list_attr, item_attr, items):
    msg = teamcmd()
    msg["cmd"] = cmd
    msg["version"] = TEAM_GENL_VERSION
    msg["header"]["type"] = FAMILY_ID
    msg["attrs"] = []
    if team_ifindex is not None:
        msg["attrs"].append(("TEAM_ATTR_TEAM_IFINDEX", team_ifindex))
    if items is not None:
        msg["attrs"].append((list_attr, {"attrs": [(item_attr, {"attrs": attrs}) for attrs in items]}))
    return wire(msg)


def make_port_list_msg(team_ifindex, items):
    return _list_msg(TEAM_CMD_PORT_LIST_GET, team_ifindex, "TEAM_ATTR_LIST_PORT", "TEAM_ATTR_ITEM_PORT", items)


def make_option_list_msg(team_ifindex, items):
    return _list_msg(TEAM_CMD_OPTIONS_GET, team_ifindex, "TEAM_ATTR_LIST_OPTION", "TEAM_ATTR_ITEM_OPTION", items)


class FakeGenlSocket:
    """Stands in for pyroute2's GenericNetlinkSocket."""

    def __init__(self, driver: "FakeTeamDriver") -> None:
        self.driver = driver
        self.prid = None
        self.mcast_groups: dict[str, int] = {}
        self.requests: list[teamcmd] = []
        self.request_flags: list[int] = []
        self.pending_events: list[list[teamcmd]] = []
        self.memberships: list[tuple[int, int, int]] = []
        self.closed = False

    def bind(self, proto, msg_class):
        if self.driver.bind_error is not None:
            raise self.driver.bind_error
        if proto != "team":
            raise NetlinkError(errno.ENOENT, f"Generic netlink protocol {proto} not found")
        self.prid = FAMILY_ID
        self.mcast_groups = dict(self.driver.groups)

    def nlm_request(self, msg, msg_type, msg_flags):
        assert msg_type == FAMILY_ID
        self.requests.append(msg)
        self.request_flags.append(msg_flags)
        return self.driver.handle(msg)

    def get(self):
        if not self.pending_events:
            return []
        return self.pending_events.pop(0)

    def setsockopt(self, level, optname, value):
        if self.driver.membership_error is not None:
            raise self.driver.membership_error
        self.memberships.append((level, optname, value))

    def fileno(self):
        return 42

    def close(self):
        self.closed = True


class FakeLink(dict):
    def __init__(self, index, name):
        super().__init__(index=index)
        self.name = name

    def get_attr(self, attr):
        return self.name if attr == "IFLA_IFNAME" else None


class FakeIPRoute:
    """Stands in for pyroute2's IPRoute."""

    def __init__(self, links=None):
        self.links = links if links is not None else {1: "lo", 7: "team0", 12: "eth0", 13: "eth1"}
        self.dump_error = None
        self.dumps = 0
        self.closed = False

    def get_links(self):
        self.dumps += 1
        if self.dump_error is not None:
            raise self.dump_error
        return [FakeLink(index, name) for index, name in self.links.items()]

    def close(self):
        self.closed = True


class FakeTeamDriver:
    """Answers team commands for one team device."""

    def __init__(self, ifindex: int = TEAM_IFINDEX) -> None:
        self.ifindex = ifindex
        self.ports = [port_attrs(12, linkup=True, speed=1000, duplex=1)]
        self.options = [option_attrs("mode", "roundrobin")]
        self.groups = {"change_event": GROUP_ID}
        self.errors: dict[int, int] = {}
        self.bind_error = None
        self.membership_error = None
        self.set_requests: list[teamcmd] = []
        self.sockets: list[FakeGenlSocket] = []
        self.iproute = FakeIPRoute()

    def socket_factory(self) -> FakeGenlSocket:
        sock = FakeGenlSocket(self)
        self.sockets.append(sock)
        return sock

    def link_factory(self) -> FakeIPRoute:
        return self.iproute

    @property
    def event_socket(self) -> FakeGenlSocket:
        return self.sockets[1]

    def handle(self, msg):
        cmd = msg["cmd"]
        if cmd in self.errors:
            raise NetlinkError(self.errors[cmd], "rejected by fake driver")
        if cmd == TEAM_CMD_PORT_LIST_GET:
            return [make_port_list_msg(self.ifindex, self.ports)]
        if cmd == TEAM_CMD_OPTIONS_GET:
            return [make_option_list_msg(self.ifindex, self.options)]
        if cmd == TEAM_CMD_OPTIONS_SET:
            request = wire(msg)
            self.set_requests.append(request)
            for item in request.get_attr("TEAM_ATTR_LIST_OPTION").get_attrs("TEAM_ATTR_ITEM_OPTION"):
                self._apply_option(item)
            return []
        raise NetlinkError(errno.EOPNOTSUPP, "unknown command")

    def _apply_option(self, item):
        name = item.get_attr("TEAM_ATTR_OPTION_NAME")
        attrs = [
            ("TEAM_ATTR_OPTION_NAME", name),
            ("TEAM_ATTR_OPTION_TYPE", item.get_attr("TEAM_ATTR_OPTION_TYPE")),
            ("TEAM_ATTR_OPTION_DATA", bytes(item.get_attr("TEAM_ATTR_OPTION_DATA"))),
            ("TEAM_ATTR_OPTION_CHANGED", True),
        ]
        for i, existing in enumerate(self.options):
            if dict(existing).get("TEAM_ATTR_OPTION_NAME") == name:
                self.options[i] = attrs
                return
        self.options.append(attrs)

    def push_event(self, *msgs):
        self.event_socket.pending_events.append(list(msgs))


@pytest.fixture
def driver():
    return FakeTeamDriver()


@pytest.fixture
def session(driver):
    from teamnl.session import TeamSession

    sess = TeamSession(socket_factory=driver.socket_factory, link_factory=driver.link_factory)
    sess.init(TEAM_IFINDEX)
    yield sess
    sess.free()
