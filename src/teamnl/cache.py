"""
Team Entity Cache

This module holds the locally mirrored snapshot of the team device's ports
and options. Snapshots are only ever replaced as a whole: a port or option
present before and after a resync is a new record, never the old one
mutated in place.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import enum
import logging
import struct

logger = logging.getLogger(__name__)

# Native byte order, as netlink attributes are host-endian
U32_FORMAT = "=I"


class OptionType(enum.IntEnum):
    """Value types an option can carry."""

    U32 = 0
    STRING = 1


class Port:
    """
    One member link enslaved to the team device.

    Attributes:
        ifindex: Interface index of the port
        speed: Link speed in Mbit/s (0 when not reported)
        duplex: Duplex mode (0 half, 1 full)
        changed: Whether the driver flagged the port as changed
        linkup: Whether the link is up
    """

    __slots__ = ("ifindex", "speed", "duplex", "changed", "linkup")

    def __init__(
        self,
        ifindex: int,
        speed: int = 0,
        duplex: int = 0,
        changed: bool = False,
        linkup: bool = False,
    ) -> None:
        self.ifindex = ifindex
        self.speed = speed
        self.duplex = duplex
        self.changed = changed
        self.linkup = linkup

    def __repr__(self) -> str:
        return (
            f"Port(ifindex={self.ifindex}, speed={self.speed}, duplex={self.duplex}, "
            f"changed={self.changed}, linkup={self.linkup})"
        )


class Option:
    """
    One named, typed configuration value exposed by the team mode.

    The raw value buffer is kept as received: four native-endian bytes
    for u32 options, the encoded string plus its NUL terminator for string
    options.
    """

    __slots__ = ("name", "type", "data", "changed")

    def __init__(self, name: str, opt_type: OptionType, data: bytes, changed: bool = False) -> None:
        self.name = name
        self.type = opt_type
        self.data = data
        self.changed = changed

    @property
    def value(self) -> int | str:
        """Decoded option value."""
        if self.type == OptionType.U32:
            return int(struct.unpack_from(U32_FORMAT, self.data)[0])
        return self.data.split(b"\x00", 1)[0].decode("utf-8", errors="replace")

    def __repr__(self) -> str:
        return f"Option(name={self.name!r}, type={self.type.name}, value={self.value!r}, changed={self.changed})"


def _next_entry(entries: tuple, entry: object | None) -> object | None:
    if entry is None:
        return entries[0] if entries else None

    for i, candidate in enumerate(entries):
        if candidate is entry:
            return entries[i + 1] if i + 1 < len(entries) else None

    logger.debug(f"{entry!r} is not part of the current snapshot")
    return None


class EntityCache:
    """Current port and option snapshots of one team device."""

    def __init__(self) -> None:
        self._ports: tuple[Port, ...] = ()
        self._options: tuple[Option, ...] = ()

    @property
    def ports(self) -> tuple[Port, ...]:
        return self._ports

    @property
    def options(self) -> tuple[Option, ...]:
        return self._options

    def replace_ports(self, ports: list[Port]) -> None:
        """
        Substitute the port snapshot in one step.

        Args:
            ports: Complete new port list, in arrival order
        """
        self._ports = tuple(ports)
        logger.debug(f"Port snapshot replaced, {len(self._ports)} port(s)")

    def replace_options(self, options: list[Option]) -> None:
        """
        Substitute the option snapshot in one step.

        Args:
            options: Complete new option list with unique names

        Raises:
            ValueError: If two options share a name
        """
        names = [option.name for option in options]
        if len(names) != len(set(names)):
            raise ValueError("Option names must be unique within a snapshot")

        self._options = tuple(options)
        logger.debug(f"Option snapshot replaced, {len(self._options)} option(s)")

    def find_option(self, name: str) -> Option | None:
        """Return the option called ``name`` or None if there is none."""
        for option in self._options:
            if option.name == name:
                return option
        return None

    def next_port(self, port: Port | None = None) -> Port | None:
        """Return the port after ``port``, the first one for None, or None at the end."""
        return _next_entry(self._ports, port)  # type: ignore[return-value]

    def next_option(self, option: Option | None = None) -> Option | None:
        """Return the option after ``option``, the first one for None, or None at the end."""
        return _next_entry(self._options, option)  # type: ignore[return-value]

    def clear(self) -> None:
        """Release both snapshots."""
        self._ports = ()
        self._options = ()
