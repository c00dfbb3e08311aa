"""
Link Name Resolution

Translates interface names to interface indexes and back using an
rtnetlink link table. The table is not kept in sync with team change
notifications, so it is refreshed before every lookup.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import logging
from collections.abc import Callable
from typing import Any

from pyroute2 import IPRoute
from pyroute2.netlink.exceptions import NetlinkError

from teamnl.errors import TeamAllocError

logger = logging.getLogger(__name__)


class LinkResolver:
    """
    Cached view of the kernel link table.

    Args:
        iproute_factory: Callable returning a pyroute2 IPRoute socket
    """

    def __init__(self, iproute_factory: Callable[[], Any] = IPRoute) -> None:
        try:
            self.ipr = iproute_factory()
        except OSError as e:
            raise TeamAllocError(f"Could not allocate rtnetlink socket: {e}") from e
        self.links: dict[int, str] = {}

    def refresh(self) -> bool:
        """
        Reload the link table from the kernel.

        Returns:
            True on success, False if the dump failed
        """
        try:
            links = self.ipr.get_links()
        except (OSError, NetlinkError) as e:
            logger.warning(f"Failed to refill link cache: {e}")
            return False

        self.links = {link["index"]: link.get_attr("IFLA_IFNAME") for link in links}
        return True

    def name2index(self, ifname: str) -> int:
        """Return the index of ``ifname`` or 0 if it is unknown."""
        if not self.refresh():
            return 0
        for ifindex, name in self.links.items():
            if name == ifname:
                return ifindex
        return 0

    def index2name(self, ifindex: int) -> str | None:
        """Return the name of interface ``ifindex`` or None if it is unknown."""
        if not self.refresh():
            return None
        return self.links.get(ifindex)

    def close(self) -> None:
        self.ipr.close()
        self.links = {}
