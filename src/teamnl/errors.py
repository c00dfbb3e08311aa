"""
Team Netlink Errors

Exception hierarchy raised by the team session. Every exception carries
the errno value the operation maps to, so callers that want result codes
can read ``exc.errno``.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import errno as _errno


class TeamError(Exception):
    """Base class for all team session errors."""

    errno: int = 0

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.errno = code


class TeamAllocError(TeamError):
    """A channel or helper could not be created."""

    errno = _errno.ENOMEM


class TeamConnectError(TeamError):
    """A channel could not attach to the message bus."""

    errno = _errno.ENOTSUP


class TeamResolveError(TeamError):
    """The netlink family or multicast group is unknown to the kernel."""

    errno = _errno.ENOENT


class TeamMembershipError(TeamError):
    """Joining the change-event multicast group failed."""

    errno = _errno.EINVAL


class TeamProtocolError(TeamError):
    """The driver rejected a command; ``errno`` is the driver's code."""


class TeamSyncError(TeamError):
    """The initial port or option sync failed."""


class TeamEncodeError(TeamError):
    """A command could not be serialized; nothing was sent."""

    errno = _errno.ENOBUFS


class TeamNotFoundError(TeamError):
    """No option with the requested name exists."""

    errno = _errno.ENOENT


class TeamInvalidArgumentError(TeamError):
    """Invalid interface index or unsupported option type."""

    errno = _errno.EINVAL


class TeamExistsError(TeamError):
    """The change handler is already registered."""

    errno = _errno.EEXIST
