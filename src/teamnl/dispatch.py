"""
Team Change Dispatcher

Keeps the registered change handlers and decides which of them are due.
Marking a category due and firing due handlers are separate phases, so a
handler never runs while a snapshot is being replaced and runs at most once
per processing pass.

Copyright (C) 2025 LACP Daemon Team
SPDX-License-Identifier: GPL-3.0-or-later
"""

import enum
import logging
from collections.abc import Callable
from typing import Any

from teamnl.errors import TeamExistsError

logger = logging.getLogger(__name__)

ChangeHandlerFunc = Callable[[Any], None]


class ChangeType(enum.IntEnum):
    """Change categories a handler can be interested in."""

    PORT = 0
    OPTION = 1
    ALL = 2


class ChangeHandlerEntry:
    """A registered callback, its category and its due flag."""

    __slots__ = ("func", "change_type", "due")

    def __init__(self, func: ChangeHandlerFunc, change_type: ChangeType) -> None:
        self.func = func
        self.change_type = change_type
        self.due = False

    def matches(self, change_type: ChangeType) -> bool:
        return change_type == ChangeType.ALL or self.change_type in (ChangeType.ALL, change_type)

    def __repr__(self) -> str:
        return f"ChangeHandlerEntry(func={self.func!r}, change_type={self.change_type.name}, due={self.due})"


class ChangeDispatcher:
    """
    Registry of change handlers.

    Handlers are called with the ``owner`` passed at construction, normally
    the team session.
    """

    def __init__(self, owner: Any = None) -> None:
        self.owner = owner
        self.entries: list[ChangeHandlerEntry] = []

    def find(self, func: ChangeHandlerFunc) -> ChangeHandlerEntry | None:
        for entry in self.entries:
            if entry.func == func:
                return entry
        return None

    def register(self, func: ChangeHandlerFunc, change_type: ChangeType = ChangeType.ALL) -> None:
        """
        Register a change handler.

        Args:
            func: Callable taking the owner as its only argument
            change_type: Category the handler is interested in

        Raises:
            TeamExistsError: If ``func`` is already registered
        """
        if self.find(func) is not None:
            raise TeamExistsError(f"Change handler {func!r} already exists")
        self.entries.insert(0, ChangeHandlerEntry(func, ChangeType(change_type)))
        logger.debug(f"Registered change handler {func!r} for {ChangeType(change_type).name} changes")

    def unregister(self, func: ChangeHandlerFunc) -> None:
        """Remove a change handler; unknown handlers are ignored."""
        entry = self.find(func)
        if entry is None:
            return
        self.entries.remove(entry)
        logger.debug(f"Unregistered change handler {func!r}")

    def mark_due(self, change_type: ChangeType) -> None:
        for entry in self.entries:
            if entry.matches(change_type):
                entry.due = True

    def fire_due(self, change_type: ChangeType) -> int:
        """
        Invoke every matching handler that is due and clear its flag.

        Args:
            change_type: Category of the pass that triggered the change

        Returns:
            Number of handlers invoked
        """
        fired = 0
        # Handlers may unregister themselves or each other
        for entry in list(self.entries):
            if entry not in self.entries:
                continue
            if not (entry.due and entry.matches(change_type)):
                continue
            try:
                entry.func(self.owner)
            finally:
                entry.due = False
            fired += 1
        return fired
