"""Commands that failed during execution and must not be planned again."""

from __future__ import annotations

from typing import Iterator

from .task import Command


class Blacklist:
    """Set of (name, args) pairs that failed in the real world."""

    def __init__(self) -> None:
        self._entries: set[tuple[str, tuple]] = set()

    def add(self, command: Command) -> None:
        self._entries.add((command.name, tuple(command.args)))

    def __contains__(self, command: object) -> bool:
        if not isinstance(command, Command):
            return False
        return (command.name, tuple(command.args)) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Command]:
        for name, args in sorted(self._entries, key=repr):
            yield Command(name, args)

    def clear(self) -> None:
        self._entries.clear()
