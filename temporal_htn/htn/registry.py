"""Method registration and lookup.

A ``Domain`` is an explicit registry owned by the caller; several domains can
coexist in one process.

Usage:
    domain = Domain("blocks")

    @domain.command("pickup")
    def pickup(state, block): ...

    @domain.task_method("move_one")
    def move_one(state, block, dest): ...

    @domain.unigoal_method("pos")
    def achieve_pos(state, block, dest): ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from .task import Command, Multigoal, Task, Unigoal

if TYPE_CHECKING:
    from ..state.facts import State
    from .task import WorkItem

logger = logging.getLogger(__name__)

MethodFn = Callable[..., Any]


class DomainError(Exception):
    """Invalid domain registration or definition."""


class Domain:
    """Registry of commands, methods and actuators for one planning domain."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.commands: dict[str, MethodFn] = {}
        self.task_methods: dict[str, list[MethodFn]] = {}
        self.unigoal_methods: dict[str, list[MethodFn]] = {}
        self.multigoal_methods: dict[str, list[MethodFn]] = {}
        self.actuators: dict[str, MethodFn] = {}

    def __repr__(self) -> str:
        return (
            f"Domain({self.name!r}, commands={len(self.commands)}, "
            f"tasks={len(self.task_methods)}, unigoals={len(self.unigoal_methods)})"
        )

    # =========================================================================
    # Registration
    # =========================================================================

    def command(self, name: str) -> Callable[[MethodFn], MethodFn]:
        """Register the single command function for ``name``."""

        def decorator(fn: MethodFn) -> MethodFn:
            if name in self.commands:
                raise DomainError(f"Command {name!r} is already registered in {self.name!r}")
            self.commands[name] = fn
            return fn

        return decorator

    def task_method(self, name: str) -> Callable[[MethodFn], MethodFn]:
        """Add a candidate method for task ``name``. Order of registration is search order."""
        return self._appender(self.task_methods, "task", name)

    def unigoal_method(self, predicate: str) -> Callable[[MethodFn], MethodFn]:
        return self._appender(self.unigoal_methods, "unigoal", predicate)

    def multigoal_method(self, tag: str = "") -> Callable[[MethodFn], MethodFn]:
        return self._appender(self.multigoal_methods, "multigoal", tag)

    def actuator(self, name: str) -> Callable[[MethodFn], MethodFn]:
        """Register the real-world executor for command ``name`` (execution mode only)."""

        def decorator(fn: MethodFn) -> MethodFn:
            if name in self.actuators:
                raise DomainError(f"Actuator {name!r} is already registered in {self.name!r}")
            self.actuators[name] = fn
            return fn

        return decorator

    def _appender(
        self, table: dict[str, list[MethodFn]], kind: str, name: str
    ) -> Callable[[MethodFn], MethodFn]:
        def decorator(fn: MethodFn) -> MethodFn:
            candidates = table.setdefault(name, [])
            if fn in candidates:
                raise DomainError(
                    f"{getattr(fn, '__name__', fn)!r} is already a {kind} method for {name!r}"
                )
            candidates.append(fn)
            return fn

        return decorator

    # =========================================================================
    # Lookup
    # =========================================================================

    def methods_for(self, item: "WorkItem") -> Optional[list[MethodFn]]:
        """
        Ordered candidates for an item, or None when nothing is registered.

        Commands yield a one-element list with their command function.
        """
        if isinstance(item, Command):
            fn = self.commands.get(item.name)
            return [fn] if fn is not None else None
        if isinstance(item, Task):
            return self.task_methods.get(item.name)
        if isinstance(item, Unigoal):
            return self.unigoal_methods.get(item.predicate)
        if isinstance(item, Multigoal):
            return self.multigoal_methods.get(item.tag)
        return None

    def actuator_for(self, name: str) -> Optional[MethodFn]:
        return self.actuators.get(name)

    def goal_reader(self, state: "State", predicate: str, entity: Any) -> Any:
        """Value a unigoal is compared against. Override for non-default categories."""
        if isinstance(entity, tuple):
            return state.get(predicate, *entity)
        return state.get(predicate, entity)

    def goal_holds(self, state: "State", goal: Unigoal) -> bool:
        return self.goal_reader(state, goal.predicate, goal.entity) == goal.target

    def validate(self) -> None:
        """Raise DomainError if the domain cannot be planned with."""
        if not self.commands:
            raise DomainError(f"Domain {self.name!r} has no commands")
        orphans = sorted(set(self.actuators) - set(self.commands))
        if orphans:
            raise DomainError(
                f"Domain {self.name!r} has actuators without commands: {', '.join(orphans)}"
            )
        logger.debug("Domain %r validated: %r", self.name, self)

    def list_registered(self) -> dict[str, list[str]]:
        """Names registered per kind."""
        return {
            "commands": list(self.commands),
            "tasks": list(self.task_methods),
            "unigoals": list(self.unigoal_methods),
            "multigoals": list(self.multigoal_methods),
            "actuators": list(self.actuators),
        }
