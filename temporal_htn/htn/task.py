"""Work items for the HTN planner."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Iterable, Mapping, Union


class ItemKind(Enum):
    """Kind tag for a work item."""

    COMMAND = auto()  # Primitive, applied to the state
    TASK = auto()  # Compound, decomposed by task methods
    UNIGOAL = auto()  # Single (predicate, entity) = target goal
    MULTIGOAL = auto()  # Conjunction of unigoals


@dataclass(frozen=True)
class Command:
    """A primitive action."""

    name: str
    args: tuple[Any, ...] = ()

    kind = ItemKind.COMMAND

    def __str__(self) -> str:
        return f"{self.name}({', '.join(map(str, self.args))})"


@dataclass(frozen=True)
class Task:
    """A compound task, refined by task methods."""

    name: str
    args: tuple[Any, ...] = ()

    kind = ItemKind.TASK

    def __str__(self) -> str:
        return f"{self.name}({', '.join(map(str, self.args))})"


@dataclass(frozen=True)
class Unigoal:
    """Goal: ``state.get(predicate, entity) == target``."""

    predicate: str
    entity: Any
    target: Any

    kind = ItemKind.UNIGOAL

    @property
    def name(self) -> str:
        return self.predicate

    def __str__(self) -> str:
        return f"{self.predicate}[{self.entity}] = {self.target}"


@dataclass(frozen=True)
class Multigoal:
    """Conjunction of unigoals. ``tag`` selects the multigoal methods to use."""

    goals: tuple[Unigoal, ...]
    tag: str = ""

    kind = ItemKind.MULTIGOAL

    @property
    def name(self) -> str:
        return self.tag

    def __str__(self) -> str:
        inner = " & ".join(str(g) for g in self.goals)
        return f"multigoal{f'<{self.tag}>' if self.tag else ''}({inner})"


WorkItem = Union[Command, Task, Unigoal, Multigoal]
WORK_ITEM_TYPES = (Command, Task, Unigoal, Multigoal)


def is_work_item(value: Any) -> bool:
    return isinstance(value, WORK_ITEM_TYPES)


def _entity(value: Any) -> Any:
    """YAML gives multi-entity keys as lists; goals need them hashable."""
    return tuple(value) if isinstance(value, list) else value


def item_from_dict(data: Mapping[str, Any]) -> WorkItem:
    """
    Build a work item from the problem-file format.

    Accepted shapes:
        {"command": "pickup", "args": ["a"]}
        {"task": "move_blocks", "args": []}
        {"unigoal": "pos", "entity": "a", "target": "table"}
        {"multigoal": [["pos", "a", "b"], ...], "tag": "blocks"}
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"Work item must be a mapping, got {data!r}")

    args = data.get("args", [])
    if not isinstance(args, (list, tuple)):
        raise ValueError(f"'args' must be a list in {dict(data)!r}")

    if "command" in data:
        return Command(str(data["command"]), tuple(args))
    if "task" in data:
        return Task(str(data["task"]), tuple(args))
    if "unigoal" in data:
        missing = [k for k in ("entity", "target") if k not in data]
        if missing:
            raise ValueError(f"Unigoal {data['unigoal']!r} is missing {', '.join(missing)}")
        return Unigoal(str(data["unigoal"]), _entity(data["entity"]), data["target"])
    if "multigoal" in data:
        goals = []
        for entry in data["multigoal"]:
            if not isinstance(entry, (list, tuple)) or len(entry) != 3:
                raise ValueError(f"Multigoal entries must be [predicate, entity, target], got {entry!r}")
            goals.append(Unigoal(str(entry[0]), _entity(entry[1]), entry[2]))
        return Multigoal(tuple(goals), str(data.get("tag", "")))

    raise ValueError(f"Unrecognized work item: {dict(data)!r}")


def items_from_list(data: Iterable[Mapping[str, Any]]) -> list[WorkItem]:
    return [item_from_dict(entry) for entry in data]


def item_to_dict(item: WorkItem) -> dict[str, Any]:
    """Inverse of ``item_from_dict`` for JSON output."""
    if isinstance(item, Command):
        return {"command": item.name, "args": list(item.args)}
    if isinstance(item, Task):
        return {"task": item.name, "args": list(item.args)}
    if isinstance(item, Unigoal):
        return {"unigoal": item.predicate, "entity": item.entity, "target": item.target}
    return {
        "multigoal": [[g.predicate, g.entity, g.target] for g in item.goals],
        "tag": item.tag,
    }
