"""World state for HTN planning - an immutable fact store.

Facts are keyed by ``(category, name, entities)``. Every write returns a new
State, so a snapshot taken at a choice point is never affected by later
branches.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, ClassVar, Iterable, Iterator, Mapping, Optional, Union

DEFAULT_CATEGORY = "predicate"

Entity = Union[str, int]
FactValue = Union[bool, int, float, str, None]


class FactValueError(TypeError):
    """Raised when a fact value is not a supported type."""


@dataclass(frozen=True)
class FactKey:
    """Identity of a fact. ``entities`` is always a tuple."""

    category: str
    name: str
    entities: tuple[Entity, ...] = ()

    @classmethod
    def of(
        cls, name: str, entities: Union[Entity, Iterable[Entity], None] = (), category: str = DEFAULT_CATEGORY
    ) -> "FactKey":
        return cls(category=category, name=name, entities=_as_entities(entities))

    def __str__(self) -> str:
        args = ", ".join(str(e) for e in self.entities)
        return f"{self.category}:{self.name}({args})"


def _as_entities(entities: Union[Entity, Iterable[Entity], None]) -> tuple[Entity, ...]:
    if entities is None:
        return ()
    if isinstance(entities, (str, int)):
        return (entities,)
    return tuple(entities)


@dataclass(frozen=True)
class State:
    """
    Immutable fact store passed through the planner.

    Reads of unknown keys return the per-name default (``defaults``) or None.
    Values must be bool, int, float, str or None; subclasses may widen this
    by listing more types in ``extra_types``.
    """

    extra_types: ClassVar[tuple[type, ...]] = ()

    facts_map: Mapping[FactKey, Any] = field(default_factory=lambda: MappingProxyType({}))
    defaults: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __hash__(self) -> int:
        return hash(frozenset(self.facts_map.items()))

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def from_facts(
        cls,
        facts: Iterable[tuple],
        defaults: Optional[Mapping[str, Any]] = None,
    ) -> "State":
        """
        Build a state from ``(name, entity, value)`` or
        ``(category, name, entity, value)`` tuples.

        ``entity`` may be a single entity or a sequence of them.
        """
        table: dict[FactKey, Any] = {}
        for fact in facts:
            if len(fact) == 3:
                name, entities, value = fact
                category = DEFAULT_CATEGORY
            elif len(fact) == 4:
                category, name, entities, value = fact
            else:
                raise ValueError(f"Fact must have 3 or 4 fields, got {fact!r}")
            cls._check_value(value)
            table[FactKey.of(name, entities, category)] = value
        return cls(
            facts_map=MappingProxyType(table),
            defaults=MappingProxyType(dict(defaults or {})),
        )

    @classmethod
    def _check_value(cls, value: Any) -> None:
        if value is None or isinstance(value, (bool, int, float, str) + cls.extra_types):
            return
        raise FactValueError(
            f"Unsupported fact value type {type(value).__name__}: {value!r}"
        )

    # =========================================================================
    # Read API
    # =========================================================================

    def get(self, name: str, *entities: Entity, category: str = DEFAULT_CATEGORY) -> Any:
        key = FactKey(category, name, tuple(entities))
        if key in self.facts_map:
            return self.facts_map[key]
        return self.defaults.get(name)

    def has(self, name: str, *entities: Entity, category: str = DEFAULT_CATEGORY) -> bool:
        return FactKey(category, name, tuple(entities)) in self.facts_map

    def facts(self) -> Iterator[tuple[FactKey, Any]]:
        """Iterate stored facts in a stable order."""
        for key in sorted(self.facts_map, key=lambda k: (k.category, k.name, tuple(map(str, k.entities)))):
            yield key, self.facts_map[key]

    def entities_where(self, name: str, value: Any, category: str = DEFAULT_CATEGORY) -> list[tuple[Entity, ...]]:
        """All entity tuples whose ``name`` fact equals ``value``."""
        return [
            key.entities
            for key, stored in self.facts()
            if key.category == category and key.name == name and stored == value
        ]

    def __len__(self) -> int:
        return len(self.facts_map)

    # =========================================================================
    # Write API (returns new State)
    # =========================================================================

    def set(self, name: str, *entities: Entity, value: Any, category: str = DEFAULT_CATEGORY) -> "State":
        self._check_value(value)
        table = dict(self.facts_map)
        table[FactKey(category, name, tuple(entities))] = value
        return replace(self, facts_map=MappingProxyType(table))

    def update(self, changes: Mapping[FactKey, Any]) -> "State":
        """Apply several writes at once."""
        for value in changes.values():
            self._check_value(value)
        table = dict(self.facts_map)
        table.update(changes)
        return replace(self, facts_map=MappingProxyType(table))

    def remove(self, name: str, *entities: Entity, category: str = DEFAULT_CATEGORY) -> "State":
        key = FactKey(category, name, tuple(entities))
        if key not in self.facts_map:
            return self
        table = {k: v for k, v in self.facts_map.items() if k != key}
        return replace(self, facts_map=MappingProxyType(table))

    # =========================================================================
    # Export
    # =========================================================================

    def to_dict(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Nested ``{category: {name: {"e1,e2": value}}}`` view for JSON output."""
        out: dict[str, dict[str, dict[str, Any]]] = {}
        for key, value in self.facts():
            names = out.setdefault(key.category, {})
            names.setdefault(key.name, {})[",".join(str(e) for e in key.entities)] = value
        return out

    def __repr__(self) -> str:
        return f"State({len(self.facts_map)} facts)"
