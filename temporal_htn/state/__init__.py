"""World state containers."""

from .facts import DEFAULT_CATEGORY, FactKey, FactValueError, State

__all__ = ["DEFAULT_CATEGORY", "FactKey", "FactValueError", "State"]
