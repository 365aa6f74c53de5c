"""Tests for the immutable fact store."""

from datetime import date

import pytest

from temporal_htn.state import DEFAULT_CATEGORY, FactKey, FactValueError, State


@pytest.fixture
def state():
    return State.from_facts(
        [
            ("pos", "a", "table"),
            ("clear", "a", True),
            ("status", "load", ("truck", "depot"), 3),
        ],
        defaults={"clear": False},
    )


class TestRead:
    def test_get_stored(self, state):
        assert state.get("pos", "a") == "table"
        assert state.get("load", "truck", "depot", category="status") == 3

    def test_unknown_key_uses_default(self, state):
        assert state.get("clear", "zzz") is False
        assert state.get("pos", "zzz") is None
        assert not state.has("pos", "zzz")

    def test_entities_where(self, state):
        assert state.entities_where("pos", "table") == [("a",)]

    def test_facts_are_ordered(self, state):
        keys = [key for key, _ in state.facts()]
        assert keys == sorted(keys, key=lambda k: (k.category, k.name, tuple(map(str, k.entities))))
        assert FactKey(DEFAULT_CATEGORY, "pos", ("a",)) in keys


class TestWrite:
    def test_set_returns_new_state(self, state):
        updated = state.set("pos", "a", value="b")

        assert updated.get("pos", "a") == "b"
        assert state.get("pos", "a") == "table"
        assert updated is not state

    def test_remove(self, state):
        removed = state.remove("pos", "a")

        assert removed.get("pos", "a") is None
        assert state.get("pos", "a") == "table"
        assert removed.remove("pos", "a") is removed

    def test_update_many(self, state):
        updated = state.update({FactKey.of("pos", "b"): "a", FactKey.of("clear", "b"): True})

        assert updated.get("pos", "b") == "a"
        assert updated.get("clear", "b") is True
        assert len(updated) == len(state) + 2

    def test_equality_by_content(self, state):
        assert state.set("pos", "a", value="b").set("pos", "a", value="table") == state
        assert hash(state.set("x", value=1)) == hash(state.set("x", value=1))


class TestValidation:
    @pytest.mark.parametrize("value", [[1, 2], {"a": 1}, object(), date(2024, 1, 1)])
    def test_rejects_unsupported_values(self, state, value):
        with pytest.raises(FactValueError):
            state.set("pos", "a", value=value)

    def test_fact_value_error_is_type_error(self):
        with pytest.raises(TypeError):
            State.from_facts([("pos", "a", ["not", "scalar"])])

    def test_extension_types(self):
        class CalendarState(State):
            extra_types = (date,)

        state = CalendarState().set("due", "job", value=date(2024, 1, 1))
        assert state.get("due", "job") == date(2024, 1, 1)
        assert isinstance(state, CalendarState)

    def test_bad_fact_shape(self):
        with pytest.raises(ValueError):
            State.from_facts([("too", "short")])


class TestExport:
    def test_to_dict(self, state):
        data = state.to_dict()

        assert data["predicate"]["pos"] == {"a": "table"}
        assert data["status"]["load"] == {"truck,depot": 3}
