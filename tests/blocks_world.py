"""Blocks-world domain used by the planner and CLI tests.

Facts:
    pos[block]   -> "table", another block, or "hand"
    clear[block] -> bool
    holding[hand] -> block name or False
"""

from temporal_htn import NOT_APPLICABLE, Command, CommandFailure, Domain, Task, Unigoal
from temporal_htn.htn import split_multigoal
from temporal_htn.state import State

HAND = "hand"
TABLE = "table"


def make_domain() -> Domain:
    domain = Domain("blocks")

    # --- Commands ---

    @domain.command("pickup")
    def pickup(state, block):
        if state.get("pos", block) != TABLE or not state.get("clear", block) or state.get("holding", HAND):
            return CommandFailure(f"cannot pick up {block}")
        return (
            state.set("pos", block, value=HAND)
            .set("clear", block, value=False)
            .set("holding", HAND, value=block)
        )

    @domain.command("unstack")
    def unstack(state, block, below):
        if state.get("pos", block) != below or not state.get("clear", block) or state.get("holding", HAND):
            return CommandFailure(f"cannot unstack {block} from {below}")
        return (
            state.set("pos", block, value=HAND)
            .set("clear", block, value=False)
            .set("clear", below, value=True)
            .set("holding", HAND, value=block)
        )

    @domain.command("putdown")
    def putdown(state, block):
        if state.get("pos", block) != HAND:
            return CommandFailure(f"not holding {block}")
        return (
            state.set("pos", block, value=TABLE)
            .set("clear", block, value=True)
            .set("holding", HAND, value=False)
        )

    @domain.command("stack")
    def stack(state, block, dest):
        if state.get("pos", block) != HAND or not state.get("clear", dest):
            return CommandFailure(f"cannot stack {block} on {dest}")
        return (
            state.set("pos", block, value=dest)
            .set("clear", block, value=True)
            .set("clear", dest, value=False)
            .set("holding", HAND, value=False)
        )

    # --- Tasks ---

    @domain.task_method("take")
    def take(state, block):
        if not state.get("clear", block):
            return NOT_APPLICABLE
        below = state.get("pos", block)
        if below == TABLE:
            return [Command("pickup", (block,))]
        return [Command("unstack", (block, below))]

    @domain.task_method("put")
    def put(state, block, dest):
        if state.get("pos", block) != HAND:
            return NOT_APPLICABLE
        if dest == TABLE:
            return [Command("putdown", (block,))]
        return [Command("stack", (block, dest))]

    # --- Goals ---

    @domain.unigoal_method("pos")
    def move_directly(state, block, dest):
        if not state.get("clear", block):
            return NOT_APPLICABLE
        if dest != TABLE and not state.get("clear", dest):
            return NOT_APPLICABLE
        return [Task("take", (block,)), Task("put", (block, dest))]

    @domain.unigoal_method("pos")
    def clear_then_move(state, block, dest):
        if state.get("clear", block):
            return NOT_APPLICABLE
        return [Unigoal("clear", block, True), Unigoal("pos", block, dest)]

    @domain.unigoal_method("clear")
    def clear_block(state, block, target):
        if target is not True:
            return NOT_APPLICABLE
        tops = state.entities_where("pos", block)
        if not tops:
            return NOT_APPLICABLE
        (top,) = tops[0]
        return [Unigoal("pos", top, TABLE)]

    @domain.multigoal_method()
    def split(state, multigoal):
        return split_multigoal(domain, state, multigoal)

    return domain


def tower_state() -> State:
    """c on a; a and b on the table; hand empty."""
    return State.from_facts(
        [
            ("pos", "a", TABLE),
            ("pos", "b", TABLE),
            ("pos", "c", "a"),
            ("clear", "a", False),
            ("clear", "b", True),
            ("clear", "c", True),
            ("holding", HAND, False),
        ]
    )
