"""HTN Planner - depth-first backtracking decomposition with temporal checks."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Union

from ..state.facts import State
from ..temporal.stn import ORIGIN, IntervalSpec, SimpleTemporalNetwork, end_point, start_point
from . import trace as events
from .blacklist import Blacklist
from .budgets import BudgetStatus, PlannerBudgets
from .multigoal import goal_achieved
from .registry import Domain
from .result import (
    CommandFailure,
    DurativeEffect,
    FailureKind,
    Plan,
    PlannerResult,
    PlannerStats,
    PlanningFailure,
    ScheduledAction,
    declined,
)
from .task import Command, Multigoal, Task, Unigoal, WorkItem, is_work_item
from .trace import TraceRecorder

logger = logging.getLogger(__name__)


@dataclass
class PlannerConfig:
    """Configuration for HTN planner."""

    budgets: PlannerBudgets = field(default_factory=PlannerBudgets)
    include_trace: bool = True
    verify_goals: bool = True
    execute: bool = False
    network: Optional[SimpleTemporalNetwork] = None


@dataclass(frozen=True)
class _VerifyGoal:
    """Marker placed after a goal's expansion; re-checks the goal when popped."""

    goal: Union[Unigoal, Multigoal]

    def __str__(self) -> str:
        return f"verify {self.goal}"


@dataclass(frozen=True)
class _Pending:
    item: Any
    depth: int


@dataclass(frozen=True)
class _SearchNode:
    """Everything a branch owns. Replaced, never mutated."""

    state: State
    pending: tuple[_Pending, ...]
    network: SimpleTemporalNetwork
    commands: tuple[Command, ...] = ()
    schedule: tuple[ScheduledAction, ...] = ()
    time_cursor: Union[int, float] = 0


@dataclass
class _ChoicePoint:
    """Pre-expansion node (item already popped), candidates and next untried index."""

    node: _SearchNode
    entry: _Pending
    candidates: list[Any]
    next_index: int = 0


class _FatalPlanningError(Exception):
    def __init__(self, failure: PlanningFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


class HTNPlanner:
    """
    Depth-first, total-order HTN planner.

    Method candidates are tried strictly in registration order and the first
    complete expansion wins. Every branch carries its own State and STN, so a
    backtrack simply resumes from the snapshot held by a choice point.
    """

    def __init__(self, domain: Domain, config: Optional[PlannerConfig] = None) -> None:
        self.domain = domain
        self.config = config or PlannerConfig()
        self.budgets = self.config.budgets

        # Execution state (reset on each run)
        self.start_time_ms: int = 0
        self.stats = PlannerStats()
        self.blacklist = Blacklist()
        self.trace = TraceRecorder(enabled=self.config.include_trace)
        self._soft_backtrack_warned = False

    def run(self, initial_state: State, items: Iterable[WorkItem]) -> PlannerResult:
        """
        Plan for ``items`` from ``initial_state``.

        Args:
            initial_state: World state at the start (never mutated)
            items: Ordered work list; the front is expanded first

        Returns:
            PlannerResult with the plan on success or a PlanningFailure
        """
        self.domain.validate()

        self.start_time_ms = int(time.time() * 1000)
        self.stats = PlannerStats()
        self.blacklist.clear()
        self.trace.clear()
        self._soft_backtrack_warned = False

        items = list(items)
        if self.config.execute:
            result = self._run_with_execution(initial_state, items)
        else:
            result = self._search(self._root(initial_state, items))

        self.stats.elapsed_ms = int(time.time() * 1000) - self.start_time_ms
        result.stats = self.stats
        if result.plan is not None:
            result.plan.stats = self.stats
        result.trace = list(self.trace.events)

        if result.success:
            logger.info(
                "Planning succeeded: %d commands, %d steps, %d backtracks",
                len(result.plan.commands),
                self.stats.steps,
                self.stats.backtracks,
            )
        else:
            logger.info("Planning failed: %s", result.failure.message)
        return result

    # =========================================================================
    # Search
    # =========================================================================

    def _base_network(self) -> SimpleTemporalNetwork:
        return self.config.network if self.config.network is not None else SimpleTemporalNetwork.new()

    def _root(self, state: State, items: list[WorkItem], **seed: Any) -> _SearchNode:
        seed.setdefault("network", self._base_network())
        return _SearchNode(state=state, pending=tuple(_Pending(item, 0) for item in items), **seed)

    def _search(self, root: _SearchNode) -> PlannerResult:
        node: Optional[_SearchNode] = root
        choice_points: list[_ChoicePoint] = []
        last_failure: Optional[PlanningFailure] = None

        try:
            while True:
                budget_status = self._check_hard_budgets()
                if budget_status != BudgetStatus.OK:
                    return self._budget_failure(budget_status, choice_points)

                if node is None:
                    if not choice_points:
                        return PlannerResult(
                            success=False,
                            failure=PlanningFailure(
                                kind=FailureKind.SEARCH_EXHAUSTED,
                                message="No choice point left to backtrack to",
                                cause=last_failure,
                            ),
                        )
                    self.stats.steps += 1
                    node, failure = self._try_candidates(choice_points)
                    # Exhaustion keeps the branch failure as the cause
                    if last_failure is None:
                        last_failure = failure
                    continue

                if not node.pending:
                    return PlannerResult(
                        success=True,
                        plan=Plan(
                            commands=list(node.commands),
                            final_state=node.state,
                            schedule=list(node.schedule),
                            network=node.network,
                        ),
                    )

                self.stats.steps += 1
                entry, rest = node.pending[0], node.pending[1:]
                self.stats.max_depth = max(self.stats.max_depth, entry.depth)
                node, failure = self._step(node, entry, rest, choice_points)
                if failure is not None:
                    last_failure = failure
                    self._record_backtrack(failure, entry)
        except _FatalPlanningError as e:
            logger.error("Fatal planning error: %s", e.failure.message)
            return PlannerResult(success=False, failure=e.failure)

    def _step(
        self,
        node: _SearchNode,
        entry: _Pending,
        rest: tuple[_Pending, ...],
        choice_points: list[_ChoicePoint],
    ) -> tuple[Optional[_SearchNode], Optional[PlanningFailure]]:
        """Process the front item. Returns the next node, or None plus the failure."""
        item = entry.item

        if isinstance(item, _VerifyGoal):
            return self._verify(node, entry, rest)

        if not is_work_item(item):
            raise _FatalPlanningError(
                PlanningFailure(
                    kind=FailureKind.UNKNOWN_METHOD,
                    message=f"Not a work item: {item!r}",
                )
            )

        if isinstance(item, Command):
            return self._apply_command(node, entry, rest)

        if isinstance(item, (Unigoal, Multigoal)) and goal_achieved(self.domain, node.state, item):
            self.trace.log(events.GOAL_SATISFIED, {"goal": str(item)}, item=str(item), depth=entry.depth)
            return replace(node, pending=rest), None

        candidates = self.domain.methods_for(item)
        if not candidates:
            raise _FatalPlanningError(
                PlanningFailure(
                    kind=FailureKind.UNKNOWN_METHOD,
                    message=f"No methods registered for {_describe(item)}",
                    item=item,
                )
            )

        if entry.depth >= self.budgets.max_depth:
            return None, PlanningFailure(
                kind=FailureKind.DEPTH_EXCEEDED,
                message=f"Depth limit {self.budgets.max_depth} reached at {item}",
                item=item,
            )

        choice_points.append(
            _ChoicePoint(node=replace(node, pending=rest), entry=entry, candidates=list(candidates))
        )
        return self._try_candidates(choice_points)

    def _try_candidates(
        self, choice_points: list[_ChoicePoint]
    ) -> tuple[Optional[_SearchNode], Optional[PlanningFailure]]:
        """
        Resume the newest choice point at its next untried candidate.

        A choice point with no candidates left is popped and None is returned,
        so the caller backtracks into the one below it.
        """
        point = choice_points[-1]
        item, depth = point.entry.item, point.entry.depth
        state = point.node.state

        while point.next_index < len(point.candidates):
            method = point.candidates[point.next_index]
            point.next_index += 1
            method_name = getattr(method, "__name__", repr(method))

            expansion = self._call_method(method, state, item)
            if declined(expansion):
                self.trace.log(
                    events.METHOD_DECLINED,
                    {"item": str(item)},
                    item=str(item),
                    method_name=method_name,
                    depth=depth,
                )
                continue

            if not isinstance(expansion, (list, tuple)):
                raise TypeError(
                    f"Method {method_name} returned {type(expansion).__name__}, "
                    f"expected a list of work items or NOT_APPLICABLE"
                )

            logger.debug("%s -> %s (%d items)", item, method_name, len(expansion))
            self.trace.log(
                events.METHOD_SELECTED,
                {"item": str(item), "expansion": [str(sub) for sub in expansion]},
                item=str(item),
                method_name=method_name,
                depth=depth,
            )

            spliced = [_Pending(sub, depth + 1) for sub in expansion]
            if self.config.verify_goals and isinstance(item, (Unigoal, Multigoal)):
                spliced.append(_Pending(_VerifyGoal(item), depth))
            return replace(point.node, pending=tuple(spliced) + point.node.pending), None

        choice_points.pop()
        return None, PlanningFailure(
            kind=FailureKind.METHOD_NOT_APPLICABLE,
            message=f"No applicable method for {item}",
            item=item,
        )

    def _call_method(self, method: Any, state: State, item: WorkItem) -> Any:
        if isinstance(item, Task):
            return method(state, *item.args)
        if isinstance(item, Unigoal):
            return method(state, item.entity, item.target)
        return method(state, item)

    def _verify(
        self, node: _SearchNode, entry: _Pending, rest: tuple[_Pending, ...]
    ) -> tuple[Optional[_SearchNode], Optional[PlanningFailure]]:
        goal = entry.item.goal
        if goal_achieved(self.domain, node.state, goal):
            self.trace.log(events.GOAL_VERIFIED, {"goal": str(goal)}, item=str(goal), depth=entry.depth)
            return replace(node, pending=rest), None
        return None, PlanningFailure(
            kind=FailureKind.GOAL_NOT_ACHIEVED,
            message=f"Expansion finished but {goal} does not hold",
            item=goal,
        )

    # =========================================================================
    # Commands
    # =========================================================================

    def _apply_command(
        self, node: _SearchNode, entry: _Pending, rest: tuple[_Pending, ...]
    ) -> tuple[Optional[_SearchNode], Optional[PlanningFailure]]:
        command: Command = entry.item
        fn = self.domain.commands.get(command.name)
        if fn is None:
            raise _FatalPlanningError(
                PlanningFailure(
                    kind=FailureKind.UNKNOWN_METHOD,
                    message=f"No command registered for {command.name!r}",
                    item=command,
                )
            )

        if command in self.blacklist:
            return None, self._command_failed(
                command, entry.depth, FailureKind.BLACKLISTED, "command failed during execution"
            )

        outcome = fn(node.state, *command.args)

        if isinstance(outcome, CommandFailure):
            return None, self._command_failed(
                command, entry.depth, FailureKind.COMMAND_PRECONDITION, outcome.reason
            )
        if declined(outcome):
            return None, self._command_failed(
                command, entry.depth, FailureKind.COMMAND_PRECONDITION, "precondition failed"
            )

        if isinstance(outcome, DurativeEffect):
            scheduled = self._schedule(node, command, outcome)
            if isinstance(scheduled, PlanningFailure):
                self.trace.log(
                    events.COMMAND_FAILED,
                    {"command": str(command), "kind": scheduled.kind.name, "reason": scheduled.message},
                    item=str(command),
                    depth=entry.depth,
                )
                return None, scheduled
            network, action = scheduled
            new_node = replace(
                node,
                state=outcome.state,
                pending=rest,
                network=network,
                commands=node.commands + (command,),
                schedule=node.schedule + (action,),
                time_cursor=action.end,
            )
        elif isinstance(outcome, State):
            new_node = replace(
                node,
                state=outcome,
                pending=rest,
                commands=node.commands + (command,),
            )
        else:
            raise TypeError(
                f"Command {command.name!r} returned {type(outcome).__name__}, "
                f"expected State, DurativeEffect or CommandFailure"
            )

        self.stats.commands_applied += 1
        self.trace.log(events.COMMAND_APPLIED, {"command": str(command)}, item=str(command), depth=entry.depth)
        return new_node, None

    def _command_failed(
        self, command: Command, depth: int, kind: FailureKind, reason: str
    ) -> PlanningFailure:
        self.trace.log(
            events.COMMAND_FAILED,
            {"command": str(command), "kind": kind.name, "reason": reason},
            item=str(command),
            depth=depth,
        )
        return PlanningFailure(kind=kind, message=f"{command}: {reason}", item=command)

    def _schedule(
        self, node: _SearchNode, command: Command, effect: DurativeEffect
    ) -> Union[tuple[SimpleTemporalNetwork, ScheduledAction], PlanningFailure]:
        """
        Place a durative command after the previous one and check the network.

        The action goes into the earliest free slot at or after the end of the
        previous durative action (and its release time, if any).
        """
        min_duration, _ = effect.duration_bounds
        earliest = node.time_cursor
        if effect.release is not None:
            earliest = max(earliest, effect.release)

        network = node.network
        slot = network.find_next_available_slot(min_duration, earliest)
        if slot is None:
            return PlanningFailure(
                kind=FailureKind.INCONSISTENT_NETWORK,
                message=f"No free slot of length {min_duration} for {command} after {earliest}",
                item=command,
            )

        start = slot.start_time
        end = start + min_duration
        conflicts = network.check_interval_conflicts(start, end)
        if conflicts:
            names = ", ".join(c.id for c in conflicts)
            return PlanningFailure(
                kind=FailureKind.INCONSISTENT_NETWORK,
                message=f"{command} at [{start}, {end}) conflicts with {names}",
                item=command,
            )

        interval_id = _interval_id(command, len(node.commands))
        network = network.add_interval(
            IntervalSpec(
                id=interval_id,
                duration=effect.duration_bounds,
                start=start,
                metadata={"command": str(command)},
            )
        )
        if effect.deadline is not None:
            network = network.add_constraint(ORIGIN, end_point(interval_id), (-math.inf, effect.deadline))
        if effect.release is not None:
            network = network.add_constraint(ORIGIN, start_point(interval_id), (effect.release, math.inf))

        report = network.check_consistency()
        if not report.consistent:
            return PlanningFailure(
                kind=FailureKind.INCONSISTENT_NETWORK,
                message=f"{command} makes the temporal network inconsistent: {report.reason}",
                item=command,
            )
        return network, ScheduledAction(command=command, start=start, end=end)

    # =========================================================================
    # Execution mode
    # =========================================================================

    def _run_with_execution(self, initial_state: State, items: list[WorkItem]) -> PlannerResult:
        """
        Plan, then run each command for real. A failed command is blacklisted
        and the original items are replanned from the live state.

        Commands that already ran stay at the front of every later plan, and
        their intervals stay booked in the network the replan starts from.
        """
        live_state = initial_state
        executed: list[Command] = []
        executed_schedule: list[ScheduledAction] = []
        network = self._base_network()

        while True:
            root = self._root(
                live_state,
                items,
                network=network,
                commands=tuple(executed),
                schedule=tuple(executed_schedule),
                time_cursor=executed_schedule[-1].end if executed_schedule else 0,
            )
            result = self._search(root)
            if not result.success:
                return result

            planned_actions = iter(result.plan.schedule[len(executed_schedule):])
            next_action = next(planned_actions, None)
            failed: Optional[Command] = None
            for command in result.plan.commands[len(executed):]:
                action = None
                if next_action is not None and next_action.command == command:
                    action, next_action = next_action, next(planned_actions, None)

                outcome = self._actuate(live_state, command)
                if outcome is None:
                    failed = command
                    break

                if action is not None:
                    network = network.add_interval(
                        IntervalSpec(
                            id=_interval_id(command, len(executed)),
                            duration=action.end - action.start,
                            start=action.start,
                            metadata={"command": str(command)},
                        )
                    )
                    executed_schedule.append(action)
                live_state = outcome
                executed.append(command)

            if failed is None:
                result.plan = replace(result.plan, final_state=live_state)
                return result

            self.blacklist.add(failed)
            self.stats.replans += 1
            logger.warning("Command %s failed during execution, replanning (%d)", failed, self.stats.replans)
            self.trace.log(
                events.REPLAN,
                {"failed": str(failed), "replans": self.stats.replans},
                item=str(failed),
            )
            if self.stats.replans > self.budgets.max_replans:
                return PlannerResult(
                    success=False,
                    failure=PlanningFailure(
                        kind=FailureKind.SEARCH_EXHAUSTED,
                        message=f"Replan limit {self.budgets.max_replans} reached",
                        item=failed,
                        cause=PlanningFailure(
                            kind=FailureKind.BLACKLISTED,
                            message=f"{failed}: command failed during execution",
                            item=failed,
                        ),
                    ),
                )

    def _actuate(self, state: State, command: Command) -> Optional[State]:
        """Run a command's actuator (or the command itself). None on failure."""
        fn = self.domain.actuator_for(command.name) or self.domain.commands[command.name]
        outcome = fn(state, *command.args)
        if isinstance(outcome, DurativeEffect):
            return outcome.state
        if isinstance(outcome, State):
            return outcome
        return None

    # =========================================================================
    # Budgets and bookkeeping
    # =========================================================================

    def _record_backtrack(self, failure: PlanningFailure, entry: _Pending) -> None:
        self.stats.backtracks += 1
        logger.debug("Backtrack #%d: %s", self.stats.backtracks, failure.message)
        self.trace.log(
            events.BACKTRACK,
            {"kind": failure.kind.name, "reason": failure.message, "backtrack_count": self.stats.backtracks},
            item=str(entry.item),
            depth=entry.depth,
        )

        if self.stats.backtracks >= self.budgets.max_backtracks and not self._soft_backtrack_warned:
            self._soft_backtrack_warned = True
            logger.warning(
                "Backtrack count %d reached soft limit %d",
                self.stats.backtracks,
                self.budgets.max_backtracks,
            )
            self.trace.log(
                events.SOFT_BUDGET_BACKTRACKS,
                {"count": self.stats.backtracks, "limit": self.budgets.max_backtracks},
            )

    def _check_hard_budgets(self) -> BudgetStatus:
        """Check hard budget limits."""
        if self.stats.steps >= self.budgets.max_steps:
            return BudgetStatus.STEP_LIMIT

        elapsed_ms = int(time.time() * 1000) - self.start_time_ms
        if elapsed_ms >= self.budgets.time_budget_ms:
            return BudgetStatus.TIME_EXCEEDED

        return BudgetStatus.OK

    def _budget_failure(self, status: BudgetStatus, choice_points: list[_ChoicePoint]) -> PlannerResult:
        elapsed_ms = int(time.time() * 1000) - self.start_time_ms
        logger.warning("Hard budget exceeded: %s after %d steps", status.name, self.stats.steps)
        self.trace.log(
            events.BUDGET_EXCEEDED,
            {
                "reason": status.name,
                "steps": self.stats.steps,
                "elapsed_ms": elapsed_ms,
                "choice_points": len(choice_points),
            },
        )
        return PlannerResult(
            success=False,
            failure=PlanningFailure(
                kind=FailureKind.TIMEOUT,
                message=f"Budget exceeded ({status.name}) after {self.stats.steps} steps, "
                f"depth {self.stats.max_depth}",
            ),
        )


def _interval_id(command: Command, position: int) -> str:
    return f"{command.name}@{position}"


def _describe(item: WorkItem) -> str:
    kind = type(item).__name__.lower()
    return f"{kind} {item.name!r}"


def plan(
    domain: Domain,
    initial_state: State,
    items: Iterable[WorkItem],
    config: Optional[PlannerConfig] = None,
) -> PlannerResult:
    """Convenience wrapper: ``HTNPlanner(domain, config).run(initial_state, items)``."""
    return HTNPlanner(domain, config).run(initial_state, items)
