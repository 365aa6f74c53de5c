"""Command line entry-point for temporal HTN planning and STN scheduling queries."""

from __future__ import annotations

import importlib
import json
import logging
import math
from pathlib import Path
from typing import Any, Optional, TextIO

import click
import yaml

from .htn import Domain, HTNPlanner
from .htn.task import items_from_list
from .state import FactValueError, State
from .temporal import IntervalSpec, SimpleTemporalNetwork
from .utils.config import ConfigError, ConfigManager
from .utils.logging import setup_logging

logger = logging.getLogger("temporal_htn.cli")


def _load_domain(spec: str) -> Domain:
    """Resolve ``package.module:factory`` to a Domain (factory may also be a Domain)."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise click.ClickException(f"Domain must look like 'module:factory', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.ClickException(f"Cannot import domain module {module_name!r}: {e}") from e

    target = getattr(module, attr, None)
    if target is None:
        raise click.ClickException(f"Module {module_name!r} has no attribute {attr!r}")
    domain = target if isinstance(target, Domain) else target()
    if not isinstance(domain, Domain):
        raise click.ClickException(f"{spec} did not produce a Domain")
    return domain


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} must contain a mapping")
    return data


def _load_problem(path: Path) -> tuple[State, list]:
    """
    Problem file layout:

        facts:
          - [pos, a, table]               # name, entity, value
          - [status, clear, a, true]      # category, name, entity, value
        defaults: {clear: false}
        items:
          - {unigoal: pos, entity: a, target: b}
    """
    data = _read_yaml(path)
    try:
        state = State.from_facts(
            (tuple(fact) for fact in data.get("facts", [])),
            defaults=data.get("defaults"),
        )
        items = items_from_list(data.get("items", []))
    except (ValueError, FactValueError) as e:
        raise click.ClickException(f"Invalid problem file {path}: {e}") from e
    return state, items


def _bound(value: Any, default: float) -> float:
    return default if value is None else value


def _load_network(path: Path) -> SimpleTemporalNetwork:
    """
    Network file layout:

        time_unit: second
        lod_level: medium
        constraints:
          - [A_start, A_end, 10, 10]      # from, to, min, max (null = unbounded)
        intervals:
          - {id: meeting, duration: 30, start: 0}
    """
    data = _read_yaml(path)
    try:
        network = SimpleTemporalNetwork.new(
            data.get("time_unit", "second"),
            data.get("lod_level", "medium"),
        )
        for entry in data.get("constraints", []):
            from_point, to_point, low, high = entry
            network = network.add_constraint(
                str(from_point), str(to_point), (_bound(low, -math.inf), _bound(high, math.inf))
            )
        for entry in data.get("intervals", []):
            duration = entry.get("duration")
            if isinstance(duration, list):
                duration = tuple(duration)
            network = network.add_interval(
                IntervalSpec(
                    id=str(entry["id"]),
                    duration=duration,
                    start=entry.get("start"),
                    end=entry.get("end"),
                    metadata=entry.get("metadata"),
                )
            )
    except (ValueError, TypeError, KeyError) as e:
        raise click.ClickException(f"Invalid network file {path}: {e}") from e
    return network


def _jsonable(value: Any) -> Any:
    """Infinite bounds become null so the output stays strict JSON."""
    if isinstance(value, float) and math.isinf(value):
        return None
    return value


@click.group()
@click.version_option(package_name="temporal-htn")
def main() -> None:
    """Temporal HTN planner."""


@main.command("plan")
@click.option("--domain", "-d", "domain_spec", required=True, help="Domain factory as module:callable")
@click.option("--problem", "-p", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True, help="YAML problem file")
@click.option("--config", "-c", "config_path", type=click.Path(dir_okay=False, path_type=Path), default=None, help="YAML config file")
@click.option("--execute", is_flag=True, help="Run commands through their actuators and replan on failure")
@click.option("--trace", "show_trace", is_flag=True, help="Include the planner trace in the output")
@click.option("--output", "-o", type=click.File("w"), default="-", help="Output destination (defaults to stdout)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def plan_command(
    domain_spec: str,
    problem: Path,
    config_path: Optional[Path],
    execute: bool,
    show_trace: bool,
    output: TextIO,
    verbose: bool,
) -> None:
    """Plan for the items in PROBLEM using a domain."""
    setup_logging(verbose=verbose)

    try:
        config = ConfigManager(config_path)
        if execute:
            config.set("planner.execute", True)
        planner_config = config.planner_config()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    domain = _load_domain(domain_spec)
    state, items = _load_problem(problem)
    if not items:
        raise click.ClickException("Problem file has no items to plan for")

    result = HTNPlanner(domain, planner_config).run(state, items)

    if verbose:
        logger.info(f"Planner finished in {result.stats.elapsed_ms}ms after {result.stats.steps} steps")

    output_data = result.to_dict()
    for action in output_data["schedule"]:
        action["start"] = _jsonable(action["start"])
        action["end"] = _jsonable(action["end"])
    if show_trace:
        output_data["trace"] = [e.to_dict() for e in result.trace]

    json.dump(output_data, output, indent=2, default=str)
    output.write("\n")

    if not result.success:
        output.flush()
        click.get_current_context().exit(1)


@main.command("schedule")
@click.option("--network", "-n", "network_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), required=True, help="YAML network file")
@click.option("--duration", type=float, required=True, help="Slot length in network ticks")
@click.option("--window", type=(float, float), default=(0.0, 100.0), show_default=True, help="Search window start and end")
@click.option("--output", "-o", type=click.File("w"), default="-", help="Output destination (defaults to stdout)")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def schedule_command(
    network_path: Path,
    duration: float,
    window: tuple[float, float],
    output: TextIO,
    verbose: bool,
) -> None:
    """Report consistency, intervals and free slots of a temporal network."""
    setup_logging(verbose=verbose)

    network = _load_network(network_path)
    report = network.check_consistency()
    window_start, window_end = window

    slots = network.find_free_slots(duration, window_start, window_end)
    next_slot = network.find_next_available_slot(duration, window_start)

    output_data = {
        "consistent": report.consistent,
        "reason": report.reason,
        "time_unit": network.time_unit.value,
        "lod_level": network.lod_level.value,
        "time_points": list(network.time_points),
        "intervals": [
            {
                "id": i.id,
                "start": i.start_time,
                "end": i.end_time,
                "metadata": dict(i.metadata),
            }
            for i in network.get_intervals()
        ],
        "free_slots": [{"start": s.start_time, "end": _jsonable(s.end_time)} for s in slots],
        "next_slot": (
            {"start": next_slot.start_time, "end": _jsonable(next_slot.end_time)}
            if next_slot is not None
            else None
        ),
    }
    json.dump(output_data, output, indent=2, default=str)
    output.write("\n")


if __name__ == "__main__":  # pragma: no cover
    main()
