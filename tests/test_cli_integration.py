"""CLI integration tests."""

import json

import pytest
import yaml
from click.testing import CliRunner

from temporal_htn.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def problem_file(tmp_path):
    path = tmp_path / "problem.yaml"
    path.write_text(
        yaml.dump(
            {
                "facts": [
                    ["pos", "a", "table"],
                    ["pos", "b", "table"],
                    ["pos", "c", "a"],
                    ["clear", "a", False],
                    ["clear", "b", True],
                    ["clear", "c", True],
                    ["holding", "hand", False],
                ],
                "items": [{"multigoal": [["pos", "a", "b"]]}],
            }
        )
    )
    return path


@pytest.fixture
def network_file(tmp_path):
    path = tmp_path / "network.yaml"
    path.write_text(
        yaml.dump(
            {
                "time_unit": "second",
                "lod_level": "medium",
                "constraints": [["A_start", "A_end", 10, 10]],
                "intervals": [{"id": "B", "duration": 5, "start": 40}],
            }
        )
    )
    return path


class TestPlanCommand:
    def test_plans_blocks_world(self, runner, problem_file):
        result = runner.invoke(main, ["plan", "--domain", "blocks_world:make_domain", "--problem", str(problem_file)])

        assert result.exit_code == 0, result.output
        output = json.loads(result.output)
        assert output["success"] is True
        assert [step["command"] for step in output["plan"]] == ["unstack", "putdown", "pickup", "stack"]
        assert output["final_state"]["predicate"]["pos"]["a"] == "b"
        assert output["stats"]["steps"] > 0
        assert output["failure"] is None

    def test_failure_exits_nonzero(self, runner, tmp_path):
        path = tmp_path / "impossible.yaml"
        path.write_text(yaml.dump({"facts": [], "items": [{"task": "take", "args": ["ghost"]}]}))

        result = runner.invoke(main, ["plan", "-d", "blocks_world:make_domain", "-p", str(path)])

        assert result.exit_code == 1
        output = json.loads(result.output)
        assert output["success"] is False
        assert output["failure"]["kind"] == "SEARCH_EXHAUSTED"

    def test_trace_flag(self, runner, problem_file):
        result = runner.invoke(
            main, ["plan", "-d", "blocks_world:make_domain", "-p", str(problem_file), "--trace"]
        )

        output = json.loads(result.output)
        assert any(e["event_type"] == "METHOD_SELECTED" for e in output["trace"])

    def test_config_file_applied(self, runner, problem_file, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump({"planner": {"max_steps": 2}}))
        output_path = tmp_path / "result.json"

        result = runner.invoke(
            main,
            [
                "plan", "-d", "blocks_world:make_domain", "-p", str(problem_file),
                "-c", str(config_path), "-o", str(output_path),
            ],
        )

        assert result.exit_code == 1
        assert json.loads(output_path.read_text())["failure"]["kind"] == "TIMEOUT"

    def test_bad_domain_spec(self, runner, problem_file):
        result = runner.invoke(main, ["plan", "-d", "no_colon_here", "-p", str(problem_file)])

        assert result.exit_code != 0
        assert "module:factory" in result.output

    def test_missing_domain_module(self, runner, problem_file):
        result = runner.invoke(main, ["plan", "-d", "does_not_exist:make", "-p", str(problem_file)])

        assert result.exit_code != 0
        assert "Cannot import" in result.output

    def test_empty_problem(self, runner, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text(yaml.dump({"facts": []}))

        result = runner.invoke(main, ["plan", "-d", "blocks_world:make_domain", "-p", str(path)])

        assert result.exit_code != 0
        assert "no items" in result.output

    def test_malformed_item(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"items": [{"unigoal": "pos"}]}))

        result = runner.invoke(main, ["plan", "-d", "blocks_world:make_domain", "-p", str(path)])

        assert result.exit_code != 0
        assert "Invalid problem file" in result.output


class TestScheduleCommand:
    def test_reports_slots(self, runner, network_file):
        result = runner.invoke(
            main, ["schedule", "--network", str(network_file), "--duration", "5", "--window", "0", "100"]
        )

        assert result.exit_code == 0, result.output
        output = json.loads(result.output)
        assert output["consistent"] is True
        assert [i["id"] for i in output["intervals"]] == ["A", "B"]
        assert [(s["start"], s["end"]) for s in output["free_slots"]] == [(10, 40), (45, 100)]
        assert output["next_slot"] == {"start": 10, "end": 40}

    def test_inconsistent_network(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"constraints": [["A", "B", 5, 5], ["B", "A", 5, 5]]}))

        result = runner.invoke(main, ["schedule", "-n", str(path), "--duration", "1"])

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert output["consistent"] is False
        assert "Negative cycle" in output["reason"]

    def test_unbounded_constraint(self, runner, tmp_path):
        path = tmp_path / "open.yaml"
        path.write_text(yaml.dump({"constraints": [["A", "B", 5, None]]}))

        result = runner.invoke(main, ["schedule", "-n", str(path), "--duration", "1"])

        assert result.exit_code == 0
        assert json.loads(result.output)["consistent"] is True

    def test_invalid_bounds_reported(self, runner, tmp_path):
        path = tmp_path / "swap.yaml"
        path.write_text(yaml.dump({"constraints": [["A", "B", 9, 1]]}))

        result = runner.invoke(main, ["schedule", "-n", str(path), "--duration", "1"])

        assert result.exit_code != 0
        assert "Invalid network file" in result.output
