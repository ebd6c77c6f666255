import json
import subprocess
import sys

from nbe.cli import run_cli


def _var(name):
    return {"op": "var", "args": [name]}


def _seq(left, right):
    return {"op": "seq", "args": [left, right]}


UNIT = {"op": "unit"}


def test_describe_prints_the_theory(capsys):
    assert run_cli(["describe", "state"]) == 0
    summary = json.loads(capsys.readouterr().out)

    assert summary["theory"] == "state"
    assert [schema["name"] for schema in summary["schemas"]] == ["get-get", "set-set", "set-get", "get-set"]
    assert summary["signature"]["operations"]["get"]["answers"] == ["nat"]
    assert summary["domains"]["nat"] == [0, 1, 2, 3, 7, 42]


def test_check_decides_goals_and_traces(tmp_path, capsys):
    goals = {
        "goals": [
            {
                "name": "units",
                "left": _seq(_seq(_var("x"), UNIT), _seq(UNIT, _var("y"))),
                "right": _seq(_var("x"), _var("y")),
            },
            {"name": "swap", "left": _seq(_var("x"), _var("y")), "right": _seq(_var("y"), _var("x"))},
        ]
    }
    goals_path = tmp_path / "goals.json"
    goals_path.write_text(json.dumps(goals))
    trace_path = tmp_path / "trace.jsonl"

    assert run_cli(["check", str(goals_path), "--trace-jsonl", str(trace_path)]) == 0
    summary = json.loads(capsys.readouterr().out)

    assert [goal["equivalent"] for goal in summary["goals"]] == [True, False]
    assert summary["goals"][0]["left_normal"] == summary["goals"][0]["right_normal"]
    assert summary["checks"] == 2
    assert summary["equal"] == 1

    lines = trace_path.read_text().splitlines()
    assert len(lines) == summary["events"]
    assert json.loads(lines[-1])["kind"] == "equivalent"


def test_rewrite_runs_to_idle(tmp_path, capsys):
    term_path = tmp_path / "term.json"
    term_path.write_text(json.dumps({"term": _seq(_seq(_var("a"), UNIT), _var("b"))}))

    assert run_cli(["rewrite", str(term_path)]) == 0
    summary = json.loads(capsys.readouterr().out)

    assert summary["idle"] is True
    assert summary["rule_counts"] == {"assoc": 1, "left-unit": 1}
    assert summary["result"]["op"] == "seq"
    assert summary["normal_form"]["args"][1]["args"][1] == {"op": "unit", "args": []}


def test_rewrite_respects_the_step_budget(tmp_path, capsys):
    term_path = tmp_path / "term.json"
    term_path.write_text(json.dumps(_seq(_seq(_var("a"), UNIT), _var("b"))))

    assert run_cli(["rewrite", str(term_path), "--max-steps", "1"]) == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["budget_exhausted"] is True
    assert summary["events"] == 1

    assert run_cli(["rewrite", str(term_path), "--max-steps", "0"]) == 1
    assert "max-steps" in capsys.readouterr().err


def test_missing_goals_file_is_an_error(tmp_path, capsys):
    assert run_cli(["check", str(tmp_path / "missing.json")]) == 1
    assert capsys.readouterr().err.startswith("nbe: ")


def test_malformed_goals_document_is_an_error(tmp_path, capsys):
    path = tmp_path / "goals.json"
    path.write_text(json.dumps([1, 2]))
    assert run_cli(["check", str(path)]) == 1
    assert "goals" in capsys.readouterr().err


def test_module_entry_point():
    completed = subprocess.run(
        [sys.executable, "-m", "nbe.cli", "describe", "monoid"],
        capture_output=True,
        text=True,
        check=True,
    )
    summary = json.loads(completed.stdout)
    assert summary["theory"] == "monoid"
    assert summary["signature"]["pure"] is False
