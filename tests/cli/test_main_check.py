"""
Tests for the CLI 'check' and 'explain' commands.

Verifies that:
1.  Arguments are parsed and dispatched to the command handlers.
2.  Exit codes: 0 when clean, 1 when unsafe launches exist, 2 on parse failures.
3.  JSON, plain and table renderings. JSON mode keeps stdout parseable.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from recoverlint.cli.__main__ import main
from recoverlint.cli.handlers.check import EXIT_CLEAN, EXIT_PARSE_ERROR, EXIT_UNSAFE
from recoverlint.utils.console import reset_console, set_verbose

SAFE = """package app

func start() {
	go work()
}

func work() {
	defer func() {
		if r := recover(); r != nil {
			println(r)
		}
	}()
}
"""

UNSAFE = """package app

func start() {
	go leak()
}

func leak() {
	println("no guard")
}
"""


@pytest.fixture(autouse=True)
def restore_console():
  yield
  set_verbose(False)
  reset_console()


@pytest.fixture
def project(tmp_path, monkeypatch):
  """An isolated working directory (no pyproject.toml above it)."""
  monkeypatch.chdir(tmp_path)
  return tmp_path


@patch("recoverlint.cli.commands.handle_check")
def test_check_dispatch_defaults(mock_handle):
  mock_handle.return_value = 0
  assert main(["check", "src/"]) == 0

  mock_handle.assert_called_once()
  args = mock_handle.call_args[0]
  assert args == ([Path("src/")], None, None, None, "table")


@patch("recoverlint.cli.commands.handle_check")
def test_check_dispatch_flags(mock_handle):
  mock_handle.return_value = 1
  code = main(["check", "a.go", "b", "--marker", "nolint:recover", "--max-depth", "3", "--include-tests", "--json"])

  assert code == 1
  args = mock_handle.call_args[0]
  assert args == ([Path("a.go"), Path("b")], "nolint:recover", 3, True, "json")


def test_check_json_and_plain_are_exclusive(capsys):
  with pytest.raises(SystemExit):
    main(["check", "x", "--json", "--plain"])


@patch("recoverlint.cli.commands.handle_explain")
def test_explain_dispatch(mock_handle):
  mock_handle.return_value = 0
  main(["explain", "pkg", "--name", "Run", "--name", "worker"])
  args = mock_handle.call_args[0]
  assert args == ([Path("pkg")], ["Run", "worker"])


def test_clean_tree_exits_zero(project, captured_console):
  (project / "app.go").write_text(SAFE)
  assert main(["check", str(project)]) == EXIT_CLEAN
  assert "Every goroutine launch is guarded" in captured_console.export_text()


def test_unsafe_tree_table(project, captured_console):
  (project / "app.go").write_text(UNSAFE)
  assert main(["check", str(project)]) == EXIT_UNSAFE

  text = captured_console.export_text()
  assert "Goroutines without a deferred recover" in text
  assert "app.go:4:2" in text
  assert "leak" in text
  assert "1 unguarded goroutine launch(es)" in text


def test_unsafe_tree_json(project, capsys):
  (project / "app.go").write_text(UNSAFE)
  assert main(["check", str(project), "--json"]) == EXIT_UNSAFE

  payload = json.loads(capsys.readouterr().out)
  assert payload["errors"] == []
  assert payload["launch_sites"] == [
    {
      "path": str(project / "app.go"),
      "line": 4,
      "column": 2,
      "expression": "leak",
      "enclosing": "app.start",
      "reaches_recovery": False,
    }
  ]


def test_unsafe_tree_plain(project, captured_console):
  (project / "app.go").write_text(UNSAFE)
  assert main(["check", str(project / "app.go"), "--plain"]) == EXIT_UNSAFE
  assert f"{project / 'app.go'}:4:2: go leak" in captured_console.export_text()


def test_marker_flag_suppresses(project, captured_console):
  (project / "app.go").write_text(UNSAFE.replace("func leak()", "// lint:owned\nfunc leak()"))
  assert main(["check", str(project), "--marker", "lint:owned"]) == EXIT_CLEAN


def test_parse_failure_exits_two_and_still_reports(project, capsys):
  (project / "app.go").write_text(UNSAFE)
  (project / "broken.go").write_text("package app\n\nfunc broken( {\n")

  assert main(["check", str(project), "--json"]) == EXIT_PARSE_ERROR
  captured = capsys.readouterr()
  payload = json.loads(captured.out)
  assert [site["expression"] for site in payload["launch_sites"]] == ["leak"]
  assert [error["path"] for error in payload["errors"]] == [str(project / "broken.go")]
  assert payload["errors"][0]["line"] is not None
  assert "Failed to parse" in captured.err


def test_verbose_json_keeps_stdout_parseable(project, capsys):
  (project / "app.go").write_text(UNSAFE.replace("go leak()", "go missing()"))
  assert main(["-v", "check", str(project), "--json"]) == EXIT_UNSAFE

  captured = capsys.readouterr()
  payload = json.loads(captured.out)
  assert [site["expression"] for site in payload["launch_sites"]] == ["missing"]
  assert "Unresolved callee" in captured.err


def test_missing_path_exits_two(project, captured_console):
  assert main(["check", str(project / "missing")]) == EXIT_PARSE_ERROR
  assert "no such file or directory" in captured_console.export_text()


def test_depth_from_pyproject(project, captured_console):
  (project / "pyproject.toml").write_text("[tool.recoverlint]\nmax_call_depth = 1\n")
  (project / "app.go").write_text(SAFE.replace("go work()", "go outer()") + "\nfunc outer() {\n\twork()\n}\n")
  assert main(["check", str(project)]) == EXIT_UNSAFE
  assert main(["check", str(project), "--max-depth", "0"]) == EXIT_CLEAN


def test_explain_reports_flags(project, captured_console):
  (project / "app.go").write_text(SAFE)
  assert main(["explain", str(project), "--name", "work", "--name", "app.start"]) == 0

  text = captured_console.export_text()
  assert "app.work" in text
  assert "app.start" in text
  assert "safe" in text


def test_explain_unknown_name(project, captured_console):
  (project / "app.go").write_text(SAFE)
  assert main(["explain", str(project), "--name", "nothing"]) == 1
  assert "No declaration named nothing" in captured_console.export_text()
