"""
Check Command Handler and Reporter.

Runs a `Checker` over the given paths and prints the unsafe launch sites,
sorted by position, as a rich table, plain ``path:line:col`` lines, or JSON.

In JSON mode stdout carries only the JSON document: logs move to stderr and
parse failures are reported inside the document as well.
"""

import json
from pathlib import Path
from typing import List, Optional

from rich.table import Table

from recoverlint.analysis.collector import LaunchSite
from recoverlint.config import CheckerConfig
from recoverlint.core.checker import Checker, sort_launch_sites
from recoverlint.errors import AggregateParseError, SourceParseError
from recoverlint.utils.console import console, log_error, log_info, log_success, log_warning, use_stderr

EXIT_CLEAN = 0
EXIT_UNSAFE = 1
EXIT_PARSE_ERROR = 2


def handle_check(
  paths: List[Path],
  suppression_marker: Optional[str] = None,
  max_depth: Optional[int] = None,
  include_tests: Optional[bool] = None,
  output_format: str = "table",
) -> int:
  """
  Checks Go sources for goroutines launched without a deferred recover.

  Args:
      paths: Go files or directories.
      suppression_marker: Override for the doc-comment suppression marker.
      max_depth: Override for the call depth bound.
      include_tests: Override for ``_test.go`` inclusion.
      output_format: ``table``, ``plain`` or ``json``.

  Returns:
      int: 0 if every launch is guarded, 1 if unsafe launches were found,
      2 if any path was missing or failed to parse.
  """
  json_mode = output_format == "json"
  if json_mode:
    use_stderr()

  config = CheckerConfig.load(
    suppression_marker=suppression_marker,
    max_call_depth=max_depth,
    include_tests=include_tests,
  )
  checker = Checker(config)

  failed: Optional[AggregateParseError] = None
  try:
    checker.check_files(paths)
  except AggregateParseError as e:
    failed = e
    for err in e.errors:
      log_error(f"Failed to parse {err}")

  sites = sort_launch_sites(checker.launch_sites)

  if json_mode:
    errors = failed.errors if failed is not None else []
    payload = {
      "launch_sites": [site_to_dict(site) for site in sites],
      "errors": [error_to_dict(err) for err in errors],
    }
    print(json.dumps(payload, indent=2))
  elif output_format == "plain":
    for site in sites:
      console.print(str(site), markup=False, highlight=False)
  else:
    render_table(sites)

  if failed is not None:
    return EXIT_PARSE_ERROR
  if sites:
    return EXIT_UNSAFE
  return EXIT_CLEAN


def render_table(sites: List[LaunchSite]) -> None:
  """
  Prints launch sites as a rich table with a summary line.

  Args:
      sites: Sorted launch sites.
  """
  if not sites:
    log_success("Every goroutine launch is guarded by a deferred recover.")
    return

  table = Table(title="Goroutines without a deferred recover")
  table.add_column("#", justify="right", style="dim")
  table.add_column("Location", style="path")
  table.add_column("Launched", style="code")
  table.add_column("In", style="cyan")

  for i, site in enumerate(sites):
    table.add_row(str(i), str(site.position), site.summary, site.enclosing)

  console.print(table)
  log_warning(f"{len(sites)} unguarded goroutine launch(es).")
  log_info("Add `defer func() { recover() }()` to the goroutine, or mark the callee's doc comment to suppress.")


def site_to_dict(site: LaunchSite) -> dict:
  """
  Args:
      site: A launch site.

  Returns:
      dict: JSON-serializable representation.
  """
  return {
    "path": site.position.path,
    "line": site.position.line,
    "column": site.position.column,
    "expression": site.summary,
    "enclosing": site.enclosing,
    "reaches_recovery": site.result.reaches_recovery,
  }


def error_to_dict(error: SourceParseError) -> dict:
  return {
    "path": error.path,
    "line": error.line,
    "column": error.column,
    "message": error.message,
  }
