"""
Main Entry Point for recoverlint CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in `recoverlint.cli.commands`.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from recoverlint.cli import commands
from recoverlint.utils.console import set_verbose
from recoverlint import __version__


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 clean, 1 unsafe launches found, 2 parse failures).
  """
  parser = argparse.ArgumentParser(description="recoverlint: find goroutines not guarded by a deferred recover")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
  parser.add_argument("-v", "--verbose", action="store_true", help="Show analysis debug logging")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: CHECK ---
  cmd_check = subparsers.add_parser("check", help="Report unguarded goroutine launches")
  cmd_check.add_argument("paths", nargs="+", type=Path, help="Go files or directories")
  cmd_check.add_argument(
    "--marker",
    default=None,
    help="Doc-comment substring that marks a function as safe (default: from toml, else 'no-recover-warning')",
  )
  cmd_check.add_argument(
    "--max-depth",
    type=int,
    default=None,
    help="Maximum call hops followed from a launch site; 0 or less is unbounded (default: from toml)",
  )
  cmd_check.add_argument(
    "--include-tests",
    action="store_true",
    default=None,
    help="Also analyze _test.go files found in directories",
  )
  output = cmd_check.add_mutually_exclusive_group()
  output.add_argument("--json", action="store_true", help="Print results as JSON")
  output.add_argument("--plain", action="store_true", help="Print one 'path:line:col: go expr' line per site")

  # --- Command: EXPLAIN ---
  cmd_explain = subparsers.add_parser("explain", help="Show the recoverability verdict of named functions")
  cmd_explain.add_argument("paths", nargs="+", type=Path, help="Go files or directories")
  cmd_explain.add_argument("--name", dest="names", action="append", required=True, help="Function or method name")

  args = parser.parse_args(argv)
  set_verbose(args.verbose)

  if args.command == "check":
    output_format = "json" if args.json else "plain" if args.plain else "table"
    return commands.handle_check(args.paths, args.marker, args.max_depth, args.include_tests, output_format)

  elif args.command == "explain":
    return commands.handle_explain(args.paths, args.names)

  return 0


if __name__ == "__main__":
  sys.exit(main())
