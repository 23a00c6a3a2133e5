"""
Explain Command Handler.

Prints the recoverability verdict of named functions or methods, which is what
a ``go`` statement launching them would be judged on.
"""

from pathlib import Path
from typing import List

from rich.table import Table

from recoverlint.analysis.resolver import RecoverabilityResolver
from recoverlint.config import CheckerConfig
from recoverlint.core.checker import Checker
from recoverlint.errors import AggregateParseError
from recoverlint.utils.console import console, log_error, log_warning


def handle_explain(paths: List[Path], names: List[str]) -> int:
  """
  Analyzes declarations by name and prints their flags.

  Names match a function (``worker``), a method (``Run``) or a qualified name
  (``main.Service.Run``).

  Args:
      paths: Go files or directories forming the source set.
      names: Declaration names to explain.

  Returns:
      int: 0 on success, 1 if no declaration matched, 2 on parse errors.
  """
  checker = Checker(CheckerConfig.load())
  try:
    checker.check_files(paths)
  except AggregateParseError as e:
    for err in e.errors:
      log_error(f"Failed to parse {err}")
    return 2

  resolver = RecoverabilityResolver(checker.registry, checker.config)
  wanted = set(names)
  matches = [d for d in checker.registry if d.name in wanted or d.qualified_name in wanted]
  if not matches:
    log_warning(f"No declaration named {', '.join(sorted(wanted))}.")
    return 1

  table = Table(title="Recoverability")
  table.add_column("Declaration", style="code")
  table.add_column("Location", style="path")
  table.add_column("recover reachable")
  table.add_column("in defer")
  table.add_column("suppressed")
  table.add_column("Verdict")

  for declaration in sorted(matches, key=lambda d: d.position):
    result = resolver.analyze(declaration)
    verdict = "[success]safe[/success]" if result.is_safe else "[error]unsafe[/error]"
    table.add_row(
      declaration.qualified_name,
      str(declaration.position),
      _flag(result.reaches_recovery),
      _flag(result.reaches_guarded_recovery),
      _flag(result.suppressed),
      verdict,
    )

  console.print(table)
  return 0


def _flag(value: bool) -> str:
  return "yes" if value else "no"
