"""
Error Types.

The only failure surfaced by a check run is a source file that cannot be read
or parsed. Each failing file produces a `SourceParseError`; the run keeps going
and all of them are combined into one `AggregateParseError` at the end.

Unresolved callees and malformed declarations are analysis outcomes, not errors.
"""

from typing import Iterable, List, Optional


class RecoverLintError(Exception):
  """Base class for all errors raised by recoverlint."""


class SourceParseError(RecoverLintError):
  """
  A single Go source file could not be read or turned into a syntax tree.
  """

  def __init__(self, path: str, message: str, line: Optional[int] = None, column: Optional[int] = None):
    """
    Args:
        path: The file that failed.
        message: Human readable description of the failure.
        line: 1-based line of the first syntax error, if known.
        column: 1-based column of the first syntax error, if known.
    """
    self.path = path
    self.message = message
    self.line = line
    self.column = column
    super().__init__(str(self))

  def __str__(self) -> str:
    if self.line is None:
      return f"{self.path}: {self.message}"
    return f"{self.path}:{self.line}:{self.column}: {self.message}"


class AggregateParseError(RecoverLintError):
  """
  Combines every per-file failure of a run into one error value.
  """

  def __init__(self, errors: Iterable[SourceParseError]):
    self.errors: List[SourceParseError] = list(errors)
    super().__init__(str(self))

  def __len__(self) -> int:
    return len(self.errors)

  def __str__(self) -> str:
    if not self.errors:
      return "no parse errors"
    header = f"{len(self.errors)} file(s) failed to parse"
    return "\n".join([header] + [f"  {err}" for err in self.errors])
