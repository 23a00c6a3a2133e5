"""
Launch-Site Collection.

Finds every ``go`` statement inside a declaration (nested blocks and function
literals included), asks the resolver what the launched callable reaches, and
keeps the launches that are not proven safe.

A launch is safe iff the launched callable is suppressed or reaches
``recover`` from inside a ``defer``. Reaching ``recover`` anywhere else does
not count: outside a deferred call it returns nil and the panic continues.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from tree_sitter import Node

from recoverlint.analysis.declarations import Declaration, SourcePosition
from recoverlint.analysis.resolver import AnalysisResult, RecoverabilityResolver
from recoverlint.analysis.suppression import has_suppression_marker
from recoverlint.frontend.parser import first_named_child, iter_descendants, node_text


@dataclass(frozen=True)
class LaunchSite:
  """
  A ``go`` statement whose goroutine may die from an unrecovered panic.
  """

  position: SourcePosition
  expression: str
  """Source text of the launched callable (``worker``, ``s.Run``, ``func() {...}``)."""
  enclosing: str = ""
  """Qualified name of the declaration containing the statement."""
  result: AnalysisResult = field(default_factory=AnalysisResult, compare=False)

  @property
  def summary(self) -> str:
    """
    Returns:
        str: The launched expression on one line; long literals are shortened.
    """
    lines = self.expression.strip().splitlines()
    if not lines:
      return ""
    if len(lines) == 1:
      return lines[0]
    return f"{lines[0].rstrip()} ... {lines[-1].strip()}"

  def __str__(self) -> str:
    return f"{self.position}: go {self.summary}"


def launched_callee(go_statement: Node) -> Optional[Node]:
  """
  The callee expression of a ``go`` statement (``f`` in ``go f(x)``).

  Args:
      go_statement: A ``go_statement`` node.

  Returns:
      Optional[Node]: The callee, or None if the statement is malformed.
  """
  call = first_named_child(go_statement)
  if call is None:
    return None
  if call.type == "call_expression":
    return call.child_by_field_name("function")
  return call


class LaunchSiteCollector:
  """
  Scans declarations for unsafe ``go`` statements.
  """

  def __init__(self, resolver: RecoverabilityResolver):
    """
    Args:
        resolver: The run's resolver (shared cache and registry).
    """
    self.resolver = resolver
    self.sites: List[LaunchSite] = []

  def collect(self, declaration: Declaration) -> List[LaunchSite]:
    """
    Scans one declaration and appends its unsafe launches to `sites`.

    Declarations carrying the suppression marker are skipped entirely.

    Args:
        declaration: The function or method to scan.

    Returns:
        List[LaunchSite]: Sites found in this declaration, in source order.
    """
    if declaration.body is None:
      return []
    if has_suppression_marker(declaration, self.resolver.config.suppression_marker):
      return []

    found = []
    for node in iter_descendants(declaration.body):
      if node.type != "go_statement":
        continue
      launched = launched_callee(node)
      result = self.resolver.analyze_launch(launched, declaration)
      if result.is_safe:
        continue
      found.append(
        LaunchSite(
          position=SourcePosition.of(declaration.position.path, node),
          expression=node_text(launched),
          enclosing=declaration.qualified_name,
          result=result,
        )
      )
    self.sites.extend(found)
    return found
