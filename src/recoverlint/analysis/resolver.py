"""
Recoverability Analysis.

`RecoverabilityResolver` decides whether running a callable is certain to
execute ``recover()`` from a deferred call, which is the only place where
``recover`` stops a panic.

The analysis is path-insensitive: every branch of every statement is assumed
reachable and results are OR-combined. It is interprocedural: calls to
functions and methods of the source set are followed through the
`MethodRegistry`.

It runs in two steps, both driven by explicit work stacks so that neither
deeply nested expressions nor long call chains are limited by the Python
recursion limit:

1.  **Body summaries**: each declaration body is walked once into a `_Summary`
    of the ``recover`` calls it makes itself and the declarations it calls,
    each tagged with whether it happens inside a ``defer``.
2.  **Call graph evaluation**: a depth-first walk over summaries combines the
    callees' results into the caller's.

Statement and expression handling:

1.  **defer**: The deferred call is analyzed; any ``recover`` reached there is
    *guarded*. This is the only place the guarded flag is set.
2.  **go**: Contributes nothing. The launched goroutine is judged at its own
    launch site.
3.  **Function literals**: The body is analyzed in place. A literal bound to
    a local variable (``f := func() {...}``) runs where ``f`` is called
    instead.
4.  **Identifiers**: ``recover`` marks recovery; names of declarations (or of
    local closures) are followed. A variable bound to several literals counts
    only what every one of them reaches.
5.  **Calls**: The callee is analyzed. Arguments are walked for nested calls;
    function literals and bare names passed as arguments are not run by the
    call and contribute nothing.
6.  **Selectors**: The operand is analyzed, then ``x.M`` is resolved through
    the static type of ``x`` (or ``pkg.F`` through the file's imports).
7.  **Everything else** (``if``, ``for``, ``switch``, ``select``, labeled
    statements, blocks, returns, operators, literals): the union
    of the children. Loops are walked once; the set of reachable code does not
    change between iterations.
8.  **Assignments**: names on the left of ``:=``, ``=`` and ``var`` are
    targets and are not followed.

Call-graph cycles are cut with an in-progress set: re-entering a declaration
already on the current path contributes the zero result. Results are cached
per declaration for the lifetime of the resolver, except results computed
under a cycle cut to a caller (they are incomplete) or under a depth bound
(they depend on depth).
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from tree_sitter import Node

from recoverlint.analysis.declarations import Declaration
from recoverlint.analysis.registry import MethodRegistry
from recoverlint.analysis.scope import (
  Callee,
  ClosureLiteral,
  LiteralKey,
  RecoveryPrimitive,
  ResolvedDeclaration,
  Scope,
  Unresolved,
  literal_key,
  resolve_callee,
)
from recoverlint.analysis.suppression import has_suppression_marker
from recoverlint.config import CheckerConfig
from recoverlint.frontend.parser import first_named_child, named_children

logger = logging.getLogger(__name__)

# Nodes that never contain executable code.
_INERT_NODES = frozenset(
  {
    "comment",
    "type_declaration",
    "type_identifier",
    "field_identifier",
    "package_identifier",
    "label_name",
    "interpreted_string_literal",
    "raw_string_literal",
    "int_literal",
    "float_literal",
    "imaginary_literal",
    "rune_literal",
    "nil",
    "true",
    "false",
    "iota",
  }
)

_NO_CUT = sys.maxsize

_Active = FrozenSet[LiteralKey]


@dataclass(frozen=True)
class AnalysisResult:
  """
  What running a piece of code can reach.
  """

  reaches_recovery: bool = False
  """``recover`` is reachable somewhere."""

  reaches_guarded_recovery: bool = False
  """``recover`` is reachable from inside a deferred call."""

  suppressed: bool = False
  """A declaration on the path carries the suppression marker."""

  def __or__(self, other: "AnalysisResult") -> "AnalysisResult":
    return AnalysisResult(
      reaches_recovery=self.reaches_recovery or other.reaches_recovery,
      reaches_guarded_recovery=self.reaches_guarded_recovery or other.reaches_guarded_recovery,
      suppressed=self.suppressed or other.suppressed,
    )

  def __and__(self, other: "AnalysisResult") -> "AnalysisResult":
    return AnalysisResult(
      reaches_recovery=self.reaches_recovery and other.reaches_recovery,
      reaches_guarded_recovery=self.reaches_guarded_recovery and other.reaches_guarded_recovery,
      suppressed=self.suppressed and other.suppressed,
    )

  @property
  def is_safe(self) -> bool:
    """
    Returns:
        bool: True if a goroutine running this code cannot die from an unrecovered panic.
    """
    return self.suppressed or self.reaches_guarded_recovery

  def guarded(self) -> "AnalysisResult":
    """
    Returns:
        AnalysisResult: This result as seen from inside a ``defer``.
    """
    return AnalysisResult(
      reaches_recovery=self.reaches_recovery,
      reaches_guarded_recovery=self.reaches_recovery or self.reaches_guarded_recovery,
      suppressed=self.suppressed,
    )


NO_RECOVERY = AnalysisResult()
SUPPRESSED = AnalysisResult(suppressed=True)
UNGUARDED_RECOVERY = AnalysisResult(reaches_recovery=True)


@dataclass
class _Summary:
  """
  What one body reaches by itself, with the calls it makes left open.
  """

  local: AnalysisResult = NO_RECOVERY
  calls: List[Tuple[Declaration, bool]] = field(default_factory=list)
  """Called declarations, each with whether the call happens inside a ``defer``."""
  choices: List[Tuple[List["_Summary"], bool]] = field(default_factory=list)
  """Bodies of the literals a rebound closure variable may hold."""

  def callees(self) -> List[Declaration]:
    """Distinct declarations called anywhere in the summary, first use first."""
    seen: Dict[Declaration, None] = {}
    summaries = [self]
    for summary in summaries:
      for callee, _ in summary.calls:
        seen.setdefault(callee, None)
      for group, _ in summary.choices:
        summaries.extend(group)
    return list(seen)

  def evaluate(self, results: Dict[Declaration, AnalysisResult]) -> AnalysisResult:
    """
    Args:
        results: A result for every declaration in `callees`.

    Returns:
        AnalysisResult: The combined result of the body.
    """
    result = self.local
    for callee, in_defer in self.calls:
      result = result | _in_context(results[callee], in_defer)
    for group, in_defer in self.choices:
      result = result | _in_context(_meet(s.evaluate(results) for s in group), in_defer)
    return result


def _in_context(result: AnalysisResult, in_defer: bool) -> AnalysisResult:
  return result.guarded() if in_defer else result


def _meet(results: Iterable[AnalysisResult]) -> AnalysisResult:
  combined: Optional[AnalysisResult] = None
  for result in results:
    combined = result if combined is None else combined & result
  return combined or NO_RECOVERY


@dataclass
class _Pending:
  """A declaration (or a launched expression) whose callees are being analyzed."""

  declaration: Optional[Declaration]
  summary: _Summary
  depth: int
  callees: List[Declaration]
  index: int = 0
  outer_cut: int = _NO_CUT
  next_callee: int = 0
  results: Dict[Declaration, AnalysisResult] = field(default_factory=dict)


class RecoverabilityResolver:
  """
  Interprocedural recover-reachability over the declarations of one run.
  """

  def __init__(self, registry: MethodRegistry, config: Optional[CheckerConfig] = None):
    """
    Args:
        registry: The populated, read-only declaration registry.
        config: Suppression marker and depth bound. Defaults apply if None.
    """
    self.registry = registry
    self.config = config or CheckerConfig()
    self._scopes: Dict[Declaration, Scope] = {}
    self._summaries: Dict[Declaration, _Summary] = {}
    self._cache: Dict[Declaration, AnalysisResult] = {}
    self._on_path: Dict[Declaration, int] = {}
    self._lowest_cut = _NO_CUT

  def scope_of(self, declaration: Declaration) -> Scope:
    """
    Returns:
        Scope: The (cached) local bindings of a declaration.
    """
    scope = self._scopes.get(declaration)
    if scope is None:
      scope = Scope(declaration)
      self._scopes[declaration] = scope
    return scope

  def analyze(self, declaration: Declaration) -> AnalysisResult:
    """
    Analyzes a whole declaration.

    Args:
        declaration: Function or method to analyze.

    Returns:
        AnalysisResult: Zero for empty bodies; ``suppressed`` only if the doc
        comment carries the marker; otherwise what the body reaches.
    """
    shortcut = self._shortcut(declaration, depth=1)
    if shortcut is not None:
      return shortcut
    return self._run(self._enter(declaration, depth=1))

  def analyze_launch(self, launched: Optional[Node], declaration: Declaration) -> AnalysisResult:
    """
    Analyzes the callable started by a ``go`` statement.

    Only the launched callable counts. Its receiver and arguments are evaluated
    by the launching goroutine.

    Args:
        launched: The callee expression of the ``go`` call.
        declaration: The declaration containing the ``go`` statement.

    Returns:
        AnalysisResult: What the new goroutine reaches.
    """
    scope = self.scope_of(declaration)
    walker = _BodyWalker(self, scope)
    walker.add_callee(resolve_callee(launched, scope, self.registry), False, frozenset())
    summary = walker.run()
    return self._run(_Pending(declaration=None, summary=summary, depth=0, callees=summary.callees()))

  # --- Call graph ---

  def _shortcut(self, declaration: Declaration, depth: int) -> Optional[AnalysisResult]:
    """The result of entering `declaration` when it needs no walk, else None."""
    if not declaration.has_body:
      return NO_RECOVERY
    if has_suppression_marker(declaration, self.config.suppression_marker):
      return SUPPRESSED

    bounded = self.config.depth_limited
    if not bounded and declaration in self._cache:
      return self._cache[declaration]

    if declaration in self._on_path:
      logger.debug("Cycle through %s, cutting edge", declaration.qualified_name)
      self._lowest_cut = min(self._lowest_cut, self._on_path[declaration])
      return NO_RECOVERY

    if bounded and depth > self.config.max_call_depth:
      logger.debug("Call depth bound reached at %s", declaration.qualified_name)
      return NO_RECOVERY
    return None

  def _enter(self, declaration: Declaration, depth: int) -> _Pending:
    summary = self._summary_of(declaration)
    index = len(self._on_path)
    self._on_path[declaration] = index
    pending = _Pending(
      declaration=declaration,
      summary=summary,
      depth=depth,
      callees=summary.callees(),
      index=index,
      outer_cut=self._lowest_cut,
    )
    self._lowest_cut = _NO_CUT
    return pending

  def _leave(self, pending: _Pending, result: AnalysisResult) -> None:
    declaration = pending.declaration
    del self._on_path[declaration]
    inner_cut = self._lowest_cut
    self._lowest_cut = min(pending.outer_cut, inner_cut)
    # A cut at index or deeper only lost edges back into this declaration itself
    if not self.config.depth_limited and inner_cut >= pending.index:
      self._cache[declaration] = result

  def _run(self, root: _Pending) -> AnalysisResult:
    stack = [root]
    try:
      while True:
        pending = stack[-1]
        if pending.next_callee < len(pending.callees):
          callee = pending.callees[pending.next_callee]
          pending.next_callee += 1
          shortcut = self._shortcut(callee, pending.depth + 1)
          if shortcut is not None:
            pending.results[callee] = shortcut
          else:
            stack.append(self._enter(callee, pending.depth + 1))
          continue

        stack.pop()
        result = pending.summary.evaluate(pending.results)
        if pending.declaration is not None:
          self._leave(pending, result)
        if not stack:
          return result
        stack[-1].results[pending.declaration] = result
    finally:
      for pending in stack:
        if pending.declaration is not None:
          self._on_path.pop(pending.declaration, None)

  def _summary_of(self, declaration: Declaration) -> _Summary:
    summary = self._summaries.get(declaration)
    if summary is None:
      walker = _BodyWalker(self, self.scope_of(declaration))
      walker.push(declaration.body, False, frozenset())
      summary = walker.run()
      self._summaries[declaration] = summary
    return summary


class _BodyWalker:
  """
  Builds the `_Summary` of one body with an explicit stack.

  Each stack entry carries whether it sits inside a ``defer`` and the closure
  literals being inlined around it, so a closure that calls itself through its
  variable is inlined only once.
  """

  def __init__(self, resolver: RecoverabilityResolver, scope: Scope):
    self.resolver = resolver
    self.scope = scope
    self.summary = _Summary()
    self._stack: List[Tuple[Node, bool, _Active]] = []

  def push(self, node: Optional[Node], in_defer: bool, active: _Active) -> None:
    if node is not None and node.type not in _INERT_NODES:
      self._stack.append((node, in_defer, active))

  def push_all(self, nodes: List[Node], in_defer: bool, active: _Active) -> None:
    # Reversed so nodes are popped in source order
    for node in reversed(nodes):
      self.push(node, in_defer, active)

  def run(self) -> _Summary:
    while self._stack:
      node, in_defer, active = self._stack.pop()
      handler = _HANDLERS.get(node.type)
      if handler is None:
        self.push_all(named_children(node), in_defer, active)
      else:
        handler(self, node, in_defer, active)
    return self.summary

  def add_callee(self, callee: Callee, in_defer: bool, active: _Active) -> None:
    """Records what running `callee` at this point contributes."""
    if isinstance(callee, RecoveryPrimitive):
      self.summary.local = self.summary.local | _in_context(UNGUARDED_RECOVERY, in_defer)
    elif isinstance(callee, ResolvedDeclaration):
      self.summary.calls.append((callee.declaration, in_defer))
    elif isinstance(callee, ClosureLiteral):
      self._add_closures(callee.nodes, in_defer, active)
    elif isinstance(callee, Unresolved):
      logger.debug("Unresolved callee: %s", callee.reason)

  def _add_closures(self, literals: Tuple[Node, ...], in_defer: bool, active: _Active) -> None:
    if len(literals) == 1:
      literal = literals[0]
      key = literal_key(literal)
      if key not in active:
        self.push(literal.child_by_field_name("body"), in_defer, active | {key})
      return

    group = []
    for literal in literals:
      key = literal_key(literal)
      if key in active:
        group.append(_Summary())
        continue
      walker = _BodyWalker(self.resolver, self.scope)
      walker.push(literal.child_by_field_name("body"), False, active | {key})
      group.append(walker.run())
    self.summary.choices.append((group, in_defer))

  # --- Node handlers ---

  def _visit_go(self, node: Node, in_defer: bool, active: _Active) -> None:
    return

  def _visit_defer(self, node: Node, in_defer: bool, active: _Active) -> None:
    self.push(first_named_child(node), True, active)

  def _visit_func_literal(self, node: Node, in_defer: bool, active: _Active) -> None:
    if literal_key(node) in self.scope.bound_literals:
      return
    self.push(node.child_by_field_name("body"), in_defer, active)

  def _visit_identifier(self, node: Node, in_defer: bool, active: _Active) -> None:
    callee = resolve_callee(node, self.scope, self.resolver.registry)
    if isinstance(callee, (ClosureLiteral, RecoveryPrimitive, ResolvedDeclaration)):
      self.add_callee(callee, in_defer, active)

  def _visit_call(self, node: Node, in_defer: bool, active: _Active) -> None:
    arguments = [
      argument
      for argument in named_children(node.child_by_field_name("arguments"))
      if argument.type not in ("func_literal", "identifier")
    ]
    self.push_all([node.child_by_field_name("function")] + arguments, in_defer, active)

  def _visit_assignment(self, node: Node, in_defer: bool, active: _Active) -> None:
    # Plain names on the left are targets, not references
    targets = [n for n in named_children(node.child_by_field_name("left")) if n.type != "identifier"]
    self.push_all(targets + [node.child_by_field_name("right")], in_defer, active)

  def _visit_var_spec(self, node: Node, in_defer: bool, active: _Active) -> None:
    self.push(node.child_by_field_name("value"), in_defer, active)

  def _visit_keyed_element(self, node: Node, in_defer: bool, active: _Active) -> None:
    # Keys of struct literals are field names, not references
    children = named_children(node)
    if children:
      self.push(children[-1], in_defer, active)

  def _visit_selector(self, node: Node, in_defer: bool, active: _Active) -> None:
    callee = resolve_callee(node, self.scope, self.resolver.registry)
    if isinstance(callee, ResolvedDeclaration):
      self.add_callee(callee, in_defer, active)
    self.push(node.child_by_field_name("operand"), in_defer, active)


_HANDLERS = {
  "go_statement": _BodyWalker._visit_go,
  "defer_statement": _BodyWalker._visit_defer,
  "func_literal": _BodyWalker._visit_func_literal,
  "identifier": _BodyWalker._visit_identifier,
  "call_expression": _BodyWalker._visit_call,
  "selector_expression": _BodyWalker._visit_selector,
  "keyed_element": _BodyWalker._visit_keyed_element,
  "short_var_declaration": _BodyWalker._visit_assignment,
  "assignment_statement": _BodyWalker._visit_assignment,
  "var_spec": _BodyWalker._visit_var_spec,
  "const_spec": _BodyWalker._visit_var_spec,
}
