"""
Local Name Binding and Callee Resolution.

A `Scope` summarizes the names bound inside one declaration: parameters,
receivers, named results, ``var``/``const`` specs, ``:=`` and range variables.
Nested function literals share the scope of the declaration they appear in;
the table is flat, which can only make a name look local (and therefore
unresolved), never resolve a call to the wrong target.

For each bound name the scope remembers, where it can tell:

1.  **Static type**: ``s Service``, ``s *Service``, ``var s Service``,
    ``s := Service{}``, ``s := &Service{}``, ``s := new(Service)``.
2.  **Closures**: every literal bound by ``f := func() {...}`` or
    ``f = func() {...}``. A variable rebound to several literals keeps all of
    them, since any one may be the one that runs. A variable that is also
    assigned something other than a literal is opaque and never resolves.
    Bound literals run where the variable is called, not where they are bound.

`resolve_callee` turns a callee expression into one of the `Callee` variants.
`Unresolved` is the single, explicit answer for interface calls, function
values, fields, calls into packages outside the source set, and anything else
that cannot be bound statically.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple, Union

from tree_sitter import Node

from recoverlint.analysis.declarations import Declaration, PackageKey, type_name
from recoverlint.analysis.registry import MethodRegistry
from recoverlint.frontend.parser import first_named_child, iter_descendants, named_children, node_text

RECOVER_BUILTIN = "recover"

LiteralKey = Tuple[int, int]


@dataclass(frozen=True)
class ResolvedDeclaration:
  """The callee is a function or method declared in the source set."""

  declaration: Declaration


@dataclass(frozen=True)
class ClosureLiteral:
  """
  The callee is a function literal, either inline or through a local variable.

  A variable bound to several literals yields all of them, in source order.
  """

  nodes: Tuple[Node, ...]


@dataclass(frozen=True)
class RecoveryPrimitive:
  """The callee is the ``recover`` builtin."""


@dataclass(frozen=True)
class Unresolved:
  """The callee cannot be bound statically."""

  reason: str


Callee = Union[ResolvedDeclaration, ClosureLiteral, RecoveryPrimitive, Unresolved]


class Scope:
  """
  Names bound inside a single declaration.
  """

  def __init__(self, declaration: Declaration):
    """
    Builds the binding table by walking the whole declaration.

    Args:
        declaration: The function or method to summarize.
    """
    self.declaration = declaration
    self.locals: Set[str] = set()
    self.types: Dict[str, str] = {}
    self.closures: Dict[str, List[Node]] = {}
    self.opaque: Set[str] = set()
    self.bound_literals: Set[LiteralKey] = set()
    if declaration.node is not None:
      self._collect(declaration.node)

  @property
  def package(self) -> PackageKey:
    return self.declaration.package_key

  def _collect(self, root: Node) -> None:
    for node in iter_descendants(root):
      kind = node.type
      if kind in ("parameter_declaration", "variadic_parameter_declaration"):
        declared = type_name(node.child_by_field_name("type"))
        for name in node.children_by_field_name("name"):
          self._declare(node_text(name), declared)
      elif kind in ("short_var_declaration", "assignment_statement"):
        self._bind_lists(node.child_by_field_name("left"), node.child_by_field_name("right"), kind)
      elif kind == "var_spec":
        declared = type_name(node.child_by_field_name("type"))
        names = node.children_by_field_name("name")
        values = named_children(node.child_by_field_name("value"))
        for i, name in enumerate(names):
          self._declare(node_text(name), declared)
          if not values:
            continue
          if len(values) == len(names):
            self._bind_value(node_text(name), values[i])
          else:
            self.opaque.add(node_text(name))
      elif kind == "const_spec":
        for name in node.children_by_field_name("name"):
          self._declare(node_text(name), None)
      elif kind in ("range_clause", "receive_statement"):
        for name in named_children(node.child_by_field_name("left")):
          if name.type == "identifier":
            self._declare(node_text(name), None)
      elif kind == "type_switch_statement":
        for name in named_children(node.child_by_field_name("alias")):
          if name.type == "identifier":
            self._declare(node_text(name), None)

  def _declare(self, name: str, declared_type: Optional[str]) -> None:
    if not name or name == "_":
      return
    self.locals.add(name)
    if declared_type:
      self.types[name] = declared_type

  def _bind_lists(self, left: Optional[Node], right: Optional[Node], kind: str) -> None:
    names = named_children(left)
    values = named_children(right)
    for i, name in enumerate(names):
      if name.type != "identifier":
        continue
      text = node_text(name)
      if kind == "short_var_declaration":
        self._declare(text, None)
      if len(values) == len(names):
        self._bind_value(text, values[i])
      else:
        self.opaque.add(text)

  def _bind_value(self, name: str, value: Node) -> None:
    value = _unparen(value)
    if value.type == "func_literal":
      self.locals.add(name)
      self.closures.setdefault(name, []).append(value)
      self.bound_literals.add(literal_key(value))
      return
    self.opaque.add(name)
    inferred = _inferred_type(value)
    if inferred and name in self.locals:
      self.types[name] = inferred


def literal_key(literal: Node) -> LiteralKey:
  """Identifies a function literal within its file."""
  return (literal.start_byte, literal.end_byte)


def _unparen(node: Node) -> Node:
  while node.type == "parenthesized_expression":
    inner = first_named_child(node)
    if inner is None:
      break
    node = inner
  return node


def _inferred_type(value: Node) -> Optional[str]:
  """Static type of ``T{}``, ``&T{}`` and ``new(T)`` expressions."""
  if value.type == "composite_literal":
    return type_name(value.child_by_field_name("type"))
  if value.type == "unary_expression" and node_text(value.child_by_field_name("operator")) == "&":
    operand = value.child_by_field_name("operand")
    return _inferred_type(_unparen(operand)) if operand is not None else None
  if value.type == "call_expression" and node_text(value.child_by_field_name("function")) == "new":
    return type_name(first_named_child(value.child_by_field_name("arguments")))
  return None


def resolve_callee(expr: Optional[Node], scope: Scope, registry: MethodRegistry) -> Callee:
  """
  Binds a callee expression to what it will execute.

  Args:
      expr: The expression in callee position (the ``f`` of ``f()``).
      scope: Bindings of the declaration the expression appears in.
      registry: Declarations of the source set.

  Returns:
      Callee: The resolution result. Never raises.
  """
  if expr is None:
    return Unresolved("missing callee")
  expr = _unparen(expr)

  if expr.type == "func_literal":
    return ClosureLiteral((expr,))

  if expr.type == "identifier":
    name = node_text(expr)
    if name in scope.closures:
      if name in scope.opaque:
        return Unresolved(f"'{name}' is also bound to a non-literal value")
      return ClosureLiteral(tuple(scope.closures[name]))
    if name in scope.locals:
      return Unresolved(f"local value '{name}'")
    if name == RECOVER_BUILTIN:
      return RecoveryPrimitive()
    declaration = registry.resolve_call(name, scope.package)
    if declaration is not None:
      return ResolvedDeclaration(declaration)
    return Unresolved(f"'{name}' is not declared in the source set")

  if expr.type == "selector_expression":
    return _resolve_selector(expr, scope, registry)

  return Unresolved(f"dynamic callee ({expr.type})")


def _resolve_selector(expr: Node, scope: Scope, registry: MethodRegistry) -> Callee:
  operand = expr.child_by_field_name("operand")
  member = node_text(expr.child_by_field_name("field"))
  if operand is None or _unparen(operand).type != "identifier":
    return Unresolved(f"receiver of '.{member}' is not a plain variable")

  receiver = node_text(_unparen(operand))
  if receiver in scope.types:
    method = registry.resolve_method(scope.types[receiver], member, scope.package)
    if method is not None:
      return ResolvedDeclaration(method)
    return Unresolved(f"no method {scope.types[receiver]}.{member} in the source set")

  imports = scope.declaration.imports
  if receiver not in scope.locals and receiver in imports:
    package = registry.resolve_import(imports[receiver])
    function = registry.resolve_call(member, package) if package is not None else None
    if function is not None:
      return ResolvedDeclaration(function)
    return Unresolved(f"'{receiver}.{member}' is outside the source set")

  return Unresolved(f"static type of '{receiver}' is unknown")
