"""
Declarations extracted from parsed Go files.

A `Declaration` is one top-level ``func`` (plain function or method). It keeps
a reference to its body node rather than a copy; the `SourceFile` that owns the
declarations also owns the tree-sitter tree, so body nodes stay valid for the
whole run.

`read_source_file` is the parse pass: it lifts the package clause, the import
table and every function/method declaration (with its doc comment group and
receiver type) out of a tree.

A Go package is a directory, so declarations are identified by the pair
(directory of the file, package name). Two `package main` files in
`cmd/a` and `cmd/b` belong to different packages.
"""

from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Dict, List, Optional, Tuple

from tree_sitter import Node, Tree

from recoverlint.frontend.parser import first_named_child, named_children, node_text

PackageKey = Tuple[str, str]
"""(directory, package name) of a Go package."""


@dataclass(frozen=True, order=True)
class SourcePosition:
  """
  A 1-based position in a source file. Orders by (path, line, column).
  """

  path: str
  line: int
  column: int

  @classmethod
  def of(cls, path: str, node: Node) -> "SourcePosition":
    row, col = node.start_point[0], node.start_point[1]
    return cls(path=path, line=row + 1, column=col + 1)

  def __str__(self) -> str:
    return f"{self.path}:{self.line}:{self.column}"


@dataclass(frozen=True, eq=False)
class Declaration:
  """
  A named callable: a plain function, or a method when `receiver_type` is set.

  Equality and hashing are by identity: two declarations with the same name in
  different files are different callables.
  """

  name: str
  package: str
  position: SourcePosition
  body: Optional[Node] = None
  is_method: bool = False
  receiver_type: Optional[str] = None
  """Named receiver type; None for functions and for receivers that are not a local named type."""
  doc: Tuple[str, ...] = ()
  node: Optional[Node] = field(default=None, repr=False)
  imports: Dict[str, str] = field(default_factory=dict, repr=False)
  """Import alias -> import path, for the file the declaration lives in."""
  directory: str = ""
  """Directory of the file, in posix form ("" for a file at the root)."""

  @property
  def package_key(self) -> PackageKey:
    return (self.directory, self.package)

  @property
  def qualified_name(self) -> str:
    """
    Returns:
        str: ``pkg.Name`` for functions, ``pkg.Type.Name`` for methods.
    """
    if self.is_method:
      return f"{self.package}.{self.receiver_type or '?'}.{self.name}"
    return f"{self.package}.{self.name}"

  @property
  def has_body(self) -> bool:
    return self.body is not None and bool(named_children(self.body))


@dataclass
class SourceFile:
  """
  The parse-pass output for one file.
  """

  path: str
  package: str
  tree: Tree = field(repr=False)
  imports: Dict[str, str] = field(default_factory=dict)
  declarations: List[Declaration] = field(default_factory=list)


def read_source_file(path: str, tree: Tree) -> SourceFile:
  """
  Extracts package, imports and declarations from a parsed Go file.

  Args:
      path: Display path of the file.
      tree: The tree produced by `GoParser.parse`.

  Returns:
      SourceFile: The file record with declarations in source order.
  """
  root = tree.root_node
  package = ""
  imports: Dict[str, str] = {}

  for child in named_children(root):
    if child.type == "package_clause":
      package = node_text(first_named_child(child))
    elif child.type == "import_declaration":
      imports.update(_read_imports(child))

  source = SourceFile(path=path, package=package, tree=tree, imports=imports)
  for child in named_children(root):
    if child.type in ("function_declaration", "method_declaration"):
      source.declarations.append(_read_declaration(path, package, imports, child))
  return source


def _read_declaration(path: str, package: str, imports: Dict[str, str], node: Node) -> Declaration:
  receiver_type = None
  is_method = node.type == "method_declaration"
  if is_method:
    receiver_type = _read_receiver(node.child_by_field_name("receiver"))

  return Declaration(
    name=node_text(node.child_by_field_name("name")),
    package=package,
    position=SourcePosition.of(path, node),
    body=node.child_by_field_name("body"),
    is_method=is_method,
    receiver_type=receiver_type,
    doc=tuple(doc_comment_lines(node)),
    node=node,
    imports=imports,
    directory=package_directory(path),
  )


def _read_receiver(params: Optional[Node]) -> Optional[str]:
  for param in named_children(params):
    if param.type == "parameter_declaration":
      return type_name(param.child_by_field_name("type"))
  return None


def _read_imports(node: Node) -> Dict[str, str]:
  """Maps each import alias to its import path."""
  result: Dict[str, str] = {}
  specs = [n for n in _walk_named(node) if n.type == "import_spec"]
  for spec in specs:
    import_path = node_text(spec.child_by_field_name("path")).strip("\"`")
    if not import_path:
      continue
    alias_node = spec.child_by_field_name("name")
    alias = node_text(alias_node) if alias_node is not None else import_path.rstrip("/").rsplit("/", 1)[-1]
    if alias in ("_", "."):
      continue
    result[alias] = import_path
  return result


def _walk_named(node: Node) -> List[Node]:
  found = []
  for child in named_children(node):
    found.append(child)
    found.extend(_walk_named(child))
  return found


def type_name(node: Optional[Node]) -> Optional[str]:
  """
  Reduces a type expression to a locally declared type name.

  ``T``, ``*T``, ``T[X]``, ``*T[X]`` and ``(T)`` reduce to ``T``. Anything else
  (qualified, interface, function, slice, map types) reduces to None.

  Args:
      node: A type node, or None.

  Returns:
      Optional[str]: The type name if there is one.
  """
  while node is not None:
    if node.type in ("type_identifier", "identifier"):
      return node_text(node)
    if node.type in ("pointer_type", "parenthesized_type"):
      node = first_named_child(node)
    elif node.type == "generic_type":
      node = node.child_by_field_name("type")
    else:
      return None
  return None


def doc_comment_lines(node: Node) -> List[str]:
  """
  Collects the comment group directly above a declaration.

  Comments belong to the group while each one ends on the line just before
  the next (no blank line in between).

  Args:
      node: A top-level declaration node.

  Returns:
      List[str]: Comment lines in source order, comment markers included.
  """
  lines: List[str] = []
  next_row = node.start_point[0]
  sibling = node.prev_named_sibling
  while sibling is not None and sibling.type == "comment" and sibling.end_point[0] >= next_row - 1:
    before = sibling.prev_named_sibling
    if before is not None and before.type != "comment" and before.end_point[0] == sibling.start_point[0]:
      # Trailing comment of the previous line's code
      break
    lines[:0] = node_text(sibling).splitlines()
    next_row = sibling.start_point[0]
    sibling = sibling.prev_named_sibling
  return lines


def package_directory(path: str) -> str:
  """
  Args:
      path: Display path of a source file.

  Returns:
      str: Its directory in posix form, "" for a bare file name.
  """
  parent = PurePath(path).parent.as_posix()
  return "" if parent == "." else parent
