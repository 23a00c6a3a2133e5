"""
Go Source Frontend.

Wraps the `tree-sitter` Go grammar. `GoParser.parse` turns Go text into a
concrete syntax tree and refuses trees that contain syntax errors, raising a
`SourceParseError` that points at the first broken node.

The rest of the package walks `tree_sitter.Node` objects directly, using the
helpers at the bottom of this module (`node_text`, `named_children`,
`iter_descendants`) so comment nodes and grammar-version differences
(``statement_list`` wrappers) are handled in one place.
"""

from typing import Iterator, List, Optional, Union

import tree_sitter_go
from tree_sitter import Language, Node, Parser, Tree

from recoverlint.errors import SourceParseError

GO_LANGUAGE = Language(tree_sitter_go.language())


class GoParser:
  """
  Parses Go source text into tree-sitter trees.
  """

  def __init__(self) -> None:
    self._parser = Parser(GO_LANGUAGE)

  def parse(self, path: str, source: Union[str, bytes]) -> Tree:
    """
    Parses one file.

    Args:
        path: Display path of the file (used in error messages).
        source: File contents.

    Returns:
        Tree: The syntax tree. Its root is a ``source_file`` node.

    Raises:
        SourceParseError: If the text contains a syntax error.
    """
    data = source.encode("utf-8") if isinstance(source, str) else source
    tree = self._parser.parse(data)
    root = tree.root_node
    if root.has_error:
      broken = _first_error(root)
      if broken is None:
        raise SourceParseError(path, "syntax error")
      message = f"missing {broken.type}" if broken.is_missing else "syntax error"
      raise SourceParseError(path, message, broken.start_point[0] + 1, broken.start_point[1] + 1)
    return tree


def _first_error(node: Node) -> Optional[Node]:
  """Depth-first search for the first ERROR or MISSING node."""
  stack = [node]
  while stack:
    current = stack.pop()
    if current.is_error or current.is_missing:
      return current
    stack.extend(reversed([child for child in current.children if child.has_error or child.is_missing]))
  return None


def node_text(node: Optional[Node]) -> str:
  """
  Returns the source text spanned by a node.

  Args:
      node: The node, or None.

  Returns:
      str: Decoded text ("" for None).
  """
  if node is None or node.text is None:
    return ""
  return node.text.decode("utf-8", errors="replace")


def named_children(node: Optional[Node]) -> List[Node]:
  """
  Named children of a node, without comments and with ``statement_list``
  wrappers flattened away.

  Args:
      node: The parent node, or None.

  Returns:
      List[Node]: The meaningful children.
  """
  if node is None:
    return []
  result = []
  for child in node.named_children:
    if child.type == "comment":
      continue
    if child.type == "statement_list":
      result.extend(named_children(child))
    else:
      result.append(child)
  return result


def first_named_child(node: Optional[Node]) -> Optional[Node]:
  children = named_children(node)
  return children[0] if children else None


def iter_descendants(node: Node) -> Iterator[Node]:
  """
  Pre-order iteration over every named descendant of `node` (excluding itself).

  Args:
      node: Root of the walk.

  Yields:
      Node: Each named descendant in source order.
  """
  stack = list(reversed(node.named_children))
  while stack:
    current = stack.pop()
    yield current
    stack.extend(reversed(current.named_children))
