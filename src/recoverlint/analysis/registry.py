"""
Symbol and Method Registry.

Maps callable names to their `Declaration`:

*   plain functions under ``(package, name)``;
*   methods under ``(package, receiver type, method name)``.

A package is the `PackageKey` pair (directory, package name), so same-named
packages in different directories (several ``package main`` binaries under
``cmd/``) never share entries.

The registry is filled in one pass over every declaration of every parsed file
before analysis begins, so forward and cross-file references resolve. It is
read-only afterwards.

Method resolution is purely name based: a receiver must have a locally
declared, concretely named type. Interfaces, embedding and types from packages
outside the source set never resolve, and a miss is a normal outcome.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from recoverlint.analysis.declarations import Declaration, PackageKey

logger = logging.getLogger(__name__)

_FuncKey = Tuple[PackageKey, str]
_MethodKey = Tuple[PackageKey, str, str]


class MethodRegistry:
  """
  Lookup tables from names to declarations for one run.
  """

  def __init__(self, declarations: Optional[Iterable[Declaration]] = None):
    """
    Args:
        declarations: Optional initial declarations to register.
    """
    self._functions: Dict[_FuncKey, Declaration] = {}
    self._methods: Dict[_MethodKey, Declaration] = {}
    self._by_name: Dict[str, List[Declaration]] = {}
    self._packages: Dict[str, Set[str]] = {}
    for declaration in declarations or ():
      self.register(declaration)

  def register(self, declaration: Declaration) -> None:
    """
    Adds a declaration. Duplicate keys are last-write-wins.

    Methods whose receiver is not a named local type are skipped, since nothing
    could ever resolve to them.

    Args:
        declaration: The function or method to add.
    """
    self._packages.setdefault(declaration.directory, set()).add(declaration.package)
    if declaration.is_method:
      if not declaration.receiver_type:
        logger.debug("Skipping method %s with unnamed receiver type", declaration.name)
        return
      key = (declaration.package_key, declaration.receiver_type, declaration.name)
      if key in self._methods:
        logger.debug("Duplicate method %s at %s", declaration.qualified_name, declaration.position)
      self._methods[key] = declaration
      return

    func_key = (declaration.package_key, declaration.name)
    previous = self._functions.get(func_key)
    if previous is not None:
      logger.debug("Duplicate function %s at %s", declaration.qualified_name, declaration.position)
      self._by_name[declaration.name].remove(previous)
    self._functions[func_key] = declaration
    self._by_name.setdefault(declaration.name, []).append(declaration)

  def resolve_call(self, name: str, package: Optional[PackageKey] = None) -> Optional[Declaration]:
    """
    Finds a plain function.

    Args:
        name: Function name.
        package: Package to search. None accepts a function of that name only
            if exactly one package of the source set declares it.

    Returns:
        Optional[Declaration]: The function, or None if it is not in the source
        set (or is ambiguous).
    """
    if package is None:
      found = self._by_name.get(name, [])
      return found[0] if len(found) == 1 else None
    return self._functions.get((package, name))

  def resolve_method(
    self, receiver_type: str, name: str, package: Optional[PackageKey] = None
  ) -> Optional[Declaration]:
    """
    Finds a method by its receiver's type name.

    Args:
        receiver_type: Named type of the receiver (no pointer marker).
        name: Method name.
        package: Package declaring the type. None accepts a unique match in
            any package.

    Returns:
        Optional[Declaration]: The method, or None.
    """
    if package is not None:
      return self._methods.get((package, receiver_type, name))
    found = [
      declaration
      for (_, type_name, method_name), declaration in self._methods.items()
      if type_name == receiver_type and method_name == name
    ]
    return found[0] if len(found) == 1 else None

  def resolve_import(self, import_path: str) -> Optional[PackageKey]:
    """
    Finds the package an import path refers to.

    The directory sharing the longest trailing run of path segments with the
    import path wins (``example.com/app/jobs`` matches ``internal/jobs`` and
    ``/src/app/jobs``, the latter better). Ties are ambiguous and resolve to
    nothing. External test packages (``foo_test``) are never import targets.

    Args:
        import_path: The quoted path of an import spec, without quotes.

    Returns:
        Optional[PackageKey]: The package, or None if it is outside the source set.
    """
    wanted = [part for part in import_path.split("/") if part]
    best: List[PackageKey] = []
    best_score = 0
    for directory, names in self._packages.items():
      score = _common_suffix([part for part in directory.split("/") if part], wanted)
      if score == 0 or score < best_score:
        continue
      candidates = [(directory, name) for name in sorted(names) if not name.endswith("_test")]
      if score > best_score:
        best, best_score = candidates, score
      else:
        best.extend(candidates)
    if len(best) != 1:
      if best:
        logger.debug("Ambiguous import %s: %s", import_path, best)
      return None
    return best[0]

  def __len__(self) -> int:
    return len(self._functions) + len(self._methods)

  def __iter__(self) -> Iterator[Declaration]:
    yield from self._functions.values()
    yield from self._methods.values()


def _common_suffix(left: List[str], right: List[str]) -> int:
  count = 0
  while count < min(len(left), len(right)) and left[-1 - count] == right[-1 - count]:
    count += 1
  return count
