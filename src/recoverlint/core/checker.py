"""
Check Orchestration.

The `Checker` drives one analysis run:

1.  **Discovery**: Expands directories into ``*.go`` files (hidden, ``vendor``
    and ``testdata`` directories are skipped; ``_test.go`` files only when
    configured).
2.  **Parse pass**: Every file is parsed. A file that cannot be read or parsed
    is recorded as a `SourceParseError` and the run continues.
3.  **Registry build**: Every declaration of every parsed file is registered
    before any analysis, so forward and cross-file references resolve.
4.  **Collection**: Each declaration is scanned for unsafe ``go`` statements.
5.  **Failure surface**: If any file failed, an `AggregateParseError` is raised
    after the launch sites of the other files have been collected; they stay
    readable through `Checker.launch_sites`.

All run state lives in a `RunState` created at the start of each check, so a
`Checker` can be reused and two runs over the same input give the same list.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from recoverlint.analysis.collector import LaunchSite, LaunchSiteCollector
from recoverlint.analysis.declarations import SourceFile, read_source_file
from recoverlint.analysis.registry import MethodRegistry
from recoverlint.analysis.resolver import RecoverabilityResolver
from recoverlint.config import CheckerConfig
from recoverlint.errors import AggregateParseError, SourceParseError
from recoverlint.frontend.parser import GoParser

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
_Loader = Callable[[], bytes]


@dataclass
class RunState:
  """
  Everything one check run accumulates.
  """

  config: CheckerConfig
  registry: MethodRegistry = field(default_factory=MethodRegistry)
  files: List[SourceFile] = field(default_factory=list)
  launch_sites: List[LaunchSite] = field(default_factory=list)
  errors: List[SourceParseError] = field(default_factory=list)


class Checker:
  """
  Finds ``go`` statements whose goroutines are not guarded by a deferred ``recover``.
  """

  def __init__(self, config: Optional[CheckerConfig] = None, parser: Optional[GoParser] = None):
    """
    Args:
        config: Run configuration. Defaults apply if None.
        parser: Frontend to use. A new `GoParser` if None.
    """
    self.config = config or CheckerConfig()
    self.parser = parser or GoParser()
    self.state = RunState(config=self.config)

  @property
  def launch_sites(self) -> List[LaunchSite]:
    """
    Returns:
        List[LaunchSite]: Unsafe sites of the latest run, in discovery order.
    """
    return self.state.launch_sites

  @property
  def errors(self) -> List[SourceParseError]:
    return self.state.errors

  @property
  def registry(self) -> MethodRegistry:
    return self.state.registry

  def check_files(self, paths: Iterable[PathLike]) -> List[LaunchSite]:
    """
    Checks files and directories on disk.

    Args:
        paths: Go files and/or directories to walk.

    Returns:
        List[LaunchSite]: Unsafe sites sorted by position.

    Raises:
        AggregateParseError: If any path was missing or any file failed to parse.
    """
    files, missing = find_go_files(paths, self.config.include_tests, self.config.exclude_dirs)
    inputs = [(str(path), _file_loader(path)) for path in files]
    return self._run(inputs, missing)

  def check_sources(self, sources: Mapping[str, Union[str, bytes]]) -> List[LaunchSite]:
    """
    Checks in-memory sources.

    Args:
        sources: Display path -> Go source text.

    Returns:
        List[LaunchSite]: Unsafe sites sorted by position.

    Raises:
        AggregateParseError: If any source failed to parse.
    """
    inputs = [(path, _text_loader(text)) for path, text in sources.items()]
    return self._run(inputs, [])

  def _run(self, inputs: Sequence[Tuple[str, _Loader]], errors: List[SourceParseError]) -> List[LaunchSite]:
    state = RunState(config=self.config, errors=list(errors))
    self.state = state

    for path, load in inputs:
      try:
        tree = self.parser.parse(path, load())
      except SourceParseError as e:
        logger.debug("Parse failure: %s", e)
        state.errors.append(e)
        continue
      source = read_source_file(path, tree)
      state.files.append(source)
      for declaration in source.declarations:
        state.registry.register(declaration)

    logger.debug("Parsed %d file(s), %d declaration(s)", len(state.files), len(state.registry))

    resolver = RecoverabilityResolver(state.registry, self.config)
    collector = LaunchSiteCollector(resolver)
    for source in state.files:
      for declaration in source.declarations:
        collector.collect(declaration)
    state.launch_sites = collector.sites

    if state.errors:
      raise AggregateParseError(state.errors)
    return sort_launch_sites(state.launch_sites)


def sort_launch_sites(sites: Iterable[LaunchSite]) -> List[LaunchSite]:
  """
  Args:
      sites: Launch sites in any order.

  Returns:
      List[LaunchSite]: Sites ordered by (path, line, column).
  """
  return sorted(sites, key=lambda site: site.position)


def find_go_files(
  paths: Iterable[PathLike],
  include_tests: bool = False,
  exclude_dirs: Sequence[str] = ("vendor", "testdata"),
) -> Tuple[List[Path], List[SourceParseError]]:
  """
  Expands files and directories into the Go files to analyze.

  Explicitly named files are always kept. Directory walks skip hidden
  directories (``.git``), directories starting with ``_``, and `exclude_dirs`.

  Args:
      paths: Files and/or directories.
      include_tests: Keep ``_test.go`` files found while walking.
      exclude_dirs: Directory names to skip.

  Returns:
      Tuple[List[Path], List[SourceParseError]]: Files in walk order, and an
      error for every path that does not exist.
  """
  found: List[Path] = []
  missing: List[SourceParseError] = []
  excluded = set(exclude_dirs)

  for raw in paths:
    path = Path(raw)
    if path.is_file():
      found.append(path)
      continue
    if not path.is_dir():
      missing.append(SourceParseError(str(path), "no such file or directory"))
      continue

    for root, dirs, names in os.walk(path):
      dirs[:] = sorted(d for d in dirs if not d.startswith((".", "_")) and d not in excluded)
      for name in sorted(names):
        if not name.endswith(".go"):
          continue
        if name.endswith("_test.go") and not include_tests:
          continue
        found.append(Path(root) / name)

  return found, missing


def _file_loader(path: Path) -> _Loader:
  def load() -> bytes:
    try:
      return path.read_bytes()
    except OSError as e:
      raise SourceParseError(str(path), e.strerror or str(e)) from e

  return load


def _text_loader(text: Union[str, bytes]) -> _Loader:
  data = text.encode("utf-8") if isinstance(text, str) else text
  return lambda: data
