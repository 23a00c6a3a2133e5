"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- `go_sources` factory: parses Go snippets into a registry + resolver.
- Console capture so CLI tests can read rendered output.
"""

import io
import sys
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest
from rich.console import Console

# Add src to path so we can import 'recoverlint' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from recoverlint.analysis.declarations import Declaration, read_source_file
from recoverlint.analysis.registry import MethodRegistry
from recoverlint.analysis.resolver import AnalysisResult, RecoverabilityResolver
from recoverlint.config import CheckerConfig
from recoverlint.frontend.parser import GoParser
from recoverlint.utils.console import THEME, reset_console, set_console


class ParsedSources:
  """
  A small source set: parsed declarations, their registry and a resolver.
  """

  def __init__(self, sources: Union[List[str], Dict[str, str]], config: Optional[CheckerConfig] = None):
    self.config = config or CheckerConfig()
    self.registry = MethodRegistry()
    self.declarations: List[Declaration] = []
    parser = GoParser()
    if not isinstance(sources, dict):
      sources = {f"src_{i}.go": source for i, source in enumerate(sources)}
    for path, source in sources.items():
      parsed = read_source_file(path, parser.parse(path, textwrap.dedent(source)))
      for declaration in parsed.declarations:
        self.registry.register(declaration)
        self.declarations.append(declaration)
    self.resolver = RecoverabilityResolver(self.registry, self.config)

  def decl(self, name: str) -> Declaration:
    """Finds a declaration by plain or qualified name."""
    for declaration in self.declarations:
      if name in (declaration.name, declaration.qualified_name):
        return declaration
    raise KeyError(name)

  def analyze(self, name: str) -> AnalysisResult:
    return self.resolver.analyze(self.decl(name))


@pytest.fixture
def go_sources():
  """
  Factory fixture: ``go_sources(src, ..., config=None) -> ParsedSources``.

  Sources passed positionally all land in the root directory (one package per
  package clause). Pass a single ``{path: source}`` dict to place files in
  directories.
  """

  def _build(*sources: Union[str, Dict[str, str]], config: Optional[CheckerConfig] = None) -> ParsedSources:
    if len(sources) == 1 and isinstance(sources[0], dict):
      return ParsedSources(sources[0], config)
    return ParsedSources(list(sources), config)

  return _build


@pytest.fixture
def captured_console():
  """Routes console and logging output into a recording console."""
  recorder = Console(file=io.StringIO(), record=True, width=200, force_terminal=False, color_system=None, theme=THEME)
  set_console(recorder)
  yield recorder
  reset_console()
