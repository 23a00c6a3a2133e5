"""
recoverlint Package.

A static checker for Go code: every goroutine started with ``go`` must be
guaranteed to run ``recover()`` from a deferred call before it ends, or a
panic inside it takes the whole process down.

The check follows calls interprocedurally (functions, methods resolved through
the receiver's declared type, closures) across every file of the source set.

Usage
-----

.. code-block:: python

    from recoverlint import Checker

    sites = Checker().check_sources({"main.go": source_text})
    for site in sites:
        print(site)  # main.go:12:2: go worker

Command line::

    recoverlint check ./cmd ./internal --max-depth 0
"""

from typing import Dict, List, Optional, Union

from recoverlint.analysis.collector import LaunchSite
from recoverlint.analysis.resolver import AnalysisResult, RecoverabilityResolver
from recoverlint.config import CheckerConfig
from recoverlint.core.checker import Checker
from recoverlint.errors import AggregateParseError, SourceParseError

__version__ = "0.1.0"


def check_sources(
  sources: Dict[str, Union[str, bytes]],
  config: Optional[CheckerConfig] = None,
) -> List[LaunchSite]:
  """
  Checks in-memory Go sources.

  Args:
      sources: Display path -> Go source text.
      config: Optional configuration (defaults apply if None).

  Returns:
      List[LaunchSite]: Unguarded launch sites sorted by position.

  Raises:
      AggregateParseError: If any source failed to parse.
  """
  return Checker(config).check_sources(sources)


__all__ = [
  "AggregateParseError",
  "AnalysisResult",
  "Checker",
  "CheckerConfig",
  "LaunchSite",
  "RecoverabilityResolver",
  "SourceParseError",
  "check_sources",
  "__version__",
]
