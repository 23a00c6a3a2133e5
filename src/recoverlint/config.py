"""
Runtime Configuration Store.

`CheckerConfig` holds the operator-tunable knobs of a check run. Values are read
from the ``[tool.recoverlint]`` table of the nearest ``pyproject.toml`` and then
overridden by explicit arguments (usually CLI flags).
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

if sys.version_info >= (3, 11):
  import tomllib
else:
  import tomli as tomllib

DEFAULT_SUPPRESSION_MARKER = "no-recover-warning"


class CheckerConfig(BaseModel):
  """
  Configuration container for a recoverability check run.
  """

  suppression_marker: str = Field(
    DEFAULT_SUPPRESSION_MARKER,
    description="Substring which, found in a declaration's doc comment, marks it as safe. Empty disables suppression.",
  )
  max_call_depth: int = Field(
    0,
    description="Maximum number of call hops followed from a launch site. Non-positive means unbounded.",
  )
  include_tests: bool = Field(False, description="If True, '_test.go' files are analyzed too.")
  exclude_dirs: List[str] = Field(
    default_factory=lambda: ["vendor", "testdata"],
    description="Directory names skipped during file discovery.",
  )

  @field_validator("exclude_dirs")
  @classmethod
  def validate_exclude_dirs(cls, v: List[str]) -> List[str]:
    """
    Normalizes directory names (strips whitespace and trailing separators).

    Args:
        v (List[str]): Raw directory names.

    Returns:
        List[str]: Cleaned, non-empty names.
    """
    return [name.strip().rstrip("/\\") for name in v if name.strip()]

  @property
  def depth_limited(self) -> bool:
    """
    Returns:
        bool: True if interprocedural recursion is bounded.
    """
    return self.max_call_depth > 0

  @classmethod
  def load(
    cls,
    suppression_marker: Optional[str] = None,
    max_call_depth: Optional[int] = None,
    include_tests: Optional[bool] = None,
    search_path: Optional[Path] = None,
  ) -> "CheckerConfig":
    """
    Loads configuration from pyproject.toml and overrides with explicit arguments.

    Args:
        suppression_marker (Optional[str]): Override for the suppression marker.
        max_call_depth (Optional[int]): Override for the call depth bound.
        include_tests (Optional[bool]): Override for test file inclusion.
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        CheckerConfig: The fully resolved configuration object.
    """
    start_dir = search_path or Path.cwd()
    toml_config, _ = _load_toml_settings(start_dir)

    values: Dict[str, Any] = dict(toml_config)
    if suppression_marker is not None:
      values["suppression_marker"] = suppression_marker
    if max_call_depth is not None:
      values["max_call_depth"] = max_call_depth
    if include_tests is not None:
      values["include_tests"] = include_tests

    known = set(cls.model_fields)
    return cls(**{k: v for k, v in values.items() if k in known})


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Searches the directory and its parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory it was found in.
  """
  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get("recoverlint", {}), parent

  return {}, None
