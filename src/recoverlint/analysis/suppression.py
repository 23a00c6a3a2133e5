"""
Suppression marker check.

A declaration whose doc comment contains the configured marker (by default
``no-recover-warning``) is treated as proven safe without looking at its body.
"""

from recoverlint.analysis.declarations import Declaration


def has_suppression_marker(declaration: Declaration, marker: str) -> bool:
  """
  Checks a declaration's doc comment for the marker substring.

  Args:
      declaration: The function or method to inspect.
      marker: Substring to look for. An empty marker never matches.

  Returns:
      bool: True if any doc line contains the marker.
  """
  if not marker or not declaration.doc:
    return False
  return any(marker in line for line in declaration.doc)
