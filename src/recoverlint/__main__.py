"""
Entry point for module execution (``python -m recoverlint``).

This module delegates execution to the CLI handler in ``recoverlint.cli.__main__``.
"""

import sys
from recoverlint.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())
