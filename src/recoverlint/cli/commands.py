"""
CLI Command Handlers Facade.

Re-exports handlers from `recoverlint.cli.handlers` so the dispatcher (and
tests patching it) have one import location.
"""

from recoverlint.cli.handlers.check import handle_check
from recoverlint.cli.handlers.explain import handle_explain
