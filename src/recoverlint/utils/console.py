"""
Central Logging and Console Utilities.

All user-facing output goes through the Python `logging` library, rendered by
`rich`. The console is held behind a small proxy so tests (or embedding tools)
can swap the destination with `set_console` and read back what was printed.

Attributes:
    console (_ConsoleProxy): A stable reference to the active Rich Console.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

# Between INFO and WARNING
SUCCESS_LEVEL_NUM = 25
logging.addLevelName(SUCCESS_LEVEL_NUM, "SUCCESS")

THEME = Theme(
  {
    "logging.level.success": "green",
    "info": "dim cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "green",
    "path": "bold blue",
    "code": "bold magenta",
  }
)


class _ConsoleProxy:
  """
  Forwards printing to a swappable `rich.console.Console` backend.

  Swapping the backend also re-points the root logger's `RichHandler`, so
  `logging.warning(...)` lands wherever `console.print(...)` does.
  """

  def __init__(self) -> None:
    self._backend: Console = Console(theme=THEME, stderr=False)
    self._configure_logging()

  def set_backend(self, new_console: Console) -> None:
    """
    Injects a new Console backend and updates logging handlers.

    Args:
        new_console (Console): The new Rich Console instance to use.
    """
    self._backend = new_console
    self._configure_logging()

  def reset(self) -> None:
    """Resets the proxy to a fresh standard output console."""
    self._backend = Console(theme=THEME)
    self._configure_logging()

  @property
  def backend(self) -> Console:
    """
    Returns:
        Console: The currently active implementation.
    """
    return self._backend

  def _configure_logging(self) -> None:
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
      if isinstance(handler, RichHandler):
        root_logger.removeHandler(handler)

    rich_handler = RichHandler(
      console=self._backend,
      show_time=False,
      omit_repeated_times=False,
      show_path=False,
      markup=True,
      rich_tracebacks=True,
    )
    if root_logger.level == logging.NOTSET or root_logger.level > logging.INFO:
      root_logger.setLevel(logging.INFO)
    root_logger.addHandler(rich_handler)

  def print(self, *args: Any, **kwargs: Any) -> None:
    """Forwards `print` calls to the active backend."""
    self._backend.print(*args, **kwargs)

  def __getattr__(self, name: str) -> Any:
    return getattr(self._backend, name)


console = _ConsoleProxy()


def set_console(new_console: Console) -> None:
  """
  Injects a specific console instance for both printing and logging.

  Args:
      new_console (Console): The configured Rich console to use globally.
  """
  console.set_backend(new_console)


def reset_console() -> None:
  """Resets logging and console to standard output."""
  console.reset()


def use_stderr() -> None:
  """
  Sends console output and logs to stderr, leaving stdout to machine-readable output.
  """
  console.set_backend(Console(theme=THEME, stderr=True))


def set_verbose(verbose: bool) -> None:
  """
  Switches the root logger between INFO and DEBUG.

  Args:
      verbose (bool): True to show analysis debug messages (cycle cuts, unresolved callees).
  """
  logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)


def log_info(msg: str) -> None:
  """
  Logs an informational message.

  Args:
      msg (str): The message content. Can include rich markup like [bold].
  """
  logging.info(f"ℹ️  {msg}", extra={"markup": True})


def log_success(msg: str) -> None:
  """
  Logs a success message.

  Args:
      msg (str): The message content.
  """
  logging.log(SUCCESS_LEVEL_NUM, f"✅ {msg}", extra={"markup": True})


def log_warning(msg: str) -> None:
  """
  Logs a warning message.

  Args:
      msg (str): The message content.
  """
  logging.warning(f"⚠️  {msg}", extra={"markup": True})


def log_error(msg: str) -> None:
  """
  Logs an error message.

  Args:
      msg (str): The message content.
  """
  logging.error(f"❌ {msg}", extra={"markup": True})
