"""Logging setup for lofgate.

Everything logs under the ``lofgate`` logger. Console messages go
through rich; a log file, when requested, keeps the debug trail of
every classification step regardless of console verbosity.

Example:
    >>> from lofgate.utils.logging import setup_logging, Timer
    >>> setup_logging(verbosity=2, log_file="lof.log")
    >>> with Timer("Classification", logger, unit="contexts") as timer:
    ...     for context in contexts:
    ...         classifier.classify(context)
    ...         timer.tick()
"""

import logging
import time
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

LOGGER_NAME = "lofgate"

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(message)s"

# -q, default, -v
LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def setup_logging(
    verbosity: int = 1,
    log_file: Path | str | None = None,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the ``lofgate`` logger and return it.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        verbosity: 0 for warnings only, 1 for progress, 2 or more for debug.
        log_file: File that receives debug output from every module.
        rich_console: Render console records with rich; plain stderr otherwise.

    Returns:
        The configured package logger.
    """
    console_level = LEVELS[min(max(verbosity, 0), len(LEVELS) - 1)]

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)

    if rich_console:
        console: logging.Handler = RichHandler(
            rich_tracebacks=True, show_time=False, show_path=False, markup=False
        )
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    else:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(FILE_FORMAT))
    console.setLevel(console_level)
    logger.addHandler(console)

    if log_file is not None:
        debug_file = logging.FileHandler(log_file, mode="w")
        debug_file.setFormatter(logging.Formatter(FILE_FORMAT))
        debug_file.setLevel(logging.DEBUG)
        logger.addHandler(debug_file)

    return logger


class Timer:
    """Time a block and log how long it took.

    When items are counted with :meth:`tick`, the closing message also
    reports throughput, e.g. ``Classification: 1200 contexts in 0.84s
    (1428.6/s)``.
    """

    def __init__(
        self, description: str, logger: logging.Logger, unit: str = "items"
    ) -> None:
        self.description = description
        self.logger = logger
        self.unit = unit
        self.count = 0
        self.elapsed = 0.0
        self._start = 0.0

    def tick(self, n: int = 1) -> None:
        self.count += n

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.elapsed = time.perf_counter() - self._start
        if not self.count:
            self.logger.info("%s finished in %.2fs", self.description, self.elapsed)
            return
        rate = self.count / self.elapsed if self.elapsed > 0 else float("inf")
        self.logger.info(
            "%s: %d %s in %.2fs (%.1f/s)",
            self.description,
            self.count,
            self.unit,
            self.elapsed,
            rate,
        )
