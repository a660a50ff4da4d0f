"""Logging for the ``conflict_mapper`` package.

Handlers are attached to the package logger, never the root logger, so an
embedding application keeps its own logging setup. ``setup_logging`` may
be called repeatedly (one CLI invocation per test, say): each call swaps
out the handlers the previous call installed instead of stacking more.
Records still propagate to the root logger.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "conflict_mapper"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_OWNED = "_conflict_mapper_handler"


def _level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return logging.WARNING


def _console_handler(verbose: bool) -> logging.Handler:
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        markup=False,
        show_time=True,
        show_path=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    return handler


def _file_handler(log_file: str) -> logging.Handler:
    handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    verbose: bool = False, quiet: bool = False, log_file: Optional[str] = None
) -> logging.Logger:
    """
    Install a stderr ``RichHandler`` (and optionally a file handler) on the
    package logger.

    Args:
        verbose: DEBUG level, with source paths and traceback locals
        quiet: ERROR level only; wins over ``verbose``
        log_file: Append plain-text records to this file as well

    Returns:
        The ``conflict_mapper`` logger
    """
    level = _level(verbose, quiet)
    logger = logging.getLogger(ROOT_LOGGER)

    for handler in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(handler)
        handler.close()

    handlers = [_console_handler(verbose)]
    if log_file:
        handlers.append(_file_handler(log_file))
    for handler in handlers:
        setattr(handler, _OWNED, True)
        handler.setLevel(level)
        logger.addHandler(handler)

    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger under the package namespace.

    ``get_logger("analysis")`` and ``get_logger("conflict_mapper.analysis")``
    return the same logger; ``None`` gives the package logger itself.
    """
    if name is None or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
