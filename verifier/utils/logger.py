"""Logging setup for the verification service.

Every module logs through a named logger obtained from ``get_logger``;
``setup_logging`` is called once by the API entry point or the CLI.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Libraries that flood DEBUG output with image chunk and multipart parser noise.
_NOISY_LOGGERS: tuple[str, ...] = ("PIL", "multipart", "python_multipart")


def setup_logging(level: str = "INFO") -> None:
    """Attach a stdout handler to the root logger.

    Calling this more than once keeps the first handler, so the API
    server and CLI can both call it safely.

    Args:
        level: Logging level name. Unknown names fall back to INFO.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        The named logger.
    """
    return logging.getLogger(name)
