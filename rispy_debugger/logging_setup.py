from __future__ import annotations

import logging
import sys

from rispy_debugger.formatting.pprint import COLOR_ERROR, COLOR_FALLBACK, COLOR_DIMMED, RESET


class _ColourFormatter(logging.Formatter):
    COLOURS = {
        logging.DEBUG: COLOR_DIMMED,
        logging.WARNING: COLOR_FALLBACK,
        logging.ERROR: COLOR_ERROR,
        logging.CRITICAL: COLOR_ERROR,
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        colour = self.COLOURS.get(record.levelno)
        return f"{colour}{message}{RESET}" if colour else message


def configure_logging(level: int = logging.WARNING, colour: bool = True) -> None:
    """Configure the root logger with a single stderr handler."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(level)

    stream = logging.StreamHandler(sys.stderr)
    fmt = "%(levelname)s %(name)s: %(message)s"
    stream.setFormatter(_ColourFormatter(fmt) if colour else logging.Formatter(fmt))
    root.addHandler(stream)
