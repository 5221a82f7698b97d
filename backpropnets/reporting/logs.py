"""Logger setup shared by the CLI and pipelines."""

from __future__ import annotations

import logging
from pathlib import Path

FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int | str = logging.INFO, path: str | Path | None = None) -> logging.Logger:
    """Send ``backpropnets`` log records to the console and optionally a file.

    Existing handlers on the package logger are closed and replaced, so calling
    this twice does not duplicate output.
    """

    logger = logging.getLogger("backpropnets")
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(FORMAT)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if path is not None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger


__all__ = ["configure_logging"]
