from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

LOGGER_NAMES = ("swapcheck", "routers", "simulation", "infra")


def configure_logging(level: Union[int, str] = "INFO", log_path: Optional[Path] = None) -> logging.Logger:
    """Attach stream (and optional file) handlers to the package loggers."""
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(fmt)
    handlers.append(stream_handler)

    if log_path is not None:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(fmt)
        handlers.append(file_handler)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for old in list(logger.handlers):
            logger.removeHandler(old)
            old.close()
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False

    return logging.getLogger("swapcheck")
