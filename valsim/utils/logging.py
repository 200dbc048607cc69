from __future__ import annotations

import logging

from rich.logging import RichHandler

# Per-request chatter from the HTTP stack, only shown in verbose mode
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def setup(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=level <= logging.DEBUG)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
