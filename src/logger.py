"""Logging helpers for the proxy."""

import logging
import sys
from typing import Optional

from constants import COLOR_GREEN, COLOR_PLAIN, COLOR_RED
from interfaces import ILogger


class ColorFormatter(logging.Formatter):
    def format(self, record):
        message = super().format(record)
        return f"\x1b[{getattr(record, 'color', COLOR_PLAIN)}m{message}\x1b[0m"


class ProxyLogger(ILogger):
    def __init__(self, log_file: Optional[str] = None, debug: bool = False, quiet: bool = False, name: str = "sniproxy"):
        self.debug_enabled = debug
        self.quiet = quiet
        self.logger = logging.getLogger(name)
        self._setup_logging(log_file)

    def _setup_logging(self, log_file):
        if self.quiet:
            console_handler = logging.NullHandler()
        else:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(ColorFormatter("%(message)s"))

        # FileHandler.emit holds the handler lock, so lines from concurrent
        # connections never interleave
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
            file_handler.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s]: %(message)s", "%Y-%m-%d %H:%M:%S"))
        else:
            file_handler = logging.NullHandler()

        self.close()
        self.logger.propagate = False
        self.logger.setLevel(logging.DEBUG if self.debug_enabled else logging.INFO)
        self.logger.addHandler(console_handler)
        self.logger.addHandler(file_handler)

    def service(self, message: str, color: int = COLOR_PLAIN, debug_only: bool = False) -> None:
        if debug_only:
            level = logging.DEBUG
        elif color == COLOR_RED:
            level = logging.ERROR
        else:
            level = logging.INFO
        self.logger.log(level, message, extra={"color": color})

    def info(self, message: str) -> None:
        self.service(message, COLOR_GREEN)

    def error(self, message: str) -> None:
        self.service(message, COLOR_RED)

    def debug(self, message: str) -> None:
        self.service(message, COLOR_RED, debug_only=True)

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
