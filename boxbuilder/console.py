"""Operator-facing console output."""
from __future__ import annotations

import sys


class Console:
    """Console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "info"):
        if level not in self.LEVELS:
            raise ValueError(f"Unknown log level '{level}'. Choose from: {', '.join(self.LEVELS)}")
        self.level_name = level
        self.level = self.LEVELS[level]

    def banner(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"==> {message}")

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"    {message}")

    def warn(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f">>> {message}")

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f">>> {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")

    def raw(self, text: str) -> None:
        """Print a block of text (JSON documents, file contents) unprefixed."""
        if self.level >= self.LEVELS["info"]:
            print(text)


def duration(total: float) -> str:
    minutes = int(total / 60)
    seconds = total - minutes * 60
    return f"{minutes}m{seconds:.2f}s"
