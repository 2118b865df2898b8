"""Build machine-image templates and record reproducible box metadata."""
from __future__ import annotations

from .cli import main

__all__ = ["main"]
