"""Run-wide, read-only state shared by every template in one invocation."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict

from .config_loader import Settings

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def build_timestamp(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True, slots=True)
class RunContext:
    workspace: Path
    build_timestamp: str
    settings: Settings = field(default_factory=Settings)
    override_version: str | None = None
    dry_run: bool = False
    debug: bool = False
    ask: bool = False
    only: str | None = None
    except_builds: str | None = None
    mirror: str | None = None
    headless: bool = True
    environment: Dict[str, str] = field(default_factory=dict)

    @property
    def output_dir(self) -> Path:
        return self.settings.output_path(self.workspace)
