"""Host platform detection and the environment handed to the builder."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping
import os
import platform

from .config_loader import Settings

# Hosts where hypervisor consoles can open a window by default.
_GUI_PLATFORMS = {"darwin", "windows"}


@dataclass(slots=True)
class SystemContext:
    os_name: str

    @property
    def gui_capable(self) -> bool:
        return self.os_name in _GUI_PLATFORMS


def detect_system() -> SystemContext:
    return SystemContext(os_name=platform.system().lower())


def resolve_headless(settings: Settings, system: SystemContext) -> bool:
    if settings.headless is not None:
        return settings.headless
    return not system.gui_capable


def builder_environment(
    settings: Settings,
    workspace: Path,
    *,
    env: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """Return the variables to overlay on the process environment for the builder.

    An existing cache-directory variable is left untouched.
    """
    current = os.environ if env is None else env
    if settings.cache_env_var in current:
        return {}
    return {settings.cache_env_var: str(settings.cache_path(workspace))}
