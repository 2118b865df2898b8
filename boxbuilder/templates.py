"""Template discovery within a workspace."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from .config_loader import CONFIG_STEM, Settings
from .errors import TemplateNotFoundError
from .variables import OVERRIDES_SUFFIX, TEMPLATE_SUFFIX


class TemplateCatalog:
    """Lists the template documents below the workspace root.

    Overrides documents, the settings file, hidden directories and the build
    output and cache directories are never treated as templates.
    """

    def __init__(self, workspace: Path, settings: Settings | None = None) -> None:
        self._workspace = workspace
        settings = settings or Settings()
        self._excluded_dirs = {
            settings.output_path(workspace).resolve(),
            settings.cache_path(workspace).resolve(),
        }

    def discover(self) -> List[str]:
        names: List[str] = []
        for path in self._workspace.rglob(f"*{TEMPLATE_SUFFIX}"):
            if not path.is_file() or self._skip(path):
                continue
            relative = path.relative_to(self._workspace).as_posix()
            names.append(relative[: -len(TEMPLATE_SUFFIX)])
        return sorted(names)

    def matching(self, patterns: Iterable[str]) -> List[str]:
        """Templates named by ``patterns`` exactly or living under them as a directory."""
        wanted = [normalize_template_name(pattern) for pattern in patterns]
        if not wanted:
            return self.discover()
        return [
            name
            for name in self.discover()
            if any(name == pattern or name.startswith(f"{pattern}/") for pattern in wanted)
        ]

    def resolve(self, names: Iterable[str]) -> List[str]:
        """Validate requested templates before any work starts."""
        resolved: List[str] = []
        for raw in names:
            name = normalize_template_name(raw)
            path = self._workspace / f"{name}{TEMPLATE_SUFFIX}"
            if not path.is_file():
                raise TemplateNotFoundError(name, path)
            if name not in resolved:
                resolved.append(name)
        return sorted(resolved)

    def _skip(self, path: Path) -> bool:
        if path.name.endswith(OVERRIDES_SUFFIX) or path.name == f"{CONFIG_STEM}{TEMPLATE_SUFFIX}":
            return True
        relative_parts = path.relative_to(self._workspace).parts[:-1]
        if any(part.startswith(".") for part in relative_parts):
            return True
        resolved = path.resolve()
        return any(excluded in resolved.parents for excluded in self._excluded_dirs)


def normalize_template_name(value: str) -> str:
    name = value.strip().replace("\\", "/")
    if name.startswith("./"):
        name = name[2:]
    if name.endswith(TEMPLATE_SUFFIX):
        name = name[: -len(TEMPLATE_SUFFIX)]
    return name.rstrip("/")
