"""Reading template variables and their per-template overrides."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping
import json

from .errors import ParseError, TemplateNotFoundError

TEMPLATE_SUFFIX = ".json"
OVERRIDES_SUFFIX = ".variables.json"


def merge_variables(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Layer ``overrides`` on top of ``base``.

    Keys are replaced wholesale; nested mappings are not merged. Keys keep the
    order of ``base`` with keys only present in ``overrides`` appended.
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in overrides.items():
        merged[key] = value
    return merged


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(f"Unable to parse '{path}': {exc}") from exc
    except OSError as exc:
        raise ParseError(f"Unable to read '{path}': {exc.strerror or exc}") from exc


class VariableStore:
    """Loads the variables a template declares, with overrides applied."""

    def __init__(self, workspace: Path) -> None:
        self._workspace = workspace

    @property
    def workspace(self) -> Path:
        return self._workspace

    def template_path(self, template: str) -> Path:
        return self._workspace / f"{template}{TEMPLATE_SUFFIX}"

    def overrides_path(self, template: str) -> Path:
        return self._workspace / f"{template}{OVERRIDES_SUFFIX}"

    def has_overrides(self, template: str) -> bool:
        return self.overrides_path(template).is_file()

    def declared(self, template: str) -> Dict[str, Any]:
        path = self.template_path(template)
        if not path.is_file():
            raise TemplateNotFoundError(template, path)
        document = _read_json(path)
        if not isinstance(document, Mapping):
            raise ParseError(f"Template '{path}' must contain a JSON object")
        variables = document.get("variables")
        if variables is None:
            raise ParseError(f"Template '{path}' has no 'variables' section")
        if not isinstance(variables, Mapping):
            raise ParseError(f"'variables' in template '{path}' must be an object")
        return dict(variables)

    def overrides(self, template: str) -> Dict[str, Any]:
        path = self.overrides_path(template)
        if not path.is_file():
            return {}
        document = _read_json(path)
        if not isinstance(document, Mapping):
            raise ParseError(f"Variables file '{path}' must contain a JSON object")
        return dict(document)

    def load(self, template: str) -> Dict[str, Any]:
        return merge_variables(self.declared(template), self.overrides(template))
