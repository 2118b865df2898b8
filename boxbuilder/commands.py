"""Assembly of builder command lines."""
from __future__ import annotations

from pathlib import Path
from typing import List

from .context import RunContext
from .variables import VariableStore

DRY_RUN_WRAPPER = "echo"

# Conditional flags go right after the subcommand; each one is inserted ahead
# of those added before it.
_FLAG_POSITION = 2


class CommandAssembler:
    """Builds ``build``, ``validate`` and ``fix`` argv lists for the builder."""

    def __init__(self, store: VariableStore, context: RunContext) -> None:
        self._store = store
        self._context = context

    @property
    def tool(self) -> str:
        return self._context.settings.builder

    def build_command(self, template: str, var_file: Path) -> List[str]:
        context = self._context
        command = [self.tool, "build", f"-var-file={var_file}", self._template_file(template)]
        self._insert_overrides(command, template)
        if context.only:
            command.insert(_FLAG_POSITION, f"-only={context.only}")
        if context.except_builds:
            command.insert(_FLAG_POSITION, f"-except={context.except_builds}")
        if context.mirror:
            command[_FLAG_POSITION:_FLAG_POSITION] = ["-var", f"mirror={context.mirror}"]
        if context.headless:
            command[_FLAG_POSITION:_FLAG_POSITION] = ["-var", "headless=true"]
        if context.debug:
            command.insert(_FLAG_POSITION, "-debug")
        if context.ask:
            command.insert(_FLAG_POSITION, "-on-error=ask")
        if context.dry_run:
            command.insert(0, DRY_RUN_WRAPPER)
        return command

    def validate_command(self, template: str, var_file: Path) -> List[str]:
        command = [self.tool, "validate", f"-var-file={var_file}", self._template_file(template)]
        self._insert_overrides(command, template)
        return command

    def fix_command(self, template: str) -> List[str]:
        return [self.tool, "fix", self._template_file(template)]

    def _insert_overrides(self, command: List[str], template: str) -> None:
        if self._store.has_overrides(template):
            command.insert(_FLAG_POSITION, f"-var-file={template}.variables.json")

    @staticmethod
    def _template_file(template: str) -> str:
        return f"{template}.json"
