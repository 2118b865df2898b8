"""Validation and canonical rewriting of template documents."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence
import time

from .artifacts import file_checksum
from .build import RunReport, TemplateOutcome, TemplateState, packer_run
from .command_runner import CommandError, CommandRunner
from .commands import CommandAssembler
from .console import Console, duration
from .context import RunContext
from .errors import BoxBuilderError, BuildError, MetadataWriteError, ParseError
from .git_manager import GitManager
from .metadata import IdentityBuilder
from .variables import VariableStore

# The builder's fix output JSON-escapes '&', which breaks shell commands
# embedded in provisioners.
ESCAPED_AMPERSAND = "\\u0026"


def restore_ampersands(text: str) -> str:
    return text.replace(ESCAPED_AMPERSAND, "&")


class NormalizeEngine:
    def __init__(
        self,
        *,
        store: VariableStore,
        command_runner: CommandRunner,
        context: RunContext,
        console: Console | None = None,
    ) -> None:
        self._store = store
        self._runner = command_runner
        self._context = context
        self._console = console or Console(level="none")
        self._identities = IdentityBuilder(store, GitManager(command_runner), self._console)
        self._commands = CommandAssembler(store, context)

    def run(self, templates: Sequence[str]) -> RunReport:
        ordered = sorted(templates)
        self._console.banner(f"Normalizing for templates: {', '.join(ordered)}")
        report = RunReport()
        started = time.monotonic()
        for template in ordered:
            report.outcomes.append(self.normalize(template))
        report.elapsed = time.monotonic() - started

        modified = report.modified
        if modified:
            self._console.raw("")
            self._console.warn("The following templates were modified:")
            for template in modified:
                self._console.info(f"* {template}")
        self._console.banner(f"Normalizing finished in {duration(report.elapsed)}.")
        for outcome in report.failures:
            self._console.error(str(outcome.error))
        return report

    def normalize(self, template: str) -> TemplateOutcome:
        outcome = TemplateOutcome(template=template)
        started = time.monotonic()
        try:
            outcome.state = TemplateState.VALIDATING
            self.validate(template)
            outcome.modified = self.fix(template)
            outcome.state = TemplateState.DONE
        except BoxBuilderError as exc:
            outcome.state = TemplateState.FAILED
            outcome.error = exc
            self._console.warn(str(exc))
        finally:
            outcome.elapsed = time.monotonic() - started
        return outcome

    def validate(self, template: str) -> None:
        context = self._context
        with packer_run(self._identities, template, context) as run:
            command = self._commands.validate_command(template, run.var_file)
            self._console.banner(f"[{template}] Validating: '{self._runner.format_command(command)}'")
            if context.debug:
                self._console.banner(f"[{template}] DEBUG: var_file({run.var_file}) is:")
                self._console.raw(run.var_file.read_text(encoding="utf-8"))
                self._console.banner(f"[{template}] DEBUG: md_file({run.metadata_file}) is:")
                self._console.raw(run.metadata_file.read_text(encoding="utf-8"))
            try:
                self._runner.run(command, cwd=context.workspace, env=context.environment or None, stream=True)
            except CommandError as exc:
                raise BuildError(template, "validating", exc.returncode, command) from exc

    def fix(self, template: str) -> bool:
        """Rewrite the template in the builder's canonical form.

        Returns ``True`` when the file content changed.
        """
        context = self._context
        path = self._store.template_path(template)
        self._console.banner(f"[{template}] Fixing")
        original_checksum = self._checksum(path)
        command = self._commands.fix_command(template)
        try:
            result = self._runner.run(command, cwd=context.workspace, env=context.environment or None)
        except CommandError as exc:
            raise BuildError(template, "fixing", exc.returncode, command) from exc
        self._write_template(path, restore_ampersands(result.stdout))
        if self._checksum(path) == original_checksum:
            self._console.info("No changes made.")
            return False
        self._console.warn(f"Template {template} has been modified.")
        return True

    @staticmethod
    def _checksum(path: Path) -> str:
        try:
            return file_checksum(path)
        except OSError as exc:
            raise ParseError(f"Unable to read '{path}': {exc.strerror or exc}") from exc

    @staticmethod
    def _write_template(path: Path, content: str) -> None:
        try:
            path.write_bytes(content.encode("utf-8"))
        except OSError as exc:
            raise MetadataWriteError(path, exc) from exc
