"""Per-template build sequencing and final metadata persistence."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Sequence
import json
import os
import tempfile
import time

from .artifacts import ArtifactScanner
from .command_runner import CommandError, CommandRunner
from .commands import CommandAssembler
from .console import Console, duration
from .context import RunContext
from .errors import BoxBuilderError, BuildError, FALLBACK_EXIT_CODE, MetadataWriteError, SubprocessError
from .git_manager import GitManager
from .metadata import BuildIdentity, FinalMetadata, IdentityBuilder
from .variables import VariableStore


class TemplateState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    BUILDING = "building"
    METADATA_WRITTEN = "metadata-written"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class TemplateOutcome:
    template: str
    state: TemplateState = TemplateState.PENDING
    elapsed: float = 0.0
    error: BoxBuilderError | None = None
    metadata_path: Path | None = None
    modified: bool = False

    @property
    def succeeded(self) -> bool:
        return self.state is TemplateState.DONE


@dataclass(slots=True)
class RunReport:
    outcomes: List[TemplateOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def failures(self) -> List[TemplateOutcome]:
        return [outcome for outcome in self.outcomes if outcome.state is TemplateState.FAILED]

    @property
    def modified(self) -> List[str]:
        return sorted(outcome.template for outcome in self.outcomes if outcome.modified)

    @property
    def exit_code(self) -> int:
        failures = self.failures
        if not failures:
            return 0
        for outcome in reversed(failures):
            if isinstance(outcome.error, SubprocessError) and outcome.error.returncode:
                return outcome.error.returncode
        return FALLBACK_EXIT_CODE


@dataclass(frozen=True, slots=True)
class PackerRun:
    identity: BuildIdentity
    metadata_file: Path
    var_file: Path


def _temp_prefix(template: str) -> str:
    return template.replace("/", "__")


def _write_temp(prefix: str, suffix: str, content: str) -> Path:
    try:
        handle = tempfile.NamedTemporaryFile("w", encoding="utf-8", prefix=prefix, suffix=suffix, delete=False)
    except OSError as exc:
        raise MetadataWriteError(Path(tempfile.gettempdir()) / f"{prefix}*{suffix}", exc) from exc
    path = Path(handle.name)
    try:
        with handle:
            handle.write(content)
    except OSError as exc:
        path.unlink(missing_ok=True)
        raise MetadataWriteError(path, exc) from exc
    return path


@contextmanager
def packer_run(identities: IdentityBuilder, template: str, context: RunContext) -> Iterator[PackerRun]:
    """Provide the temp metadata and variable files for one builder invocation.

    Both files are removed when the block exits, however it exits.
    """
    identity = identities.compute(template, context)
    prefix = _temp_prefix(template)
    created: List[Path] = []
    try:
        metadata_file = _write_temp(f"{prefix}-metadata-", ".json", identity.to_json())
        created.append(metadata_file)
        variables = identity.runtime_variables(metadata_file)
        var_file = _write_temp(f"{prefix}-metadata-var-file-", ".json", json.dumps(variables))
        created.append(var_file)
        yield PackerRun(identity=identity, metadata_file=metadata_file, var_file=var_file)
    finally:
        for path in created:
            path.unlink(missing_ok=True)


def write_metadata(path: Path, metadata: FinalMetadata) -> None:
    """Write the metadata document in one replace so readers never see a partial file."""
    payload = metadata.to_json()
    temp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(payload, encoding="utf-8")
        os.replace(temp_path, path)
    except OSError as exc:
        raise MetadataWriteError(path, exc) from exc
    finally:
        # Left behind only when the replace never happened.
        if temp_path.is_file():
            temp_path.unlink()


class BuildEngine:
    def __init__(
        self,
        *,
        store: VariableStore,
        command_runner: CommandRunner,
        context: RunContext,
        console: Console | None = None,
        scanner: ArtifactScanner | None = None,
    ) -> None:
        self._store = store
        self._runner = command_runner
        self._context = context
        self._console = console or Console(level="none")
        self._scanner = scanner or ArtifactScanner()
        self._identities = IdentityBuilder(store, GitManager(command_runner), self._console)
        self._commands = CommandAssembler(store, context)

    def run(self, templates: Sequence[str]) -> RunReport:
        ordered = sorted(templates)
        self._console.banner(f"Starting build for templates: {', '.join(ordered)}")
        report = RunReport()
        started = time.monotonic()
        for template in ordered:
            report.outcomes.append(self.build(template))
        report.elapsed = time.monotonic() - started
        self._console.banner(f"Build finished in {duration(report.elapsed)}.")
        for outcome in report.failures:
            self._console.error(str(outcome.error))
        return report

    def build(self, template: str) -> TemplateOutcome:
        outcome = TemplateOutcome(template=template)
        started = time.monotonic()
        try:
            self._build(template, outcome, started)
        except BoxBuilderError as exc:
            outcome.state = TemplateState.FAILED
            outcome.error = exc
            self._console.warn(str(exc))
        finally:
            outcome.elapsed = time.monotonic() - started
        return outcome

    def _build(self, template: str, outcome: TemplateOutcome, started: float) -> None:
        context = self._context
        with packer_run(self._identities, template, context) as run:
            command = self._commands.build_command(template, run.var_file)
            self._console.debug(f"[{template}] var_file={run.var_file} md_file={run.metadata_file}")
            self._console.banner(f"[{template}] Building: '{self._runner.format_command(command)}'")
            outcome.state = TemplateState.BUILDING
            try:
                self._runner.run(command, cwd=context.workspace, env=context.environment or None, stream=True)
            except CommandError as exc:
                raise BuildError(template, "building", exc.returncode, command) from exc
            outcome.metadata_path = self.write_final_metadata(template)
        outcome.state = TemplateState.METADATA_WRITTEN
        self._console.banner(f"[{template}] Finished building in {duration(time.monotonic() - started)}.")
        outcome.state = TemplateState.DONE

    def write_final_metadata(self, template: str) -> Path | None:
        """Recompute the identity after the build, scan artifacts and persist the record."""
        context = self._context
        identity = self._identities.compute(template, context)
        output_dir = context.output_dir
        metadata = FinalMetadata(identity=identity, providers=self._scanner.scan(output_dir, identity.box_basename))
        path = output_dir / f"{identity.box_basename}.metadata.json"
        if context.dry_run:
            self._console.banner("(Dry run) Metadata file contents would be something similar to:")
            self._console.raw(metadata.to_json())
            return None
        write_metadata(path, metadata)
        self._console.info(f"Wrote metadata to {path}")
        return path
