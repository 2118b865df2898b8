"""Box identity derivation and the metadata documents built from it."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping
import json

from .artifacts import ProviderArtifact
from .console import Console
from .context import RunContext
from .git_manager import GitManager
from .variables import VariableStore

UNKNOWN = "__unknown__"
DEFAULT_VERSION = f"{UNKNOWN}.TIMESTAMP"


def resolve_version(variables: Mapping[str, Any], build_timestamp: str, override_version: str | None = None) -> str:
    """Return the effective box version.

    An explicit override is returned verbatim. Otherwise the last dot-separated
    component of the declared version is a placeholder and is replaced by the
    build timestamp, so ``1.2.3`` becomes ``1.2.<timestamp>``.
    """
    if override_version is not None:
        return override_version
    declared = str(variables.get("version", DEFAULT_VERSION))
    head, _, _ = declared.rpartition(".")
    return f"{head}.{build_timestamp}"


def format_box_basename(name: str, version: str, git_revision: str) -> str:
    return f"{name.replace('/', '__')}-{version}.git.{git_revision}"


@dataclass(frozen=True, slots=True)
class BuildIdentity:
    name: str
    version: str
    build_timestamp: str
    git_revision: str
    box_basename: str
    template: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "build_timestamp": self.build_timestamp,
            "git_revision": self.git_revision,
            "box_basename": self.box_basename,
            "template": self.template,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def runtime_variables(self, metadata_path: Path) -> Dict[str, str]:
        """Variables handed to the builder through ``-var-file``."""
        return {
            "box_basename": self.box_basename,
            "build_timestamp": self.build_timestamp,
            "git_revision": self.git_revision,
            "metadata": str(metadata_path),
            "version": self.version,
        }


@dataclass(frozen=True, slots=True)
class FinalMetadata:
    identity: BuildIdentity
    providers: List[ProviderArtifact] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = self.identity.to_dict()
        data["providers"] = [provider.to_dict() for provider in self.providers]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


class IdentityBuilder:
    """Computes the :class:`BuildIdentity` of a template for one run."""

    def __init__(self, store: VariableStore, git: GitManager, console: Console | None = None) -> None:
        self._store = store
        self._git = git
        self._console = console or Console(level="none")

    def compute(self, template: str, context: RunContext) -> BuildIdentity:
        variables = self._store.load(template)
        version = resolve_version(variables, context.build_timestamp, context.override_version)
        name = str(variables.get("name", template))
        git_revision = self._revision(template, context)
        return BuildIdentity(
            name=name,
            version=version,
            build_timestamp=context.build_timestamp,
            git_revision=git_revision,
            box_basename=format_box_basename(name, version, git_revision),
            template=str(variables.get("template", UNKNOWN)),
        )

    def _revision(self, template: str, context: RunContext) -> str:
        state = self._git.probe(context.workspace, environment=context.environment or None)
        if not state.known:
            self._console.warn(f"[{template}] Unable to determine git revision; metadata will record '{UNKNOWN}'")
            return UNKNOWN
        return state.revision
