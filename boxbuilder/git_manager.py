"""Git queries used to stamp builds with the source revision."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .command_runner import CommandRunner

DIRTY_SUFFIX = "_dirty"


@dataclass(frozen=True, slots=True)
class RevisionState:
    commit: str
    dirty: bool

    @property
    def known(self) -> bool:
        return bool(self.commit)

    @property
    def revision(self) -> str:
        if self.dirty and self.commit:
            return f"{self.commit}{DIRTY_SUFFIX}"
        return self.commit


class GitManager:
    """Reads the current commit and working-tree status of a repository.

    Both queries tolerate failure: a git error yields an empty commit and a
    clean tree, and callers decide how to report an unknown revision.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def probe(self, repo_path: Path, *, environment: Mapping[str, str] | None = None) -> RevisionState:
        return RevisionState(
            commit=self._current_commit(repo_path, environment=environment),
            dirty=self._is_dirty(repo_path, environment=environment),
        )

    def _current_commit(self, repo_path: Path, *, environment: Mapping[str, str] | None = None) -> str:
        result = self._runner.run(["git", "rev-parse", "HEAD"], cwd=repo_path, env=environment, check=False)
        if not result.ok:
            return ""
        return result.stdout.strip()

    def _is_dirty(self, repo_path: Path, *, environment: Mapping[str, str] | None = None) -> bool:
        result = self._runner.run(["git", "status", "--porcelain"], cwd=repo_path, env=environment, check=False)
        if not result.ok:
            return False
        return bool(result.stdout.strip())
