from __future__ import annotations

from pathlib import Path
import unittest

from boxbuilder.command_runner import RecordingCommandRunner
from boxbuilder.git_manager import GitManager, RevisionState


class RevisionStateTests(unittest.TestCase):
    def test_clean_revision_is_the_commit(self) -> None:
        self.assertEqual(RevisionState(commit="abcd1234", dirty=False).revision, "abcd1234")

    def test_dirty_revision_gets_suffix(self) -> None:
        self.assertEqual(RevisionState(commit="abcd1234", dirty=True).revision, "abcd1234_dirty")

    def test_empty_commit_never_gets_suffix(self) -> None:
        state = RevisionState(commit="", dirty=True)
        self.assertFalse(state.known)
        self.assertEqual(state.revision, "")


class GitManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = RecordingCommandRunner()
        self.manager = GitManager(self.runner)
        self.repo = Path("/work/templates")

    def test_probe_clean_tree(self) -> None:
        self.runner.respond(["git", "rev-parse", "HEAD"], stdout="deadbeef\n")
        self.runner.respond(["git", "status", "--porcelain"], stdout="")

        state = self.manager.probe(self.repo)

        self.assertEqual(state, RevisionState(commit="deadbeef", dirty=False))
        self.assertEqual(
            list(self.runner.iter_commands()),
            [["git", "rev-parse", "HEAD"], ["git", "status", "--porcelain"]],
        )
        self.assertTrue(all(record.cwd == str(self.repo) for record in self.runner.commands))

    def test_probe_dirty_tree(self) -> None:
        self.runner.respond(["git", "rev-parse", "HEAD"], stdout="deadbeef\n")
        self.runner.respond(["git", "status", "--porcelain"], stdout=" M ubuntu.json\n?? notes.txt\n")

        self.assertEqual(self.manager.probe(self.repo).revision, "deadbeef_dirty")

    def test_probe_outside_repository_is_empty_and_clean(self) -> None:
        self.runner.respond(["git"], returncode=128, stderr="fatal: not a git repository")

        state = self.manager.probe(self.repo)

        self.assertEqual(state.commit, "")
        self.assertFalse(state.dirty)


if __name__ == "__main__":
    unittest.main()
