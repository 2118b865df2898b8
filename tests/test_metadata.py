from __future__ import annotations

from contextlib import redirect_stdout
from datetime import datetime, timezone
from pathlib import Path
import io
import json
import tempfile
import unittest

from boxbuilder.artifacts import ProviderArtifact
from boxbuilder.command_runner import RecordingCommandRunner
from boxbuilder.console import Console
from boxbuilder.context import RunContext, build_timestamp
from boxbuilder.git_manager import GitManager
from boxbuilder.metadata import (
    BuildIdentity,
    FinalMetadata,
    IdentityBuilder,
    UNKNOWN,
    format_box_basename,
    resolve_version,
)
from boxbuilder.variables import VariableStore


class ResolveVersionTests(unittest.TestCase):
    def test_last_segment_is_replaced_by_timestamp(self) -> None:
        for declared, expected in [
            ("1.2.3", "1.2.20240101000000"),
            ("2.0.0", "2.0.20240101000000"),
            ("10.04.TIMESTAMP", "10.04.20240101000000"),
            ("7.9", "7.20240101000000"),
        ]:
            with self.subTest(declared=declared):
                self.assertEqual(resolve_version({"version": declared}, "20240101000000"), expected)

    def test_override_ignores_declared_version(self) -> None:
        for declared in ("1.2.3", "", "garbage"):
            with self.subTest(declared=declared):
                self.assertEqual(
                    resolve_version({"version": declared}, "20240101000000", "9.9.9"),
                    "9.9.9",
                )

    def test_only_a_missing_override_falls_back_to_declared_version(self) -> None:
        self.assertEqual(resolve_version({"version": "1.2.3"}, "20240101000000", None), "1.2.20240101000000")
        self.assertEqual(resolve_version({"version": "1.2.3"}, "20240101000000", ""), "")

    def test_missing_version_uses_unknown_sentinel(self) -> None:
        self.assertEqual(resolve_version({}, "20240101000000"), "__unknown__.20240101000000")

    def test_version_without_separator(self) -> None:
        self.assertEqual(resolve_version({"version": "3"}, "20240101000000"), ".20240101000000")


class BasenameTests(unittest.TestCase):
    def test_slashes_in_name_are_replaced(self) -> None:
        self.assertEqual(
            format_box_basename("org/image", "1.0.20240101000000", "abcd1234"),
            "org__image-1.0.20240101000000.git.abcd1234",
        )

    def test_every_slash_is_replaced(self) -> None:
        self.assertEqual(format_box_basename("a/b/c", "1", "r"), "a__b__c-1.git.r")


class BuildTimestampTests(unittest.TestCase):
    def test_format(self) -> None:
        moment = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.assertEqual(build_timestamp(moment), "20240601120000")


class IdentityBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.workspace = Path(self.temp_dir.name)
        (self.workspace / "demo.json").write_text(
            json.dumps({"variables": {"name": "demo", "version": "2.0.0"}})
        )
        self.runner = RecordingCommandRunner()
        self.runner.respond(["git", "rev-parse", "HEAD"], stdout="deadbeef\n")
        self.runner.respond(["git", "status", "--porcelain"], stdout="")
        self.builder = IdentityBuilder(VariableStore(self.workspace), GitManager(self.runner))
        self.context = RunContext(workspace=self.workspace, build_timestamp="20240601120000")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_compute_end_to_end(self) -> None:
        identity = self.builder.compute("demo", self.context)
        self.assertEqual(
            identity,
            BuildIdentity(
                name="demo",
                version="2.0.20240601120000",
                build_timestamp="20240601120000",
                git_revision="deadbeef",
                box_basename="demo-2.0.20240601120000.git.deadbeef",
                template=UNKNOWN,
            ),
        )

    def test_compute_is_idempotent(self) -> None:
        first = self.builder.compute("demo", self.context)
        second = self.builder.compute("demo", self.context)
        self.assertEqual(first, second)
        self.assertEqual(first.to_json(), second.to_json())

    def test_override_version_and_overrides_file(self) -> None:
        (self.workspace / "demo.variables.json").write_text(
            json.dumps({"name": "org/demo", "template": "demo-base"})
        )
        context = RunContext(
            workspace=self.workspace,
            build_timestamp="20240601120000",
            override_version="5.0.1",
        )
        identity = self.builder.compute("demo", context)
        self.assertEqual(identity.version, "5.0.1")
        self.assertEqual(identity.box_basename, "org__demo-5.0.1.git.deadbeef")
        self.assertEqual(identity.template, "demo-base")

    def test_name_defaults_to_template(self) -> None:
        nested = self.workspace / "debian"
        nested.mkdir()
        (nested / "debian-12.json").write_text(json.dumps({"variables": {"version": "12.0.0"}}))
        identity = self.builder.compute("debian/debian-12", self.context)
        self.assertEqual(identity.name, "debian/debian-12")
        self.assertEqual(identity.box_basename, "debian__debian-12-12.0.20240601120000.git.deadbeef")

    def test_dirty_tree_marks_revision(self) -> None:
        self.runner.respond(["git", "status", "--porcelain"], stdout=" M demo.json\n")
        identity = self.builder.compute("demo", self.context)
        self.assertEqual(identity.git_revision, "deadbeef_dirty")
        self.assertTrue(identity.box_basename.endswith(".git.deadbeef_dirty"))

    def test_unknown_revision_is_reported(self) -> None:
        self.runner.respond(["git", "rev-parse", "HEAD"], returncode=128)
        self.runner.respond(["git", "status", "--porcelain"], returncode=128)
        builder = IdentityBuilder(VariableStore(self.workspace), GitManager(self.runner), Console(level="info"))

        buffer = io.StringIO()
        with redirect_stdout(buffer):
            identity = builder.compute("demo", self.context)

        self.assertEqual(identity.git_revision, UNKNOWN)
        self.assertIn("Unable to determine git revision", buffer.getvalue())


class SerializationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.identity = BuildIdentity(
            name="demo",
            version="2.0.20240601120000",
            build_timestamp="20240601120000",
            git_revision="deadbeef",
            box_basename="demo-2.0.20240601120000.git.deadbeef",
            template="demo",
        )

    def test_final_metadata_key_order(self) -> None:
        metadata = FinalMetadata(
            identity=self.identity,
            providers=[ProviderArtifact(name="virtualbox", file="x.virtualbox.box", checksum="00")],
        )
        data = json.loads(metadata.to_json())
        self.assertEqual(
            list(data),
            ["name", "version", "build_timestamp", "git_revision", "box_basename", "template", "providers"],
        )
        self.assertEqual(list(data["providers"][0]), ["name", "file", "checksum_type", "checksum"])
        self.assertEqual(data["providers"][0]["checksum_type"], "sha256")

    def test_runtime_variables(self) -> None:
        variables = self.identity.runtime_variables(Path("/tmp/demo-metadata.json"))
        self.assertEqual(
            variables,
            {
                "box_basename": "demo-2.0.20240601120000.git.deadbeef",
                "build_timestamp": "20240601120000",
                "git_revision": "deadbeef",
                "metadata": "/tmp/demo-metadata.json",
                "version": "2.0.20240601120000",
            },
        )


if __name__ == "__main__":
    unittest.main()
