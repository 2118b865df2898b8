"""Command line interface for boxbuilder."""
from __future__ import annotations

from argparse import ArgumentParser, ArgumentTypeError, Namespace
from pathlib import Path
from typing import Iterable
import sys

from .build import BuildEngine
from .command_runner import CommandRunner, SubprocessCommandRunner
from .config_loader import Settings, load_settings
from .console import Console
from .context import RunContext, build_timestamp
from .environment import builder_environment, detect_system, resolve_headless
from .errors import BoxBuilderError
from .normalize import NormalizeEngine
from .templates import TemplateCatalog
from .variables import VariableStore

INTERRUPTED_EXIT_CODE = 130


def _version(value: str) -> str:
    if not value.strip():
        raise ArgumentTypeError("version must not be empty")
    return value


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="boxbuilder", description="Build machine-image templates and record box metadata")
    parser.add_argument("--workspace", type=Path, help="Directory holding the templates (default: current directory)")
    parser.add_argument(
        "--log-level",
        choices=sorted(Console.LEVELS, key=Console.LEVELS.__getitem__),
        help="Console verbosity (default: from settings, else info)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Build one or more templates")
    build_parser.add_argument("templates", nargs="+", metavar="TEMPLATE", help="Template name(s) to build")
    build_parser.add_argument("-n", "--dry-run", action="store_true", help="Echo builder commands instead of running them")
    build_parser.add_argument("-d", "--debug", action="store_true", help="Run the builder in debug mode")
    build_parser.add_argument("-a", "--ask", action="store_true", help="Ask the builder what to do on error")
    build_parser.add_argument("-o", "--only", metavar="BUILDS", help="Only run the given builds (comma-separated)")
    build_parser.add_argument("-e", "--except", dest="except_builds", metavar="BUILDS", help="Skip the given builds (comma-separated)")
    build_parser.add_argument("-m", "--mirror", help="Mirror URL passed to the templates")
    build_parser.add_argument(
        "-v", "--version", dest="override_version", type=_version, metavar="VERSION", help="Override the box version"
    )

    normalize_parser = subparsers.add_parser("normalize", help="Validate templates and rewrite them in canonical form")
    normalize_parser.add_argument("templates", nargs="+", metavar="TEMPLATE", help="Template name(s) to normalize")
    normalize_parser.add_argument("-d", "--debug", action="store_true", help="Print the generated variable files")

    list_parser = subparsers.add_parser("list", help="List available templates")
    list_parser.add_argument("templates", nargs="*", metavar="TEMPLATE", help="Restrict the listing to these names or directories")

    subparsers.add_parser("help", help="Show this help message")
    return parser


def _parse_arguments(argv: Iterable[str]) -> tuple[ArgumentParser, Namespace]:
    parser = _build_parser()
    return parser, parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    parser, args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    if args.command == "help":
        parser.print_help()
        return 0

    workspace = (args.workspace or Path.cwd()).resolve()
    console = Console(level="error")
    try:
        settings = load_settings(workspace)
        console = Console(level=args.log_level or settings.log_level)
        if args.command == "list":
            return _handle_list(args, workspace, settings)
        runner = SubprocessCommandRunner()
        if args.command == "build":
            return _handle_build(args, workspace, settings, runner, console)
        if args.command == "normalize":
            return _handle_normalize(args, workspace, settings, runner, console)
    except KeyboardInterrupt:
        console.error("Interrupted, exiting.")
        return INTERRUPTED_EXIT_CODE
    except (BoxBuilderError, ValueError) as exc:
        console.error(str(exc))
        return getattr(exc, "exit_code", 1)
    raise ValueError(f"Unknown command: {args.command}")


def _run_context(args: Namespace, workspace: Path, settings: Settings) -> RunContext:
    return RunContext(
        workspace=workspace,
        build_timestamp=build_timestamp(),
        settings=settings,
        override_version=getattr(args, "override_version", None),
        dry_run=getattr(args, "dry_run", False),
        debug=args.debug,
        ask=getattr(args, "ask", False),
        only=getattr(args, "only", None),
        except_builds=getattr(args, "except_builds", None),
        mirror=getattr(args, "mirror", None),
        headless=resolve_headless(settings, detect_system()),
        environment=builder_environment(settings, workspace),
    )


def _handle_build(
    args: Namespace,
    workspace: Path,
    settings: Settings,
    runner: CommandRunner,
    console: Console,
) -> int:
    templates = TemplateCatalog(workspace, settings).resolve(args.templates)
    context = _run_context(args, workspace, settings)
    engine = BuildEngine(
        store=VariableStore(workspace),
        command_runner=runner,
        context=context,
        console=console,
    )
    return engine.run(templates).exit_code


def _handle_normalize(
    args: Namespace,
    workspace: Path,
    settings: Settings,
    runner: CommandRunner,
    console: Console,
) -> int:
    templates = TemplateCatalog(workspace, settings).resolve(args.templates)
    context = _run_context(args, workspace, settings)
    engine = NormalizeEngine(
        store=VariableStore(workspace),
        command_runner=runner,
        context=context,
        console=console,
    )
    return engine.run(templates).exit_code


def _handle_list(args: Namespace, workspace: Path, settings: Settings) -> int:
    for template in TemplateCatalog(workspace, settings).matching(args.templates):
        print(template)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
