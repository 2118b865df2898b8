"""Exception hierarchy shared by the boxbuilder modules."""
from __future__ import annotations

from typing import Sequence

# Exit status used when a failure carries no subprocess return code.
FALLBACK_EXIT_CODE = 99


class BoxBuilderError(RuntimeError):
    """Base class for every error reported to the operator."""

    exit_code: int = FALLBACK_EXIT_CODE


class ConfigurationError(BoxBuilderError):
    """Raised when the workspace settings file is invalid."""


class TemplateNotFoundError(BoxBuilderError):
    """Raised when a requested template document does not exist."""

    def __init__(self, template: str, path: object | None = None) -> None:
        location = f" ({path})" if path is not None else ""
        super().__init__(f"Template '{template}' not found{location}")
        self.template = template


class ParseError(BoxBuilderError):
    """Raised when a template or variables document cannot be parsed."""


class SubprocessError(BoxBuilderError):
    """Raised when the builder or git exits with a non-zero status."""

    def __init__(self, message: str, *, returncode: int, command: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.command = list(command)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.returncode or FALLBACK_EXIT_CODE


class BuildError(SubprocessError):
    """Raised when a template build or validation step fails."""

    def __init__(self, template: str, step: str, returncode: int, command: Sequence[str] = ()) -> None:
        super().__init__(
            f"[{template}] Error {step}, exited {returncode}",
            returncode=returncode,
            command=command,
        )
        self.template = template
        self.step = step


class MetadataWriteError(BoxBuilderError):
    """Raised when a temp variable file or the final metadata file cannot be written."""

    def __init__(self, path: object, error: OSError) -> None:
        super().__init__(f"Unable to write '{path}': {error.strerror or error}")
        self.path = path
        self.error = error


class ArtifactError(BoxBuilderError):
    """Raised when a produced box file cannot be read for checksumming."""
