"""Discovery and checksumming of the box files a build produced."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List
import glob
import hashlib

from .errors import ArtifactError

CHECKSUM_TYPE = "sha256"
VMWARE_PROVIDER = "vmware_desktop"
BOX_SUFFIX = ".box"
_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True, slots=True)
class ProviderArtifact:
    name: str
    file: str
    checksum: str
    checksum_type: str = CHECKSUM_TYPE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "file": self.file,
            "checksum_type": self.checksum_type,
            "checksum": self.checksum,
        }


def normalize_provider(token: str) -> str:
    if "vmware" in token.lower():
        return VMWARE_PROVIDER
    return token


def provider_from_filename(filename: str) -> str:
    """Return the provider token of ``<basename>.<provider>.box``."""
    stem = filename[: -len(BOX_SUFFIX)] if filename.endswith(BOX_SUFFIX) else filename
    _, _, token = stem.rpartition(".")
    return normalize_provider(token)


def file_checksum(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ArtifactScanner:
    """Finds ``<box_basename>.*.box`` files in the output directory.

    Matches are returned in the order the filesystem yields them.
    """

    def scan(self, output_dir: Path, box_basename: str) -> List[ProviderArtifact]:
        pattern = str(Path(glob.escape(str(output_dir))) / f"{glob.escape(box_basename)}.*{BOX_SUFFIX}")
        artifacts: List[ProviderArtifact] = []
        for match in glob.glob(pattern):
            path = Path(match)
            if not path.is_file():
                continue
            try:
                checksum = file_checksum(path)
            except OSError as exc:
                raise ArtifactError(f"Unable to checksum '{path}': {exc.strerror or exc}") from exc
            artifacts.append(ProviderArtifact(name=provider_from_filename(path.name), file=path.name, checksum=checksum))
        return artifacts
