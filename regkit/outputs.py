"""Writing a built manifest where consumers can fetch it."""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from .config import OutputConfig
from .manifest import MANIFEST_FILE, Manifest, ManifestItem, dump_manifest

logger = logging.getLogger(__name__)


class Output(ABC):
    """A destination for a built registry."""

    @abstractmethod
    def output(self, manifest: Manifest, cwd: Path) -> list[Path]:
        """Write ``manifest`` and return the files written."""

    @abstractmethod
    def clean(self, cwd: Path) -> None:
        """Remove anything a previous ``output`` wrote."""


class RepositoryOutput(Output):
    """Writes registry.json at the registry root.

    Files carry a ``source`` path and are fetched raw from the repository,
    so the manifest holds no file contents.
    """

    def output(self, manifest: Manifest, cwd: Path) -> list[Path]:
        stripped = manifest.model_copy(deep=True, update={"type": "repository"})
        for item in stripped.items:
            for file in item.files:
                file.content = None
        for config_file in stripped.config_files or []:
            config_file.content = None

        path = cwd / MANIFEST_FILE
        path.write_text(dump_manifest(stripped))
        logger.info("Wrote %s", path)
        return [path]

    def clean(self, cwd: Path) -> None:
        (cwd / MANIFEST_FILE).unlink(missing_ok=True)


class DistributedOutput(Output):
    """Writes registry.json plus one ``<item>.json`` with contents per item."""

    def __init__(self, directory: str):
        self.directory = directory

    def output(self, manifest: Manifest, cwd: Path) -> list[Path]:
        out_dir = cwd / self.directory
        out_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []

        index = manifest.model_copy(deep=True, update={"type": "distributed"})
        for item in index.items:
            for file in item.files:
                file.content = None
                file.source = None

        path = out_dir / MANIFEST_FILE
        path.write_text(dump_manifest(index))
        written.append(path)

        for item in manifest.items:
            written.append(self._write_item(item, out_dir))

        logger.info("Wrote %d files to %s", len(written), out_dir)
        return written

    def _write_item(self, item: ManifestItem, out_dir: Path) -> Path:
        distributed = item.model_copy(deep=True)
        for file in distributed.files:
            file.source = None
        path = out_dir / f"{item.name}.json"
        path.write_text(json.dumps(distributed.to_dict(), indent=2) + "\n")
        return path

    def clean(self, cwd: Path) -> None:
        out_dir = cwd / self.directory
        if not out_dir.is_dir():
            return
        for path in out_dir.glob("*.json"):
            path.unlink()


def create_output(config: OutputConfig) -> Output:
    if config.type == "distributed":
        return DistributedOutput(config.dir)
    return RepositoryOutput()


def write_outputs(manifest: Manifest, outputs: list[OutputConfig], cwd: Path) -> list[Path]:
    """Clean and rewrite every configured output."""
    written: list[Path] = []
    for config in outputs:
        output = create_output(config)
        output.clean(cwd)
        written.extend(output.output(manifest, cwd))
    return written
