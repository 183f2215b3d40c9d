"""Manifest discovery: packaged build descriptors under META-INF/gradle.

Descriptors ship inside distributions (directories on the resource path, or
zip archives such as wheels, eggs and jars) at::

    META-INF/gradle/<group>/<artifact>/build.gradle
"""

from __future__ import annotations

import sys
import zipfile
from collections.abc import Iterable, Iterator
from pathlib import Path, PurePosixPath

import structlog

from gradle_runtime.exceptions import DescriptorError, DescriptorNotFoundError

log = structlog.get_logger("gradle_runtime.manifest")

MANIFEST_ROOT = "META-INF/gradle"
DESCRIPTOR_NAME = "build.gradle"


def descriptor_path(group: str, artifact: str) -> str:
    """Resource path of the descriptor for (group, artifact)."""
    return f"{MANIFEST_ROOT}/{group}/{artifact}/{DESCRIPTOR_NAME}"


class ManifestDiscovery:
    """List and read packaged resources across a search path.

    Listings are merged over every entry of the search path; reads return the
    first entry that has the resource, like a class loader would.
    """

    def __init__(self, search_path: Iterable[str | Path] | None = None) -> None:
        if search_path is None:
            search_path = sys.path
        self._entries = [Path(p) for p in search_path if str(p)]

    # ── listing ──────────────────────────────────────────────────────────

    def list_groups(self) -> list[str]:
        return self.list_children(MANIFEST_ROOT)

    def list_artifacts(self, group: str) -> list[str]:
        return self.list_children(f"{MANIFEST_ROOT}/{group}")

    def iter_descriptors(self) -> Iterator[tuple[str, str]]:
        """Yield every (group, artifact) pair found under the manifest root."""
        for group in self.list_groups():
            for artifact in self.list_artifacts(group):
                yield group, artifact

    def list_children(self, resource_dir: str) -> list[str]:
        """Names of the directories directly below *resource_dir*, sorted."""
        prefix = resource_dir.strip("/")
        names: set[str] = set()
        for entry in self._entries:
            if entry.is_dir():
                names.update(self._dir_children(entry / prefix))
            elif zipfile.is_zipfile(entry):
                names.update(self._zip_children(entry, prefix))
        return sorted(names)

    @staticmethod
    def _dir_children(directory: Path) -> list[str]:
        if not directory.is_dir():
            return []
        return [child.name for child in directory.iterdir() if child.is_dir()]

    @staticmethod
    def _zip_children(archive: Path, prefix: str) -> set[str]:
        names: set[str] = set()
        try:
            with zipfile.ZipFile(archive) as zf:
                for member in zf.namelist():
                    parts = PurePosixPath(member).parts
                    depth = len(PurePosixPath(prefix).parts)
                    # Only entries strictly below a child directory count.
                    if len(parts) > depth + 1 and "/".join(parts[:depth]) == prefix:
                        names.add(parts[depth])
        except (OSError, zipfile.BadZipFile) as exc:
            log.warning("manifest.archive_unreadable", archive=str(archive), error=str(exc))
        return names

    # ── reading ──────────────────────────────────────────────────────────

    def locate_descriptor(self, group: str, artifact: str) -> bytes:
        return self.read_resource(descriptor_path(group, artifact))

    def read_resource(self, resource_path: str) -> bytes:
        """Read a packaged resource from the first search-path entry holding it."""
        name = resource_path.strip("/")
        for entry in self._entries:
            if entry.is_dir():
                candidate = entry / name
                if candidate.is_file():
                    try:
                        return candidate.read_bytes()
                    except OSError as exc:
                        raise DescriptorError(
                            f"cannot read {candidate}: {exc}", descriptor=resource_path
                        ) from exc
            elif zipfile.is_zipfile(entry):
                data = self._read_zip_member(entry, name)
                if data is not None:
                    return data
        raise DescriptorNotFoundError(
            f"resource not found on search path: {resource_path}", descriptor=resource_path
        )

    @staticmethod
    def _read_zip_member(archive: Path, name: str) -> bytes | None:
        try:
            with zipfile.ZipFile(archive) as zf:
                try:
                    return zf.read(name)
                except KeyError:
                    return None
        except (OSError, zipfile.BadZipFile) as exc:
            raise DescriptorError(
                f"cannot read {name} from {archive}: {exc}", descriptor=name
            ) from exc
