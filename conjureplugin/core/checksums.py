"""Content-addressed snapshots of generated file sets.

A ChecksumSet maps a path (POSIX, relative to a project root) to the SHA-256
of the file's content. Two sets computed from different origins (rendered in
memory vs. read from disk) use the same hash and the same path rule, so equal
content always yields equal entries and ChecksumSet.diff() reports only real
drift.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Protocol

from conjureplugin.core.errors import ChecksumError
from conjureplugin.core.hash import sha256_bytes, sha256_file
from conjureplugin.core.jail import project_relpath


class RenderedFile(Protocol):
    # Minimal surface of a generator output file that the checksum engine needs.
    @property
    def abs_path(self) -> Path: ...

    def render(self) -> bytes: ...


@dataclass(frozen=True)
class FileChecksumInfo:
    path: str
    is_dir: bool
    sha256: str | None


class DiffKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    TYPE_CHANGED = "type-changed"


@dataclass(frozen=True)
class DiffEntry:
    path: str
    kind: DiffKind
    description: str

    def __str__(self) -> str:
        return f"{self.path}: {self.description}"


@dataclass(frozen=True)
class ChecksumsDiff:
    """Discrepancies between two ChecksumSets, sorted by path."""

    entries: tuple[DiffEntry, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def paths(self) -> list[str]:
        return [e.path for e in self.entries]

    def __str__(self) -> str:
        return "\n".join(str(e) for e in self.entries)


@dataclass
class ChecksumSet:
    root_dir: Path
    label: str = ""
    checksums: dict[str, FileChecksumInfo] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.label:
            self.label = str(self.root_dir)

    def add(self, info: FileChecksumInfo) -> None:
        self.checksums[info.path] = info

    def diff(self, updated: "ChecksumSet") -> ChecksumsDiff:
        """Compare self (original) against updated.

        Paths only in updated are ADDED, paths only in self are REMOVED, paths in
        both whose directory flag differs are TYPE_CHANGED, and file paths in both
        whose digest differs are MODIFIED. Directories are compared by presence.
        """

        original = self
        entries: list[DiffEntry] = []
        for path in sorted(set(original.checksums) | set(updated.checksums)):
            before = original.checksums.get(path)
            after = updated.checksums.get(path)
            if before is None and after is not None:
                entries.append(
                    DiffEntry(path, DiffKind.ADDED, f"present in {updated.label}, missing in {original.label}")
                )
            elif after is None and before is not None:
                entries.append(
                    DiffEntry(path, DiffKind.REMOVED, f"present in {original.label}, missing in {updated.label}")
                )
            elif before is not None and after is not None:
                if before.is_dir != after.is_dir:
                    entries.append(
                        DiffEntry(
                            path,
                            DiffKind.TYPE_CHANGED,
                            f"{_kind_name(before)} in {original.label}, {_kind_name(after)} in {updated.label}",
                        )
                    )
                elif not before.is_dir and before.sha256 != after.sha256:
                    entries.append(
                        DiffEntry(
                            path,
                            DiffKind.MODIFIED,
                            f"checksum {before.sha256} in {original.label} differs from "
                            f"checksum {after.sha256} in {updated.label}",
                        )
                    )
        return ChecksumsDiff(tuple(entries))


def _kind_name(info: FileChecksumInfo) -> str:
    return "directory" if info.is_dir else "file"


def diff(original: ChecksumSet, updated: ChecksumSet) -> ChecksumsDiff:
    return original.diff(updated)


def checksum_rendered_files(files: Iterable[RenderedFile], root: Path, *, label: str = "generated output") -> ChecksumSet:
    """Render each file in memory and record its digest keyed by path relative to root."""

    out = ChecksumSet(root_dir=root, label=label)
    for f in files:
        try:
            rel = project_relpath(root, f.abs_path)
        except ValueError as e:
            raise ChecksumError(str(e)) from e
        content = f.render()
        out.add(FileChecksumInfo(path=rel, is_dir=False, sha256=sha256_bytes(content)))
    return out


def checksum_on_disk_files(files: Iterable[RenderedFile], root: Path, *, label: str = "on-disk files") -> ChecksumSet:
    """Checksum the on-disk counterpart of each file.

    Files that do not exist are skipped: their absence shows up in the diff
    against the rendered set. Any other I/O failure (permission denied, path is
    a directory, ...) raises ChecksumError.
    """

    out = ChecksumSet(root_dir=root, label=label)
    for f in files:
        try:
            rel = project_relpath(root, f.abs_path)
        except ValueError as e:
            raise ChecksumError(str(e)) from e
        try:
            digest = sha256_file(f.abs_path)
        except FileNotFoundError:
            continue
        except OSError as e:
            raise ChecksumError(f"failed to checksum on-disk content for {f.abs_path}: {e}") from e
        out.add(FileChecksumInfo(path=rel, is_dir=False, sha256=digest))
    return out
