from __future__ import annotations

import subprocess
from pathlib import Path

from conjureplugin.core.errors import VersionError

UNSPECIFIED_VERSION = "unspecified"


def _run_git(repo: Path, args: list[str]) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", "-C", str(repo)] + args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise VersionError(f"failed to execute git: {e}") from e


def git_project_version(project_dir: Path) -> str:
    """Return the release version of the git checkout at project_dir.

    Uses the most recent tag reachable along first parents, without a leading
    "v". Untagged repositories report "unspecified"; uncommitted changes add a
    ".dirty" suffix.
    """

    inside = _run_git(project_dir, ["rev-parse", "--is-inside-work-tree"])
    if inside.returncode != 0 or inside.stdout.strip() != "true":
        raise VersionError(f"{project_dir} is not a git repository: {inside.stderr.strip()}")

    tags = _run_git(project_dir, ["tag", "--list"])
    if tags.returncode != 0:
        raise VersionError(f"git tag failed: {tags.stderr.strip()}")
    if not tags.stdout.strip():
        return UNSPECIFIED_VERSION

    described = _run_git(project_dir, ["describe", "--tags", "--first-parent"])
    if described.returncode != 0:
        # Tags exist but none is reachable from HEAD along first parents.
        return UNSPECIFIED_VERSION
    version = described.stdout.strip()
    if version.startswith("v"):
        version = version[1:]

    status = _run_git(project_dir, ["status", "--porcelain"])
    if status.returncode != 0:
        raise VersionError(f"git status failed: {status.stderr.strip()}")
    if status.stdout.strip():
        version += ".dirty"
    return version


class GitVersionProvider:
    def __init__(self, project_dir: Path) -> None:
        self.project_dir = Path(project_dir)

    def version(self) -> str:
        return git_project_version(self.project_dir)
