from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

import pytest

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
for _k in list(sys.modules.keys()):
    if _k == "conjureplugin" or _k.startswith("conjureplugin."):
        del sys.modules[_k]

from conjureplugin.core.errors import VersionError
from conjureplugin.versioner import UNSPECIFIED_VERSION, GitVersionProvider, git_project_version


def _git(repo: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=test", "-c", "user.email=test@example.com", *args],
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    _git(tmp_path, "init", "-q")
    (tmp_path / "README").write_text("hello\n")
    _git(tmp_path, "add", "README")
    _git(tmp_path, "commit", "-q", "-m", "init")
    return tmp_path


def test_not_a_repository(tmp_path: Path) -> None:
    with pytest.raises(VersionError, match="not a git repository"):
        git_project_version(tmp_path)


def test_untagged_is_unspecified(repo: Path) -> None:
    assert git_project_version(repo) == UNSPECIFIED_VERSION


def test_tag_strips_leading_v(repo: Path) -> None:
    _git(repo, "tag", "v1.2.3")
    assert git_project_version(repo) == "1.2.3"


def test_commits_after_tag(repo: Path) -> None:
    _git(repo, "tag", "1.0.0")
    (repo / "README").write_text("changed\n")
    _git(repo, "commit", "-q", "-am", "second")
    v = git_project_version(repo)
    assert v.startswith("1.0.0-1-g")


def test_dirty_suffix(repo: Path) -> None:
    _git(repo, "tag", "2.0.0")
    (repo / "README").write_text("uncommitted\n")
    assert GitVersionProvider(repo).version() == "2.0.0.dirty"
