from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
for _k in list(sys.modules.keys()):
    if _k == "conjureplugin" or _k.startswith("conjureplugin."):
        del sys.modules[_k]

from conjureplugin.generator import OutputConfiguration, OutputFile


def _main(argv: list[str]) -> int:
    # Same module objects as the patched conjureplugin.generator.
    from conjureplugin import cli

    return cli.main(argv)


class _FakeCommandGenerator:
    """Writes each IR "files" entry under the output directory."""

    def __init__(self, executable: str, **_: Any) -> None:
        self.executable = executable

    def generate_output_files(self, definition: dict[str, Any], conf: OutputConfiguration) -> list[OutputFile]:
        return [
            OutputFile(conf.output_dir / rel, lambda text=text: text.encode("utf-8"))
            for rel, text in sorted(definition.get("files", {}).items())
        ]

    def generate(self, definition: dict[str, Any], conf: OutputConfiguration) -> None:
        for f in self.generate_output_files(definition, conf):
            f.abs_path.parent.mkdir(parents=True, exist_ok=True)
            f.abs_path.write_bytes(f.render())


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr("conjureplugin.generator.CommandGenerator", _FakeCommandGenerator)
    (tmp_path / "ir").mkdir()
    for name in ("first", "second"):
        ir = {"version": 1, "files": {f"{name}/types.go": f"package {name}\n"}}
        (tmp_path / "ir" / f"{name}.json").write_text(json.dumps(ir))
    (tmp_path / "conjure-plugin.yml").write_text(
        "projects:\n"
        "  first:\n"
        "    output-dir: gen\n"
        "    ir-locator: ir/first.json\n"
        "  second:\n"
        "    output-dir: gen\n"
        "    ir-locator: ir/second.json\n"
    )
    return tmp_path


def _args(project: Path, *rest: str) -> list[str]:
    return ["--project-dir", str(project), "--config", str(project / "conjure-plugin.yml"), *rest]


class TestRun:
    def test_generate_then_verify(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _main(_args(project, "run")) == 0
        assert (project / "gen" / "first" / "types.go").read_text() == "package first\n"

        assert _main(_args(project, "run", "--verify")) == 0
        assert "PASS" in capsys.readouterr().err

    def test_verify_drift_exits_1(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _main(_args(project, "run")) == 0
        (project / "gen" / "second" / "types.go").write_text("edited\n")
        capsys.readouterr()

        assert _main(_args(project, "run", "--verify")) == 1
        captured = capsys.readouterr()
        assert captured.out.startswith("Conjure output differs from what currently exists: [1]\n")
        assert "  1 (second):\n    gen/second/types.go: checksum " in captured.out
        assert "[conjure-plugin run] FAIL: conjure verify failed" in captured.err

    def test_global_flags_after_subcommand(self, project: Path) -> None:
        argv = ["run", "--project-dir", str(project), "--config", str(project / "conjure-plugin.yml")]
        assert _main(argv) == 0

    def test_missing_ir_file_exits_3(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (project / "ir" / "second.json").unlink()
        assert _main(_args(project, "run", "--verify")) == 3
        assert "[conjure-plugin run] ERROR: failed to read IR file" in capsys.readouterr().err

    def test_invalid_config_exits_3(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (project / "conjure-plugin.yml").write_text("projects: [\n")
        assert _main(_args(project, "run")) == 3
        assert "failed to parse configuration" in capsys.readouterr().err

    def test_invalid_project_dir_exits_3(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        argv = ["--project-dir", str(project / "missing"), "--config", str(project / "conjure-plugin.yml"), "run"]
        assert _main(argv) == 3
        assert "invalid project dir" in capsys.readouterr().err

    def test_output_dir_that_is_a_file_exits_3(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "ir.json").write_text(json.dumps({"version": 1}))
        (tmp_path / "out").write_text("not a directory")
        (tmp_path / "conjure-plugin.yml").write_text("projects:\n  api:\n    output-dir: out\n    ir-locator: ir.json\n")
        argv = ["--project-dir", str(tmp_path), "--config", str(tmp_path / "conjure-plugin.yml"), "run", "--generator", "true"]
        assert _main(argv) == 3
        assert "[conjure-plugin run] ERROR: failed to create output directory" in capsys.readouterr().err


class TestPublish:
    def test_nothing_publishable(self, project: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert _main(_args(project, "publish", "--dry-run")) == 0
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "nothing to publish" in captured.err


class TestMain:
    def test_about(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _main(["about"]) == 0
        assert "Repo: " in capsys.readouterr().out

    @pytest.mark.parametrize("argv", [["run"], ["publish", "--config", "x.yml"]])
    def test_missing_required_flags(self, argv: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert _main(argv) == 3
        assert "required flag(s) not set" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _main([]) == 3
        assert "usage:" in capsys.readouterr().out
