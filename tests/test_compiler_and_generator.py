"""Tests for the conjure CLI wrapper and the generator adapter.

Both shell out to executables; these tests stand in small /bin/sh scripts for
the real conjure and generator binaries.
"""

from __future__ import annotations

import io
import json
import sys
import tarfile
from pathlib import Path

import pytest
import requests

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="requires /bin/sh")


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
for _k in list(sys.modules.keys()):
    if _k == "conjureplugin" or _k.startswith("conjureplugin."):
        del sys.modules[_k]

from conjureplugin.compiler import ConjureCompiler, check_cli_exists
from conjureplugin.core.errors import AcquisitionError, CompilationError
from conjureplugin.generator import CommandGenerator, OutputConfiguration, definition_from_ir_bytes


FAKE_CONJURE = """#!/bin/sh
if [ "$1" != "compile" ]; then
  echo "unknown command $1"
  exit 2
fi
if grep -q INVALID "$2" 2>/dev/null; then
  echo "Error: invalid definition in $2"
  exit 1
fi
if [ "$4" = "--extensions" ]; then
  printf '{"version":1,"extensions":%s}' "$5" > "$3"
else
  printf '{"version":1}' > "$3"
fi
"""

FAKE_GENERATOR = """#!/bin/sh
if [ "$1" != "generate" ]; then
  exit 2
fi
mkdir -p "$3/api"
cp "$2" "$3/api/ir.json"
if [ "$4" = "--server" ]; then
  printf 'server' > "$3/api/server.go"
fi
printf 'package api\\n' > "$3/api/types.go"
"""


def _tgz(version: str, script: str) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        data = script.encode("utf-8")
        info = tarfile.TarInfo(f"conjure-{version}/bin/conjure")
        info.size = len(data)
        info.mode = 0o755
        tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class _Fetcher:
    def __init__(self, payload: bytes) -> None:
        self.payload = payload
        self.urls: list[str] = []

    def __call__(self, url: str) -> bytes:
        self.urls.append(url)
        return self.payload


class TestConjureCompiler:
    def test_ensure_cli_exists_downloads_once(self, tmp_path: Path) -> None:
        fetch = _Fetcher(_tgz("9.9.9", FAKE_CONJURE))
        compiler = ConjureCompiler(cache_dir=tmp_path / "cache", version="9.9.9", fetch=fetch)
        cli = compiler.ensure_cli_exists()
        assert cli == tmp_path / "cache" / "conjure-9.9.9" / "bin" / "conjure"
        check_cli_exists(cli)
        compiler.ensure_cli_exists()
        assert fetch.urls == [
            "https://repo1.maven.org/maven2/com/palantir/conjure/conjure/9.9.9/conjure-9.9.9.tgz"
        ]

    def test_empty_cli_is_reinstalled(self, tmp_path: Path) -> None:
        fetch = _Fetcher(_tgz("1.0.0", FAKE_CONJURE))
        compiler = ConjureCompiler(cache_dir=tmp_path, version="1.0.0", fetch=fetch)
        compiler.cli_path.parent.mkdir(parents=True)
        compiler.cli_path.write_bytes(b"")
        compiler.ensure_cli_exists()
        assert len(fetch.urls) == 1
        assert compiler.cli_path.stat().st_size > 0

    def test_archive_without_cli_fails(self, tmp_path: Path) -> None:
        fetch = _Fetcher(_tgz("2.0.0", FAKE_CONJURE))
        compiler = ConjureCompiler(cache_dir=tmp_path, version="3.0.0", fetch=fetch)
        with pytest.raises(AcquisitionError, match="after unpacking"):
            compiler.ensure_cli_exists()

    def test_download_transport_error(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(url: str, **kwargs: object) -> None:
            raise requests.ConnectionError(f"connection refused: {url}")

        monkeypatch.setattr(requests, "get", refuse)
        compiler = ConjureCompiler(cache_dir=tmp_path / "cache", version="1.0.0")
        api = tmp_path / "api.yml"
        api.write_text("types: {}\n")
        with pytest.raises(AcquisitionError, match="failed to download .*conjure-1.0.0.tgz: connection refused"):
            compiler.compile(api)
        assert not compiler.archive_dir.exists()

    def test_compile_with_and_without_extensions(self, tmp_path: Path) -> None:
        compiler = ConjureCompiler(cache_dir=tmp_path / "cache", version="1.0.0", fetch=_Fetcher(_tgz("1.0.0", FAKE_CONJURE)))
        api = tmp_path / "api.yml"
        api.write_text("types: {}\n")

        assert json.loads(compiler.compile(api)) == {"version": 1}

        ext = {"recommended-product-dependencies": [{"product-name": "svc"}]}
        out = json.loads(compiler.compile(api, extensions=ext))
        assert out["extensions"] == ext

    def test_compile_failure_includes_output(self, tmp_path: Path) -> None:
        compiler = ConjureCompiler(cache_dir=tmp_path / "cache", version="1.0.0", fetch=_Fetcher(_tgz("1.0.0", FAKE_CONJURE)))
        with pytest.raises(CompilationError, match="invalid definition"):
            compiler.yaml_to_ir(b"INVALID\n")


class TestDefinitionFromIRBytes:
    def test_valid(self) -> None:
        assert definition_from_ir_bytes(b'{"version": 1, "types": []}')["types"] == []

    @pytest.mark.parametrize("data", [b"not json", b"[]", b'{"types": []}', b'{"version": "1"}', b"\xff"])
    def test_invalid(self, data: bytes) -> None:
        with pytest.raises(CompilationError, match="failed to parse Conjure IR"):
            definition_from_ir_bytes(data)


class TestCommandGenerator:
    def _generator(self, tmp_path: Path) -> CommandGenerator:
        exe = tmp_path / "fake-generator"
        exe.write_text(FAKE_GENERATOR)
        exe.chmod(0o755)
        return CommandGenerator(str(exe))

    def test_generate_writes_output_dir(self, tmp_path: Path) -> None:
        gen = self._generator(tmp_path)
        out = tmp_path / "project" / "out"
        gen.generate({"version": 1}, OutputConfiguration(output_dir=out, generate_server=True))
        assert (out / "api" / "types.go").read_text() == "package api\n"
        assert (out / "api" / "server.go").exists()

    def test_output_files_do_not_touch_disk(self, tmp_path: Path) -> None:
        gen = self._generator(tmp_path)
        out = tmp_path / "project" / "out"
        files = gen.generate_output_files({"version": 1}, OutputConfiguration(output_dir=out))
        assert [f.abs_path for f in files] == [out / "api" / "ir.json", out / "api" / "types.go"]
        assert files[1].render() == b"package api\n"
        assert files[1].render() == b"package api\n"
        assert not out.exists()

    def test_generator_failure(self, tmp_path: Path) -> None:
        exe = tmp_path / "failing"
        exe.write_text("#!/bin/sh\necho 'generator exploded'\nexit 1\n")
        exe.chmod(0o755)
        with pytest.raises(CompilationError, match="generator exploded"):
            CommandGenerator(str(exe)).generate({"version": 1}, OutputConfiguration(output_dir=tmp_path / "o"))

    def test_missing_executable(self, tmp_path: Path) -> None:
        with pytest.raises(CompilationError, match="failed to execute"):
            CommandGenerator(str(tmp_path / "nope")).generate({"version": 1}, OutputConfiguration(output_dir=tmp_path / "o"))

    def test_output_dir_that_is_a_file(self, tmp_path: Path) -> None:
        gen = self._generator(tmp_path)
        out = tmp_path / "out"
        out.write_text("not a directory")
        with pytest.raises(CompilationError, match="failed to create output directory"):
            gen.generate({"version": 1}, OutputConfiguration(output_dir=out))
