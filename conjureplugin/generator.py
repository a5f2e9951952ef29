"""Adapter over an external Conjure generator executable.

Generators follow the standard Conjure generator CLI:

    <generator> generate <input-ir.json> <output-dir> [options]

``generate`` writes straight into the project's output directory. For verify,
``generate_output_files`` runs the generator into a scratch directory and maps
every produced file back onto the output directory, so the target tree is
never touched.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

from conjureplugin.core.errors import CompilationError

logger = logging.getLogger(__name__)

ConjureDefinition = dict[str, Any]


@dataclass(frozen=True)
class OutputConfiguration:
    output_dir: Path
    generate_server: bool = False


class OutputFile:
    """A generated file: where it belongs and how to produce its bytes."""

    def __init__(self, abs_path: Path, renderer: Callable[[], bytes]) -> None:
        self._abs_path = Path(abs_path)
        self._renderer = renderer

    @property
    def abs_path(self) -> Path:
        return self._abs_path

    def render(self) -> bytes:
        return self._renderer()

    def __repr__(self) -> str:
        return f"OutputFile({str(self._abs_path)!r})"


class Generator(Protocol):
    def generate(self, definition: ConjureDefinition, conf: OutputConfiguration) -> None: ...

    def generate_output_files(self, definition: ConjureDefinition, conf: OutputConfiguration) -> list[OutputFile]: ...


def definition_from_ir_bytes(ir_bytes: bytes) -> ConjureDefinition:
    """Parse IR bytes into a ConjureDefinition (a JSON object with an integer version)."""

    try:
        obj = json.loads(ir_bytes.decode("utf-8", errors="strict"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CompilationError(f"failed to parse Conjure IR: {e}") from e
    if not isinstance(obj, dict):
        raise CompilationError("failed to parse Conjure IR: document must be a JSON object")
    ir_version = obj.get("version")
    if not isinstance(ir_version, int) or isinstance(ir_version, bool):
        raise CompilationError("failed to parse Conjure IR: missing integer 'version'")
    return obj


class CommandGenerator:
    def __init__(self, executable: str = "conjure-go", *, extra_args: list[str] | None = None) -> None:
        self.executable = executable
        self.extra_args = list(extra_args or [])

    def _argv(self, ir_path: Path, out_dir: Path, conf: OutputConfiguration) -> list[str]:
        argv = [self.executable, "generate", str(ir_path), str(out_dir)]
        if conf.generate_server:
            argv.append("--server")
        argv.extend(self.extra_args)
        return argv

    def _run(self, definition: ConjureDefinition, out_dir: Path, conf: OutputConfiguration) -> None:
        with tempfile.TemporaryDirectory(prefix="conjure-ir-") as tmp:
            ir_path = Path(tmp) / "ir.json"
            ir_path.write_text(json.dumps(definition, ensure_ascii=False), encoding="utf-8")
            argv = self._argv(ir_path, out_dir, conf)
            logger.debug("running generator: %s", " ".join(argv))
            try:
                p = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
            except OSError as e:
                raise CompilationError(f"failed to execute {argv}: {e}") from e
            if p.returncode != 0:
                raise CompilationError(f"failed to execute {argv}\nOutput:\n{p.stdout}")

    def generate(self, definition: ConjureDefinition, conf: OutputConfiguration) -> None:
        try:
            conf.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CompilationError(f"failed to create output directory {conf.output_dir}: {e}") from e
        self._run(definition, conf.output_dir, conf)

    def generate_output_files(self, definition: ConjureDefinition, conf: OutputConfiguration) -> list[OutputFile]:
        files: list[OutputFile] = []
        with tempfile.TemporaryDirectory(prefix="conjure-out-") as tmp:
            scratch = Path(tmp)
            self._run(definition, scratch, conf)
            for root, dirnames, filenames in os.walk(scratch):
                dirnames.sort()
                for name in sorted(filenames):
                    src = Path(root) / name
                    rel = src.relative_to(scratch)
                    try:
                        content = src.read_bytes()
                    except OSError as e:
                        raise CompilationError(f"failed to read generated file {rel.as_posix()}: {e}") from e
                    files.append(OutputFile(conf.output_dir / rel, _constant(content)))
        return files


def _constant(content: bytes) -> Callable[[], bytes]:
    return lambda: content
