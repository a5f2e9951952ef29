"""Conjure YAML -> IR compilation through the conjure CLI.

The CLI distribution is unpacked once into a cache directory shared by every
invocation on the machine and reused afterwards.
"""

from __future__ import annotations

import io
import json
import logging
import shutil
import subprocess
import sys
import tarfile
import tempfile
from pathlib import Path
from typing import Any, Callable

import requests

from conjureplugin.core.errors import AcquisitionError, CompilationError

logger = logging.getLogger(__name__)

CONJURE_VERSION = "4.9.0"
DEFAULT_DOWNLOAD_URL = "https://repo1.maven.org/maven2/com/palantir/conjure/conjure/{version}/conjure-{version}.tgz"
DEFAULT_CACHE_DIR = Path(tempfile.gettempdir()) / "_conjureircli"

EXTENSIONS_FLAG = "--extensions"


def download_archive(url: str) -> bytes:
    try:
        resp = requests.get(url, timeout=300)
    except requests.RequestException as e:
        raise AcquisitionError(f"failed to download {url}: {e}") from e
    if resp.status_code != 200:
        raise AcquisitionError(f"expected response status 200 when downloading {url}, but got {resp.status_code}")
    return resp.content


def check_cli_exists(cli_path: Path) -> None:
    """Raise ValueError unless cli_path is a regular, non-empty file."""

    if not cli_path.exists():
        raise ValueError(f"{cli_path} does not exist")
    if not cli_path.is_file():
        raise ValueError(f"{cli_path} is not a regular file")
    if cli_path.stat().st_size == 0:
        raise ValueError(f"{cli_path} is empty")


class ConjureCompiler:
    def __init__(
        self,
        *,
        cache_dir: Path = DEFAULT_CACHE_DIR,
        version: str = CONJURE_VERSION,
        download_url: str = DEFAULT_DOWNLOAD_URL,
        fetch: Callable[[str], bytes] = download_archive,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.version = version
        self.download_url = download_url
        self.fetch = fetch

    @property
    def archive_dir(self) -> Path:
        return self.cache_dir / f"conjure-{self.version}"

    @property
    def cli_path(self) -> Path:
        if not (sys.platform.startswith("linux") or sys.platform == "darwin"):
            raise CompilationError(f"OS {sys.platform} not supported")
        return self.archive_dir / "bin" / "conjure"

    def ensure_cli_exists(self) -> Path:
        cli_path = self.cli_path
        try:
            check_cli_exists(cli_path)
            return cli_path
        except ValueError:
            pass

        # Missing or malformed: clear any previous partial install before unpacking.
        shutil.rmtree(self.archive_dir, ignore_errors=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        url = self.download_url.format(version=self.version)
        logger.info("downloading conjure %s from %s", self.version, url)
        archive = self.fetch(url)
        try:
            with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tf:
                tf.extractall(self.cache_dir, filter="data")
        except (tarfile.TarError, OSError) as e:
            raise AcquisitionError(f"failed to unpack conjure CLI archive from {url}: {e}") from e

        try:
            check_cli_exists(cli_path)
        except ValueError as e:
            raise AcquisitionError(f"failed to stat conjure CLI after unpacking: {e}") from e
        return cli_path

    def compile(self, in_path: Path, *, extensions: dict[str, Any] | None = None) -> bytes:
        """Compile a Conjure YAML file or directory to IR bytes."""

        cli_path = self.ensure_cli_exists()
        with tempfile.TemporaryDirectory(prefix="conjure-compile-") as tmp:
            out_path = Path(tmp) / "out.json"
            argv = [str(cli_path), "compile", str(in_path), str(out_path)]
            if extensions:
                argv.extend([EXTENSIONS_FLAG, json.dumps(extensions, sort_keys=True)])
            logger.debug("compiling %s", in_path)
            try:
                p = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
            except OSError as e:
                raise CompilationError(f"failed to execute {argv}: {e}") from e
            if p.returncode != 0:
                raise CompilationError(f"failed to execute {argv}\nOutput:\n{p.stdout}")
            try:
                return out_path.read_bytes()
            except OSError as e:
                raise CompilationError(f"conjure did not produce IR output for {in_path}: {e}") from e

    def yaml_to_ir(self, yaml_bytes: bytes) -> bytes:
        with tempfile.TemporaryDirectory(prefix="conjure-yml-") as tmp:
            in_path = Path(tmp) / "in.yml"
            in_path.write_bytes(yaml_bytes)
            return self.compile(in_path)
