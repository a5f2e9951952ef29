from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import IO, Callable

from conjureplugin.core.errors import PublishError
from conjureplugin.params import ConjureProjectParams
from conjureplugin.publisher import ArtifactoryPublisher, artifact_name
from conjureplugin.versioner import git_project_version

logger = logging.getLogger(__name__)


def publishable_keys(params: ConjureProjectParams) -> list[str]:
    return [key for key, param in params.items() if param.publish]


def publish(
    params: ConjureProjectParams,
    *,
    project_dir: Path,
    flag_vals: dict[str, object],
    dry_run: bool,
    stdout: IO[str],
    publisher: ArtifactoryPublisher | None = None,
    version_lookup: Callable[[Path], str] = git_project_version,
) -> list[str]:
    """Publish the IR of every publishable project and return the uploaded URLs.

    Nothing at all happens (no version lookup, no network) when no project is
    publishable. One version is resolved for the whole invocation. Each IR is
    written to a scratch directory that is removed on every exit path.
    """

    keys = publishable_keys(params)
    if not keys:
        logger.debug("no publishable projects")
        return []

    version = version_lookup(project_dir)
    logger.info("publishing %d project(s) at version %s", len(keys), version)
    if publisher is None:
        publisher = ArtifactoryPublisher()

    uploaded: list[str] = []
    with tempfile.TemporaryDirectory(prefix="conjure-publish-") as tmp:
        for key in keys:
            param = params.params[key]
            ir_path = _stage_artifact(Path(tmp), key, version, param.ir_provider.ir_bytes())

            uploaded.extend(
                publisher.run_publish(
                    artifact_path=ir_path,
                    product_id=key,
                    version=version,
                    flag_vals=flag_vals,
                    dry_run=dry_run,
                    stdout=stdout,
                )
            )
    return uploaded


def _stage_artifact(scratch: Path, key: str, version: str, ir_bytes: bytes) -> Path:
    dist_dir = scratch / f"conjure-{key}" / "out" / "dist" / key / version
    ir_path = dist_dir / artifact_name(key, version)
    try:
        dist_dir.mkdir(parents=True, exist_ok=True)
        ir_path.write_bytes(ir_bytes)
    except OSError as e:
        raise PublishError(f"failed to write IR for {key} to {ir_path}: {e}") from e
    return ir_path
