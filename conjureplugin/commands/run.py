"""Generate or verify Conjure output for every configured project.

Projects are processed one at a time in configured order. Any failure to
obtain IR, parse it or generate output aborts the invocation immediately.
In verify mode, drift between freshly generated output and the files on disk
is collected per project and reported once every project has been checked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from conjureplugin.core.checksums import ChecksumsDiff, checksum_on_disk_files, checksum_rendered_files
from conjureplugin.core.errors import ChecksumError, CompilationError, VerifyFailedError
from conjureplugin.generator import (
    ConjureDefinition,
    Generator,
    OutputConfiguration,
    definition_from_ir_bytes,
)
from conjureplugin.params import ConjureProjectParam, ConjureProjectParams

logger = logging.getLogger(__name__)

INDENT = "  "


@dataclass(frozen=True)
class VerifyFailure:
    index: int
    key: str
    diff: ChecksumsDiff


@dataclass
class VerifyReport:
    failures: list[VerifyFailure] = field(default_factory=list)

    def add(self, index: int, key: str, diff: ChecksumsDiff) -> None:
        self.failures.append(VerifyFailure(index=index, key=key, diff=diff))

    @property
    def failed_indices(self) -> list[int]:
        return [f.index for f in self.failures]

    @property
    def failed_keys(self) -> list[str]:
        return [f.key for f in self.failures]

    def __bool__(self) -> bool:
        return bool(self.failures)

    def render(self) -> str:
        lines = [f"Conjure output differs from what currently exists: [{', '.join(str(i) for i in self.failed_indices)}]"]
        for f in sorted(self.failures, key=lambda x: x.index):
            lines.append(f"{INDENT}{f.index} ({f.key}):")
            for diff_line in str(f.diff).split("\n"):
                lines.append(f"{INDENT * 2}{diff_line}")
        return "\n".join(lines) + "\n"


def conjure_definition_from_param(param: ConjureProjectParam) -> ConjureDefinition:
    return definition_from_ir_bytes(param.ir_provider.ir_bytes())


def diff_on_disk(
    definition: ConjureDefinition,
    project_dir: Path,
    conf: OutputConfiguration,
    generator: Generator,
) -> ChecksumsDiff:
    """Generate output in memory and compare it against the files on disk."""

    try:
        files = generator.generate_output_files(definition, conf)
    except CompilationError as e:
        raise CompilationError(f"conjure failed: {e}") from e
    try:
        original = checksum_on_disk_files(files, project_dir)
    except ChecksumError as e:
        raise ChecksumError(f"failed to compute on-disk checksums: {e}") from e
    try:
        updated = checksum_rendered_files(files, project_dir)
    except ChecksumError as e:
        raise ChecksumError(f"failed to compute generated checksums: {e}") from e
    return original.diff(updated)


def run(
    params: ConjureProjectParams,
    *,
    verify: bool,
    project_dir: Path,
    stdout: IO[str],
    generator: Generator,
) -> VerifyReport:
    """Generate (or, with verify, check) output for all projects.

    Returns the (empty) VerifyReport on success. When verify finds drift the
    report is written to stdout and VerifyFailedError is raised.
    """

    report = VerifyReport()
    for index, (key, param) in enumerate(params.items()):
        logger.info("%s project %s", "verifying" if verify else "generating", key)
        definition = conjure_definition_from_param(param)
        conf = OutputConfiguration(output_dir=project_dir / param.output_dir, generate_server=param.server)
        if verify:
            diff = diff_on_disk(definition, project_dir, conf, generator)
            if diff:
                logger.debug("project %s differs in %d file(s)", key, len(diff))
                report.add(index, key, diff)
        else:
            generator.generate(definition, conf)

    if verify and report:
        stdout.write(report.render())
        raise VerifyFailedError(report)
    return report
