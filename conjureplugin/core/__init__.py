"""Lowest-level conjure-plugin utilities.

Dependency direction rules:
- conjureplugin.core must not import conjureplugin.commands or conjureplugin.cli
"""

from conjureplugin.core.checksums import (
    ChecksumSet,
    ChecksumsDiff,
    DiffEntry,
    DiffKind,
    FileChecksumInfo,
    checksum_on_disk_files,
    checksum_rendered_files,
)
from conjureplugin.core.errors import (
    AcquisitionError,
    ChecksumError,
    CompilationError,
    ConfigError,
    ConjurePluginError,
    PublishError,
    TemplateError,
    VerifyFailedError,
    VersionError,
    VersionValidationError,
)
from conjureplugin.core.hash import sha256_bytes, sha256_file
from conjureplugin.core.jail import project_relpath

__all__ = [
    "AcquisitionError",
    "ChecksumError",
    "ChecksumSet",
    "ChecksumsDiff",
    "CompilationError",
    "ConfigError",
    "ConjurePluginError",
    "DiffEntry",
    "DiffKind",
    "FileChecksumInfo",
    "PublishError",
    "TemplateError",
    "VerifyFailedError",
    "VersionError",
    "VersionValidationError",
    "checksum_on_disk_files",
    "checksum_rendered_files",
    "project_relpath",
    "sha256_bytes",
    "sha256_file",
]
