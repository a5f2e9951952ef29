from __future__ import annotations

from typing import Any


class ConjurePluginError(Exception):
    """Base class for every failure raised by conjure-plugin."""


class ConfigError(ConjurePluginError):
    """Configuration is malformed, names an unknown locator type or an empty locator."""


class AcquisitionError(ConjurePluginError):
    """IR could not be obtained (local I/O, transport failure, non-200 response)."""


class CompilationError(ConjurePluginError):
    """YAML -> IR compilation, IR parsing or output generation failed."""


class ChecksumError(ConjurePluginError):
    """A file could not be checksummed for a reason other than being absent."""


class TemplateError(ConjurePluginError):
    """A product dependency version template could not be parsed or executed."""


class VersionValidationError(ConjurePluginError):
    """A rendered version string does not satisfy the required SLS grammar."""

    def __init__(self, field: str, value: str, grammar: str) -> None:
        self.field = field
        self.value = value
        self.grammar = grammar
        super().__init__(f"{field}: {value!r} is not a valid {grammar}")


class VersionError(ConjurePluginError):
    """Project version could not be determined from version control."""


class PublishError(ConjurePluginError):
    """Artifact packaging or upload failed."""


class VerifyFailedError(ConjurePluginError):
    """Raised after a verify sweep when at least one project drifted.

    The detailed report is written to the output stream; this error only
    carries it for programmatic callers.
    """

    def __init__(self, report: Any) -> None:
        self.report = report
        super().__init__("conjure verify failed")
