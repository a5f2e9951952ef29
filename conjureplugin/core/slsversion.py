from __future__ import annotations

import re

from conjureplugin.core.errors import VersionValidationError


_SLS_VERSION_RELEASE_RE = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+$")
_SLS_VERSION_RELEASE_SNAPSHOT_RE = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+-[0-9]+-g[a-f0-9]+$")
_SLS_VERSION_RC_RE = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+-rc[0-9]+$")
_SLS_VERSION_RC_SNAPSHOT_RE = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+-rc[0-9]+-[0-9]+-g[a-f0-9]+$")
_SLS_VERSION_MATCHER_RE = re.compile(r"^((x\.x\.x)|([0-9]+\.x\.x)|([0-9]+\.[0-9]+\.x)|([0-9]+\.[0-9]+\.[0-9]+))$")

SLS_VERSION_GRAMMAR = "SLS version"
SLS_MATCHER_GRAMMAR = "SLS version matcher"


def is_valid_sls_version(s: str) -> bool:
    # fullmatch: '$' alone would accept a trailing newline.
    return any(
        r.fullmatch(s) is not None
        for r in (
            _SLS_VERSION_RELEASE_RE,
            _SLS_VERSION_RELEASE_SNAPSHOT_RE,
            _SLS_VERSION_RC_RE,
            _SLS_VERSION_RC_SNAPSHOT_RE,
        )
    )


def is_valid_sls_matcher(s: str) -> bool:
    return _SLS_VERSION_MATCHER_RE.fullmatch(s) is not None


def validate_sls_version(s: str, *, field: str) -> None:
    if not is_valid_sls_version(s):
        raise VersionValidationError(field, s, SLS_VERSION_GRAMMAR)


def validate_sls_matcher(s: str, *, field: str) -> None:
    if not is_valid_sls_matcher(s):
        raise VersionValidationError(field, s, SLS_MATCHER_GRAMMAR)
