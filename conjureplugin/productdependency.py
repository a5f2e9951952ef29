"""Recommended product dependencies attached to generated IR.

Each of the three version fields of a ProductDependencyParam is a small text
template. The only value exposed to templates is the enclosing project's
version:

    {{ProjectVersion}}        the full version string, e.g. "1.2.3-4-gabcdef0"
    {{ProjectVersion.Major}}  "1"
    {{ProjectVersion.Minor}}  "2"
    {{ProjectVersion.Patch}}  "3"

Major/Minor/Patch require the version to start with ``X.Y.Z``; a placeholder
version such as "unspecified" makes them fail. After rendering, minimum and
recommended versions must be SLS versions and the maximum version must be an
SLS version matcher.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from conjureplugin.core.errors import TemplateError, VersionError
from conjureplugin.core.slsversion import validate_sls_matcher, validate_sls_version

logger = logging.getLogger(__name__)

# No trailing '$' so that snapshot versions ("1.0.0-1-gaaaaaaa") still expose their parts.
_ORDERABLE_VERSION_RE = re.compile(r"^([0-9]+)\.([0-9]+)\.([0-9]+)")

_ACTION_RE = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_PROJECT_VERSION_FUNC = "ProjectVersion"
_PART_FIELDS = ("Major", "Minor", "Patch")


class VersionProvider(Protocol):
    def version(self) -> str: ...


class StaticVersionProvider:
    def __init__(self, version: str) -> None:
        self._version = version

    def version(self) -> str:
        return self._version


class CachedVersionProvider:
    """Defers a version lookup until a template first asks for it."""

    def __init__(self, lookup: Callable[[], str]) -> None:
        self._lookup = lookup
        self._version: str | None = None

    def version(self) -> str:
        if self._version is None:
            self._version = self._lookup()
        return self._version


class TemplateProjectVersion(str):
    def major(self) -> str:
        return self._part_at(0)

    def minor(self) -> str:
        return self._part_at(1)

    def patch(self) -> str:
        return self._part_at(2)

    def _part_at(self, pos: int) -> str:
        m = _ORDERABLE_VERSION_RE.match(self)
        if m is None:
            raise TemplateError(f"version {str(self)!r} did not match regular expression for an orderable version")
        if pos >= 3:
            raise TemplateError(f"requested part at index {pos}, but valid orderable versions only have 3 parts")
        return m.group(pos + 1)


def render_version_template(template: str, version_provider: VersionProvider) -> str:
    """Render a version template against the project version.

    Raises TemplateError for unterminated actions, unknown functions or fields,
    and for failures while resolving the project version.
    """

    if not isinstance(template, str):
        raise TemplateError(f"version template must be a string, got {type(template).__name__}")

    out: list[str] = []
    pos = 0
    for m in _ACTION_RE.finditer(template):
        out.append(template[pos:m.start()])
        out.append(_eval_action(template, m.group(1), version_provider))
        pos = m.end()
    tail = template[pos:]
    if "{{" in tail:
        raise TemplateError(f"template {template!r}: unclosed action at offset {pos + tail.index('{{')}")
    out.append(tail)
    return "".join(out)


def _eval_action(template: str, action: str, version_provider: VersionProvider) -> str:
    expr = action.strip()
    if not expr:
        raise TemplateError(f"template {template!r}: missing value for command")
    name, _, field_name = expr.partition(".")
    if name != _PROJECT_VERSION_FUNC:
        raise TemplateError(f"template {template!r}: function {name!r} not defined")

    try:
        project_version = TemplateProjectVersion(version_provider.version())
    except VersionError as e:
        raise TemplateError(f"template {template!r}: error calling {_PROJECT_VERSION_FUNC}: {e}") from e

    if not field_name:
        return str(project_version)
    if field_name not in _PART_FIELDS:
        raise TemplateError(f"template {template!r}: can't evaluate field {field_name} in {_PROJECT_VERSION_FUNC}")
    try:
        return getattr(project_version, field_name.lower())()
    except TemplateError as e:
        raise TemplateError(f"template {template!r}: error calling {field_name}: {e}") from e


@dataclass(frozen=True)
class RenderedProductDependency:
    product_group: str
    product_name: str
    minimum_version: str
    maximum_version: str
    recommended_version: str = ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "product-group": self.product_group,
            "product-name": self.product_name,
            "minimum-version": self.minimum_version,
            "maximum-version": self.maximum_version,
        }
        if self.recommended_version:
            d["recommended-version"] = self.recommended_version
        return d


@dataclass(frozen=True)
class ProductDependencyParam:
    product_group: str
    product_name: str
    minimum_version: str
    maximum_version: str
    recommended_version: str = ""

    def render(self, version_provider: VersionProvider) -> RenderedProductDependency:
        minimum = render_version_template(self.minimum_version, version_provider)
        validate_sls_version(minimum, field="minimum-version")

        maximum = render_version_template(self.maximum_version, version_provider)
        validate_sls_matcher(maximum, field="maximum-version")

        recommended = render_version_template(self.recommended_version, version_provider)
        if recommended:
            validate_sls_version(recommended, field="recommended-version")

        return RenderedProductDependency(
            product_group=self.product_group,
            product_name=self.product_name,
            minimum_version=minimum,
            maximum_version=maximum,
            recommended_version=recommended,
        )


class RenderedProductDependencyProvider:
    def __init__(self, params: list[ProductDependencyParam], version_provider: VersionProvider) -> None:
        self.params = list(params)
        self.version_provider = version_provider

    def rendered_product_dependencies(self) -> list[RenderedProductDependency]:
        rendered = [p.render(self.version_provider) for p in self.params]
        logger.debug("rendered %d product dependencies", len(rendered))
        return rendered
