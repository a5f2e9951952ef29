"""Plugin configuration (YAML) and its resolution into project params.

Example::

    projects:
      api:
        output-dir: internal/generated/conjure
        ir-locator: conjure/api.yml
      remote-api:
        output-dir: internal/generated/remote
        ir-locator:
          type: remote
          locator: https://example.com/ir.json
        publish: false
      pinned:
        output-dir: internal/generated/pinned
        ir-locator:
          type: yaml
          locator: conjure/pinned
          product-dependencies:
            - product-group: com.example
              product-name: pinned-service
              minimum-version: "{{ProjectVersion}}"
              maximum-version: "{{ProjectVersion.Major}}.x.x"
        server: true
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from conjureplugin.compiler import ConjureCompiler
from conjureplugin.core.errors import ConfigError
from conjureplugin.core.jail import resolve_under
from conjureplugin.irprovider import HTTPIRProvider, IRProvider, LocalFileIRProvider, LocalYAMLIRProvider
from conjureplugin.params import ConjureProjectParam, ConjureProjectParams
from conjureplugin.productdependency import (
    CachedVersionProvider,
    ProductDependencyParam,
    RenderedProductDependencyProvider,
    VersionProvider,
)
from conjureplugin.versioner import git_project_version

logger = logging.getLogger(__name__)

CONFIG_VERSION = 1

LOCATOR_TYPE_AUTO = "auto"
LOCATOR_TYPE_REMOTE = "remote"
LOCATOR_TYPE_YAML = "yaml"
LOCATOR_TYPE_IR_FILE = "ir-file"
LOCATOR_TYPES = (LOCATOR_TYPE_AUTO, LOCATOR_TYPE_REMOTE, LOCATOR_TYPE_YAML, LOCATOR_TYPE_IR_FILE)

_TOP_LEVEL_KEYS = frozenset({"version", "projects"})
_PROJECT_KEYS = frozenset({"output-dir", "ir-locator", "publish", "server"})
_LOCATOR_KEYS = frozenset({"type", "locator", "product-dependencies"})
_PRODUCT_DEPENDENCY_KEYS = frozenset(
    {"product-group", "product-name", "minimum-version", "maximum-version", "recommended-version"}
)


@dataclass(frozen=True)
class ProductDependencyConfig:
    product_group: str
    product_name: str
    minimum_version: str
    maximum_version: str
    recommended_version: str = ""

    def to_param(self) -> ProductDependencyParam:
        return ProductDependencyParam(
            product_group=self.product_group,
            product_name=self.product_name,
            minimum_version=self.minimum_version,
            maximum_version=self.maximum_version,
            recommended_version=self.recommended_version,
        )


@dataclass(frozen=True)
class IRLocatorConfig:
    locator: str
    type: str = LOCATOR_TYPE_AUTO
    product_dependencies: tuple[ProductDependencyConfig, ...] = ()

    def resolved_type(self, base_dir: Path | None = None) -> str:
        """Return the concrete locator type, inferring it when type is auto.

        A locator with a URL scheme is remote. Otherwise a .yml/.yaml suffix
        means YAML and a .json suffix means an IR file. Any other local path is
        YAML (a directory of definitions) unless it exists as a regular file.
        """

        if not self.locator:
            raise ConfigError("locator cannot be empty")
        if self.type and self.type != LOCATOR_TYPE_AUTO:
            if self.type not in LOCATOR_TYPES:
                raise ConfigError(f"unknown locator type: {self.type}")
            return self.type

        if _has_url_scheme(self.locator):
            return LOCATOR_TYPE_REMOTE
        lowered = self.locator.lower()
        if lowered.endswith(".yml") or lowered.endswith(".yaml"):
            return LOCATOR_TYPE_YAML
        if lowered.endswith(".json"):
            return LOCATOR_TYPE_IR_FILE
        candidate = resolve_under(base_dir, self.locator)
        if candidate.exists() and not candidate.is_dir():
            return LOCATOR_TYPE_IR_FILE
        return LOCATOR_TYPE_YAML

    def to_ir_provider(
        self,
        *,
        base_dir: Path | None = None,
        version_provider: VersionProvider | None = None,
        compiler: ConjureCompiler | None = None,
    ) -> IRProvider:
        locator_type = self.resolved_type(base_dir)
        if locator_type == LOCATOR_TYPE_REMOTE:
            return HTTPIRProvider(self.locator)
        if locator_type == LOCATOR_TYPE_IR_FILE:
            return LocalFileIRProvider(resolve_under(base_dir, self.locator))

        dep_provider = None
        if self.product_dependencies:
            if version_provider is None:
                raise ConfigError("product dependencies require a project version provider")
            dep_provider = RenderedProductDependencyProvider(
                [d.to_param() for d in self.product_dependencies],
                version_provider,
            )
        return LocalYAMLIRProvider(resolve_under(base_dir, self.locator), dep_provider, compiler=compiler)


@dataclass(frozen=True)
class SingleConjureConfig:
    output_dir: str
    ir_locator: IRLocatorConfig
    # None means "not specified": YAML sources publish, other sources do not.
    publish: bool | None = None
    server: bool = False


@dataclass(frozen=True)
class ConjurePluginConfig:
    project_configs: dict[str, SingleConjureConfig] = field(default_factory=dict)

    def to_params(
        self,
        project_dir: Path | None = None,
        *,
        version_provider: VersionProvider | None = None,
        compiler: ConjureCompiler | None = None,
    ) -> ConjureProjectParams:
        """Resolve every project's locator into an IR provider.

        Relative local locators are resolved against project_dir when given.
        The project version for product dependency templates is looked up from
        git at most once, and only when a template is actually rendered.
        """

        if version_provider is None:
            vp_dir = project_dir if project_dir is not None else Path.cwd()
            version_provider = CachedVersionProvider(lambda: git_project_version(vp_dir))

        keys = sorted(self.project_configs)
        params: dict[str, ConjureProjectParam] = {}
        for key in keys:
            cfg = self.project_configs[key]
            try:
                provider = cfg.ir_locator.to_ir_provider(
                    base_dir=project_dir,
                    version_provider=version_provider,
                    compiler=compiler,
                )
            except ConfigError as e:
                raise ConfigError(f"failed to convert configuration for {key} to provider: {e}") from e

            publish = cfg.publish if cfg.publish is not None else provider.generated_from_yaml()
            params[key] = ConjureProjectParam(
                output_dir=cfg.output_dir,
                ir_provider=provider,
                publish=publish,
                server=cfg.server,
            )
            logger.debug("project %s: provider=%r publish=%s server=%s", key, provider, publish, cfg.server)
        return ConjureProjectParams(sorted_keys=tuple(keys), params=params)


def _has_url_scheme(locator: str) -> bool:
    try:
        parsed = urlparse(locator)
    except ValueError:
        return False
    # Single letters are Windows drive letters, not schemes.
    return bool(parsed.scheme) and len(parsed.scheme) > 1


def _check_keys(obj: dict[str, Any], allowed: frozenset[str], where: str) -> None:
    unknown = sorted(str(k) for k in obj if k not in allowed)
    if unknown:
        raise ConfigError(f"{where}: unknown field(s): {', '.join(unknown)}")


def _require_str(obj: dict[str, Any], key: str, where: str, *, default: str | None = None) -> str:
    val = obj.get(key, default)
    if val is None:
        raise ConfigError(f"{where}: {key} is required")
    if not isinstance(val, str):
        raise ConfigError(f"{where}: {key} must be a string")
    return val


def _optional_bool(obj: dict[str, Any], key: str, where: str) -> bool | None:
    val = obj.get(key)
    if val is None:
        return None
    if not isinstance(val, bool):
        raise ConfigError(f"{where}: {key} must be a boolean")
    return val


def _parse_product_dependency(raw: Any, where: str) -> ProductDependencyConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: product dependency must be a mapping")
    _check_keys(raw, _PRODUCT_DEPENDENCY_KEYS, where)
    return ProductDependencyConfig(
        product_group=_require_str(raw, "product-group", where),
        product_name=_require_str(raw, "product-name", where),
        minimum_version=_require_str(raw, "minimum-version", where),
        maximum_version=_require_str(raw, "maximum-version", where),
        recommended_version=_require_str(raw, "recommended-version", where, default=""),
    )


def _parse_locator(raw: Any, where: str) -> IRLocatorConfig:
    # String shorthand: the string is the locator and the type is inferred.
    if isinstance(raw, str):
        return IRLocatorConfig(locator=raw, type=LOCATOR_TYPE_AUTO)
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: ir-locator must be a string or a mapping")
    _check_keys(raw, _LOCATOR_KEYS, where)
    deps_raw = raw.get("product-dependencies") or []
    if not isinstance(deps_raw, list):
        raise ConfigError(f"{where}: product-dependencies must be a list")
    deps = tuple(_parse_product_dependency(d, f"{where}.product-dependencies[{i}]") for i, d in enumerate(deps_raw))
    return IRLocatorConfig(
        locator=_require_str(raw, "locator", where, default=""),
        type=_require_str(raw, "type", where, default=LOCATOR_TYPE_AUTO) or LOCATOR_TYPE_AUTO,
        product_dependencies=deps,
    )


def config_from_obj(obj: Any) -> ConjurePluginConfig:
    if obj is None:
        return ConjurePluginConfig()
    if not isinstance(obj, dict):
        raise ConfigError("configuration must be a mapping")
    _check_keys(obj, _TOP_LEVEL_KEYS, "configuration")

    version = obj.get("version")
    if version is not None and str(version) != str(CONFIG_VERSION):
        raise ConfigError(f"unsupported configuration version: {version}")

    projects_raw = obj.get("projects") or {}
    if not isinstance(projects_raw, dict):
        raise ConfigError("projects must be a mapping")

    projects: dict[str, SingleConjureConfig] = {}
    for key, raw in projects_raw.items():
        where = f"projects.{key}"
        if not isinstance(key, str) or not key:
            raise ConfigError(f"{where}: project key must be a non-empty string")
        if not isinstance(raw, dict):
            raise ConfigError(f"{where}: project configuration must be a mapping")
        _check_keys(raw, _PROJECT_KEYS, where)
        if "ir-locator" not in raw:
            raise ConfigError(f"{where}: ir-locator is required")
        projects[key] = SingleConjureConfig(
            output_dir=_require_str(raw, "output-dir", where, default=""),
            ir_locator=_parse_locator(raw["ir-locator"], f"{where}.ir-locator"),
            publish=_optional_bool(raw, "publish", where),
            server=bool(_optional_bool(raw, "server", where) or False),
        )
    return ConjurePluginConfig(project_configs=projects)


def read_config_from_bytes(data: bytes) -> ConjurePluginConfig:
    try:
        obj = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse configuration: {e}") from e
    return config_from_obj(obj)


def read_config_from_file(path: str | os.PathLike[str]) -> ConjurePluginConfig:
    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise ConfigError(f"failed to read configuration file {p}: {e}") from e
    return read_config_from_bytes(data)
