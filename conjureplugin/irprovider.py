"""Sources of Conjure IR.

Exactly three providers exist and one is chosen per project when the
configuration is resolved: local YAML compiled through the conjure CLI, a
local pre-built IR file, or IR downloaded over HTTP(S).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import requests

from conjureplugin.compiler import ConjureCompiler
from conjureplugin.core.errors import AcquisitionError
from conjureplugin.productdependency import RenderedProductDependencyProvider

logger = logging.getLogger(__name__)

RECOMMENDED_PRODUCT_DEPENDENCIES_EXTENSION = "recommended-product-dependencies"

DEFAULT_HTTP_TIMEOUT = 60


class IRProvider(Protocol):
    def ir_bytes(self) -> bytes: ...

    def generated_from_yaml(self) -> bool: ...


class LocalYAMLIRProvider:
    """IR compiled from a Conjure YAML file or a directory of YAML files."""

    def __init__(
        self,
        path: Path,
        product_dependency_provider: RenderedProductDependencyProvider | None = None,
        *,
        compiler: ConjureCompiler | None = None,
    ) -> None:
        self.path = Path(path)
        self.product_dependency_provider = product_dependency_provider
        self.compiler = compiler if compiler is not None else ConjureCompiler()

    def extensions(self) -> dict[str, object] | None:
        if self.product_dependency_provider is None:
            return None
        rendered = self.product_dependency_provider.rendered_product_dependencies()
        if not rendered:
            return None
        return {RECOMMENDED_PRODUCT_DEPENDENCIES_EXTENSION: [d.to_dict() for d in rendered]}

    def ir_bytes(self) -> bytes:
        if not self.path.exists():
            raise AcquisitionError(f"Conjure YAML path {self.path} does not exist")
        extensions = self.extensions()
        logger.debug("compiling IR from YAML at %s", self.path)
        return self.compiler.compile(self.path, extensions=extensions)

    def generated_from_yaml(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"LocalYAMLIRProvider({str(self.path)!r})"


class LocalFileIRProvider:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def ir_bytes(self) -> bytes:
        logger.debug("reading IR from %s", self.path)
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise AcquisitionError(f"failed to read IR file {self.path}: {e}") from e

    def generated_from_yaml(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"LocalFileIRProvider({str(self.path)!r})"


class HTTPIRProvider:
    """IR downloaded with a GET request.

    TLS certificates are always verified.
    """

    def __init__(self, ir_url: str, *, session: requests.Session | None = None, timeout: float = DEFAULT_HTTP_TIMEOUT) -> None:
        self.ir_url = ir_url
        self.session = session
        self.timeout = timeout

    def ir_bytes(self) -> bytes:
        logger.debug("fetching IR from %s", self.ir_url)
        getter = self.session.get if self.session is not None else requests.get
        try:
            resp = getter(self.ir_url, timeout=self.timeout, verify=True)
        except requests.RequestException as e:
            raise AcquisitionError(f"failed to fetch IR from remote source {self.ir_url}: {e}") from e
        if resp.status_code != 200:
            raise AcquisitionError(
                f"expected response status 200 when fetching IR from remote source {self.ir_url}, "
                f"but got {resp.status_code}"
            )
        return resp.content

    def generated_from_yaml(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"HTTPIRProvider({self.ir_url!r})"
