"""Artifactory publisher for IR artifacts.

Artifacts are laid out Maven style:

    <url>/artifactory/<repository>/<group path>/<product>/<version>/<product>-<version>.conjure.json

followed by a minimal POM describing the artifact unless ``no_pom`` is set.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Callable

import requests

from conjureplugin.core.errors import PublishError

logger = logging.getLogger(__name__)

IR_EXTENSION = "conjure.json"
DEFAULT_UPLOAD_TIMEOUT = 300


@dataclass(frozen=True)
class PublisherFlag:
    name: str
    description: str
    is_bool: bool = False


GROUP_ID_FLAG = PublisherFlag("group-id", "the Maven group ID of the published artifact")
URL_FLAG = PublisherFlag("url", "URL of the Artifactory instance (e.g. https://artifactory.example.com)")
USERNAME_FLAG = PublisherFlag("username", "username for HTTP basic authentication")
PASSWORD_FLAG = PublisherFlag("password", "password for HTTP basic authentication")
REPOSITORY_FLAG = PublisherFlag("repository", "Artifactory repository to publish to")
NO_POM_FLAG = PublisherFlag("no-pom", "do not generate and upload a POM file", is_bool=True)

PUBLISHER_FLAGS = (GROUP_ID_FLAG, URL_FLAG, USERNAME_FLAG, PASSWORD_FLAG, REPOSITORY_FLAG, NO_POM_FLAG)


@dataclass(frozen=True)
class ArtifactoryConnectionInfo:
    url: str
    repository: str
    group_id: str
    username: str | None = None
    password: str | None = None
    no_pom: bool = False

    @classmethod
    def from_flags(cls, flag_vals: dict[str, object]) -> "ArtifactoryConnectionInfo":
        """Build connection info from explicitly provided publisher flag values."""

        def required(flag: PublisherFlag) -> str:
            val = flag_vals.get(flag.name)
            if not isinstance(val, str) or not val:
                raise PublishError(f"flag --{flag.name} must be specified")
            return val

        def optional(flag: PublisherFlag) -> str | None:
            val = flag_vals.get(flag.name)
            return str(val) if val else None

        return cls(
            url=required(URL_FLAG).rstrip("/"),
            repository=required(REPOSITORY_FLAG),
            group_id=required(GROUP_ID_FLAG),
            username=optional(USERNAME_FLAG),
            password=optional(PASSWORD_FLAG),
            no_pom=bool(flag_vals.get(NO_POM_FLAG.name, False)),
        )

    def auth(self) -> tuple[str, str] | None:
        if self.username is None:
            return None
        return (self.username, self.password or "")

    def artifact_dir_url(self, product_id: str, version: str) -> str:
        group_path = self.group_id.replace(".", "/")
        return f"{self.url}/artifactory/{self.repository}/{group_path}/{product_id}/{version}"


def artifact_name(product_id: str, version: str) -> str:
    return f"{product_id}-{version}.{IR_EXTENSION}"


def render_pom(group_id: str, product_id: str, version: str, packaging: str = "json") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<project xmlns="http://maven.apache.org/POM/4.0.0" '
        'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        'xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 http://maven.apache.org/xsd/maven-4.0.0.xsd">\n'
        "<modelVersion>4.0.0</modelVersion>\n"
        f"<groupId>{group_id}</groupId>\n"
        f"<artifactId>{product_id}</artifactId>\n"
        f"<version>{version}</version>\n"
        f"<packaging>{packaging}</packaging>\n"
        "</project>\n"
    )


def _checksum_headers(data: bytes) -> dict[str, str]:
    return {
        "X-Checksum-Sha1": hashlib.sha1(data).hexdigest(),
        "X-Checksum-Sha256": hashlib.sha256(data).hexdigest(),
        "X-Checksum": hashlib.md5(data).hexdigest(),
    }


class ArtifactoryPublisher:
    def __init__(
        self,
        *,
        put: Callable[..., requests.Response] | None = None,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT,
    ) -> None:
        self._put = put if put is not None else requests.put
        self.timeout = timeout

    def flags(self) -> tuple[PublisherFlag, ...]:
        return PUBLISHER_FLAGS

    def _upload(self, conn: ArtifactoryConnectionInfo, data: bytes, dest_url: str) -> None:
        try:
            resp = self._put(
                dest_url,
                data=data,
                auth=conn.auth(),
                headers=_checksum_headers(data),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PublishError(f"failed to upload to {dest_url}: {e}") from e
        if not 200 <= resp.status_code < 300:
            raise PublishError(f"uploading to {dest_url} resulted in response {resp.status_code}: {resp.text}")

    def run_publish(
        self,
        *,
        artifact_path: Path,
        product_id: str,
        version: str,
        flag_vals: dict[str, object],
        dry_run: bool,
        stdout: IO[str],
    ) -> list[str]:
        """Upload artifact_path (and its POM) and return the destination URLs.

        In dry-run mode nothing is sent; each line describes the upload that
        would have happened.
        """

        conn = ArtifactoryConnectionInfo.from_flags(flag_vals)
        base_url = conn.artifact_dir_url(product_id, version)
        prefix = "[DRY RUN] " if dry_run else ""
        uploaded: list[str] = []

        artifact_url = f"{base_url}/{artifact_name(product_id, version)}"
        print(f"{prefix}Uploading {artifact_path} to {artifact_url}", file=stdout)
        if not dry_run:
            try:
                data = artifact_path.read_bytes()
            except OSError as e:
                raise PublishError(f"failed to read artifact {artifact_path}: {e}") from e
            self._upload(conn, data, artifact_url)
        uploaded.append(artifact_url)

        if not conn.no_pom:
            pom_url = f"{base_url}/{product_id}-{version}.pom"
            print(f"{prefix}Uploading to {pom_url}", file=stdout)
            if not dry_run:
                pom = render_pom(conn.group_id, product_id, version).encode("utf-8")
                self._upload(conn, pom, pom_url)
            uploaded.append(pom_url)

        logger.info("published %s %s (%d file(s), dry_run=%s)", product_id, version, len(uploaded), dry_run)
        return uploaded
