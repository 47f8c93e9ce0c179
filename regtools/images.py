import hashlib
import logging
import os
import re
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any
from typing import Self
from typing import TypeGuard
from typing import cast

import httpx
from httpx_retries import Retry
from httpx_retries import RetryTransport

from regtools.models import DockerManifestList
from regtools.models import DockerManifestV2
from regtools.models import ImageConfig
from regtools.models import OCIImageIndex
from regtools.models import OCIManifest

OCI_INDEX_MEDIA_TYPE = "application/vnd.oci.image.index.v1+json"
DOCKER_MANIFEST_LIST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"

IMAGE_MANIFEST_MEDIA_TYPES = {
    OCI_MANIFEST_MEDIA_TYPE,
    DOCKER_MANIFEST_MEDIA_TYPE,
}

INDEX_MEDIA_TYPES = {
    OCI_INDEX_MEDIA_TYPE,
    DOCKER_MANIFEST_LIST_MEDIA_TYPE,
}

ACCEPT_HEADER = (
    f"{OCI_INDEX_MEDIA_TYPE}, "
    f"{DOCKER_MANIFEST_LIST_MEDIA_TYPE}, "
    f"{OCI_MANIFEST_MEDIA_TYPE}, "
    f"{DOCKER_MANIFEST_MEDIA_TYPE}"
)

logger = logging.getLogger(__name__)

AnyManifest = OCIImageIndex | DockerManifestList | OCIManifest | DockerManifestV2
AnyIndex = OCIImageIndex | DockerManifestList
AnyImageManifest = OCIManifest | DockerManifestV2


def get_parsed_type(media_type: str, parsed_json: dict[str, Any]) -> AnyManifest:
    """
    Casts a parsed JSON dict to the correct TypedDict model based on mediaType.
    """
    if media_type == OCI_INDEX_MEDIA_TYPE:
        return cast(OCIImageIndex, parsed_json)
    if media_type == DOCKER_MANIFEST_LIST_MEDIA_TYPE:
        return cast(DockerManifestList, parsed_json)
    if media_type == OCI_MANIFEST_MEDIA_TYPE:
        return cast(OCIManifest, parsed_json)
    if media_type == DOCKER_MANIFEST_MEDIA_TYPE:
        return cast(DockerManifestV2, parsed_json)

    raise ValueError(f"Unknown media type: {media_type}")


def is_multi_arch_media_type(data: AnyManifest) -> TypeGuard[AnyIndex]:
    """
    Type guard to narrow AnyManifest to AnyIndex (multi-arch types).
    """
    return data.get("mediaType", "") in INDEX_MEDIA_TYPES


def split_reference(image: str) -> tuple[str, str]:
    """
    Splits "owner/name:tag" or "owner/name@sha256:..." into the repository and
    the reference, defaulting to the latest tag
    """
    if "@" in image:
        repository, reference = image.split("@", 1)
        return repository, reference
    repository, sep, tag = image.rpartition(":")
    # A colon before the last slash belongs to a registry port, not a tag
    if not sep or "/" in tag:
        return image, "latest"
    return repository, tag


@dataclass(frozen=True, slots=True)
class CachedToken:
    """
    A cached bearer token with expiration tracking.
    """

    token: str
    expires_at: float


class BearerAuth(httpx.Auth):
    """
    Authentication handler for registry bearer tokens.  Tokens are requested
    per repository pull scope after an unauthenticated challenge, and cached
    until shortly before they expire
    """

    __slots__ = ("_client", "_token", "_tokens")

    def __init__(self, client: httpx.AsyncClient, token: str | None = None) -> None:
        self._tokens: dict[str, CachedToken] = {}
        self._client = client
        self._token = token or os.getenv("REGISTRY_TOKEN") or os.getenv("GITHUB_TOKEN")

    async def async_auth_flow(
        self,
        request: httpx.Request,
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        repo_match = re.search(r"/v2/(.+?)/(manifests|blobs)/", request.url.path)
        if not repo_match:
            raise ValueError(f"Could not determine repository from URL: {request.url.path}")

        scope = f"repository:{repo_match.group(1)}:pull"

        if (cached := self._tokens.get(scope)) and time.time() < cached.expires_at:
            request.headers["Authorization"] = f"Bearer {cached.token}"
            yield request
            return

        response: httpx.Response = yield request

        if response.status_code != httpx.codes.UNAUTHORIZED or "Www-Authenticate" not in response.headers:
            return

        auth_header = response.headers["Www-Authenticate"]
        realm_match = re.search(r'Bearer realm="([^"]+)"', auth_header)
        service_match = re.search(r'service="([^"]+)"', auth_header)

        if not realm_match or not service_match:
            raise ValueError("Invalid Www-Authenticate header")

        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        token_resp = await self._client.get(
            realm_match.group(1),
            params={"service": service_match.group(1), "scope": scope},
            headers=headers,
            auth=None,
        )
        token_resp.raise_for_status()

        token_data = token_resp.json()
        if "token" not in token_data:
            raise ValueError(f"Token response missing 'token' field: {token_data}")

        # Registries without expires_in are assumed to give 5 minute tokens,
        # refresh 30 seconds early
        expires_in = token_data.get("expires_in", 300)
        self._tokens[scope] = CachedToken(token=token_data["token"], expires_at=time.time() + expires_in - 30)
        request.headers["Authorization"] = f"Bearer {token_data['token']}"
        yield request


class RegistryClient:
    """Read only client for the manifests and blobs of an OCI registry."""

    def __init__(self, host: str = "ghcr.io", token: str | None = None) -> None:
        self.host = host
        self.base_url = f"https://{self.host}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=RetryTransport(
                retry=Retry(
                    total=5,
                    backoff_factor=0.5,
                ),
            ),
            timeout=httpx.Timeout(timeout=15.0, pool=20.0),
            follow_redirects=True,
        )
        self._client.auth = BearerAuth(self._client, token)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def get_manifest(self, repository: str, reference: str) -> AnyManifest:
        """
        Fetches a manifest or index by tag or digest.

        Args:
            repository: The name of the repository (e.g., 'owner/image').
            reference: The tag or digest (e.g., 'latest' or 'sha256:...').
        """
        manifest, _ = await self.get_manifest_with_digest(repository, reference)
        return manifest

    async def get_manifest_with_digest(self, repository: str, reference: str) -> tuple[AnyManifest, str]:
        """
        Fetches a manifest or index, along with its content digest.  The
        registry's Docker-Content-Digest header is used when present, otherwise
        the digest is computed from the response body
        """
        manifest_url = f"/v2/{repository}/manifests/{reference}"

        logger.debug(f"Requesting manifest: {self.base_url}{manifest_url}")
        resp = await self._client.get(manifest_url, headers={"Accept": ACCEPT_HEADER})
        resp.raise_for_status()

        parsed_json = resp.json()
        media_type = (resp.headers.get("Content-Type") or "").split(";")[0].strip()
        if media_type not in IMAGE_MANIFEST_MEDIA_TYPES | INDEX_MEDIA_TYPES:
            media_type = parsed_json.get("mediaType", "")

        digest = resp.headers.get("Docker-Content-Digest") or f"sha256:{hashlib.sha256(resp.content).hexdigest()}"
        return get_parsed_type(media_type, parsed_json), digest

    async def get_blob_json(self, repository: str, digest: str) -> dict[str, Any]:
        """
        Fetches a blob which holds JSON, such as an image config
        """
        blob_url = f"/v2/{repository}/blobs/{digest}"

        logger.debug(f"Requesting blob: {self.base_url}{blob_url}")
        resp = await self._client.get(blob_url)
        resp.raise_for_status()
        return resp.json()

    async def get_image_config(self, repository: str, manifest: AnyImageManifest) -> ImageConfig:
        return cast(ImageConfig, await self.get_blob_json(repository, manifest["config"]["digest"]))

    async def close(self) -> None:
        """Closes the underlying HTTP client."""
        await self._client.aclose()
