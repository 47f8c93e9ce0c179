from collections.abc import Mapping
from collections.abc import Sequence
from typing import Literal
from typing import NotRequired
from typing import TypedDict

Annotations = Mapping[str, str]

# --------------------------
# Platform (strict spec keys)
# --------------------------
Platform = TypedDict(
    "Platform",
    {
        "architecture": str,
        "os": str,
        "os.version": NotRequired[str],
        "os.features": NotRequired[Sequence[str]],
        "variant": NotRequired[str],
        "features": NotRequired[Sequence[str]],
    },
)


# --------------------------
# Descriptor
# --------------------------
class Descriptor(TypedDict, total=False):
    """
    application/vnd.oci.descriptor.v1+json
    See: https://github.com/opencontainers/image-spec/blob/main/descriptor.md

    The mediaType is the type of the referenced content
    """

    mediaType: str
    size: int
    digest: str
    urls: NotRequired[Sequence[str]]
    annotations: NotRequired[Annotations]
    platform: NotRequired[Platform]
    artifactType: NotRequired[str]


# --------------------------
# Indexes (multi-arch)
# --------------------------
class OCIImageIndex(TypedDict):
    """
    application/vnd.oci.image.index.v1+json
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.oci.image.index.v1+json"]]
    manifests: Sequence[Descriptor]
    annotations: NotRequired[Annotations]


class DockerManifestList(TypedDict):
    """
    application/vnd.docker.distribution.manifest.list.v2+json
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.docker.distribution.manifest.list.v2+json"]]
    manifests: Sequence[Descriptor]
    annotations: NotRequired[Annotations]


# --------------------------
# Single platform manifests
# --------------------------
class OCIManifest(TypedDict):
    """
    application/vnd.oci.image.manifest.v1+json
    See: https://github.com/opencontainers/image-spec/blob/main/manifest.md
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.oci.image.manifest.v1+json"]]
    config: Descriptor
    layers: Sequence[Descriptor]
    annotations: NotRequired[Annotations]


class DockerManifestV2(TypedDict):
    """
    application/vnd.docker.distribution.manifest.v2+json
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.docker.distribution.manifest.v2+json"]]
    config: Descriptor
    layers: Sequence[Descriptor]


# --------------------------
# Image config
# --------------------------
class ImageConfig(TypedDict):
    """
    application/vnd.oci.image.config.v1+json, only the platform fields
    See: https://github.com/opencontainers/image-spec/blob/main/config.md
    """

    architecture: str
    os: str
    variant: NotRequired[str]
