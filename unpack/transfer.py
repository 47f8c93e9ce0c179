"""
The unpack side of an image pull: resolves which snapshotter unpacks each
requested platform, then finds the image manifest for each of them.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from regtools.images import IMAGE_MANIFEST_MEDIA_TYPES
from regtools.images import RegistryClient
from regtools.images import is_multi_arch_media_type
from unpack.errors import ManifestNotFoundError
from unpack.errors import UnsupportedPlatformError
from unpack.models import MatchResult
from unpack.models import UnpackRequest
from unpack.platforms import AnyMatcher
from unpack.platforms import PlatformSpec
from unpack.platforms import any_of
from unpack.platforms import only_strict
from unpack.selector import Selector

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class UnpackPlan:
    """
    The resolved requests, in the order requested, and a matcher for every
    platform which will be unpacked
    """

    resolved: tuple[MatchResult, ...]
    matcher: AnyMatcher


@dataclass(frozen=True, slots=True)
class ResolvedUnpack:
    platform: PlatformSpec
    snapshotter: str
    digest: str


def plan_unpacks(requests: Iterable[UnpackRequest], selector: Selector) -> UnpackPlan:
    """
    Resolves every request against the selector.  The first request without
    a supported pairing fails the whole plan
    """
    resolved: list[MatchResult] = []
    for request in requests:
        result = selector.resolve(request)
        if not result:
            raise UnsupportedPlatformError(request.platform, request.snapshotter)
        logger.info(f"Unpacking {result.platform} with snapshotter {result.snapshotter}")
        resolved.append(result)

    return UnpackPlan(
        resolved=tuple(resolved),
        matcher=any_of(*(only_strict(r.platform) for r in resolved if r.platform is not None)),
    )


async def select_manifests(
    client: RegistryClient,
    repository: str,
    reference: str,
    plan: UnpackPlan,
) -> list[ResolvedUnpack]:
    """
    Finds the manifest digest to unpack for each resolved platform of the plan.

    For a multi-arch image the first descriptor in the index for the platform
    is used, skipping descriptors which are not image manifests.  A single
    platform image is used only if its config says it is for the platform.
    """
    separator = "@" if reference.startswith("sha256:") else ":"
    qualified_name = f"{client.host}/{repository}{separator}{reference}"
    root_manifest, root_digest = await client.get_manifest_with_digest(repository, reference)

    # Map each platform the plan wants to the manifest digest for it
    available: dict[PlatformSpec, str] = {}
    if is_multi_arch_media_type(root_manifest):
        for descriptor in root_manifest.get("manifests", []) or []:
            digest = descriptor.get("digest")
            platform_data = descriptor.get("platform")
            if not digest or not platform_data or descriptor.get("mediaType") not in IMAGE_MANIFEST_MEDIA_TYPES:
                continue
            platform = PlatformSpec.from_oci(platform_data)
            if plan.matcher.match(platform) and platform not in available:
                logger.debug(f"{qualified_name} has {digest} for {platform}")
                available[platform] = digest
    else:
        config = await client.get_image_config(repository, root_manifest)  # type: ignore[arg-type]
        platform = PlatformSpec.from_oci(config)
        logger.info(f"{qualified_name} is a single-platform image for {platform}")
        if plan.matcher.match(platform):
            available[platform] = root_digest

    unpacks: list[ResolvedUnpack] = []
    for result in plan.resolved:
        if result.platform not in available:
            raise ManifestNotFoundError(qualified_name, result.platform)  # type: ignore[arg-type]
        unpacks.append(
            ResolvedUnpack(
                platform=result.platform,  # type: ignore[arg-type]
                snapshotter=result.snapshotter,  # type: ignore[arg-type]
                digest=available[result.platform],
            ),
        )
    return unpacks
