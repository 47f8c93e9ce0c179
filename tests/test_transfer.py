import pytest
from pytest_httpx import HTTPXMock

from regtools.images import DOCKER_MANIFEST_MEDIA_TYPE
from regtools.images import OCI_INDEX_MEDIA_TYPE
from regtools.images import OCI_MANIFEST_MEDIA_TYPE
from regtools.images import RegistryClient
from tests.conftest import DEFAULT_SNAPSHOTTER
from tests.conftest import LINUX_386
from tests.conftest import LINUX_AMD64
from tests.conftest import LINUX_ARM
from tests.conftest import LINUX_ARM64
from tests.conftest import MOCK_REGISTRY
from unpack.errors import ManifestNotFoundError
from unpack.errors import UnsupportedPlatformError
from unpack.models import SupportedPairing
from unpack.models import UnpackRequest
from unpack.selector import Selector
from unpack.transfer import ResolvedUnpack
from unpack.transfer import plan_unpacks
from unpack.transfer import select_manifests

MANIFEST_URL = f"https://{MOCK_REGISTRY}/v2/owner/image/manifests/1.0"

IMAGE_INDEX = {
    "schemaVersion": 2,
    "mediaType": OCI_INDEX_MEDIA_TYPE,
    "manifests": [
        {
            "mediaType": OCI_MANIFEST_MEDIA_TYPE,
            "digest": "sha256:amd64",
            "size": 1024,
            "platform": {"os": "linux", "architecture": "amd64"},
        },
        {
            "mediaType": OCI_MANIFEST_MEDIA_TYPE,
            "digest": "sha256:arm64",
            "size": 1024,
            "platform": {"os": "linux", "architecture": "arm64", "variant": ""},
        },
        {
            "mediaType": OCI_MANIFEST_MEDIA_TYPE,
            "digest": "sha256:armv7",
            "size": 1024,
            "platform": {"os": "linux", "architecture": "arm", "variant": "v7"},
        },
        {
            "mediaType": "application/vnd.oci.image.manifest.v1+json",
            "digest": "sha256:attestation",
            "size": 512,
            "platform": {"os": "unknown", "architecture": "unknown"},
        },
        {
            "mediaType": OCI_MANIFEST_MEDIA_TYPE,
            "digest": "sha256:amd64-again",
            "size": 1024,
            "platform": {"os": "linux", "architecture": "amd64"},
        },
    ],
}


@pytest.fixture
def selector(catalog: list[SupportedPairing]) -> Selector:
    return Selector(catalog, DEFAULT_SNAPSHOTTER)


class TestPlanUnpacks:
    def test_resolves_in_request_order(self, selector: Selector) -> None:
        plan = plan_unpacks(
            [UnpackRequest(LINUX_ARM64, "native"), UnpackRequest(LINUX_AMD64)],
            selector,
        )

        assert [(r.platform, r.snapshotter) for r in plan.resolved] == [
            (LINUX_ARM64, "native"),
            (LINUX_AMD64, DEFAULT_SNAPSHOTTER),
        ]
        assert plan.matcher.match(LINUX_ARM64)
        assert plan.matcher.match(LINUX_AMD64)
        assert not plan.matcher.match(LINUX_ARM)

    def test_unsupported_snapshotter_fails(self, selector: Selector) -> None:
        with pytest.raises(UnsupportedPlatformError) as err:
            plan_unpacks(
                [UnpackRequest(LINUX_AMD64), UnpackRequest(LINUX_ARM64, "devmapper")],
                selector,
            )

        assert err.value.platform == LINUX_ARM64
        assert err.value.snapshotter == "devmapper"
        assert str(err.value) == "unpack configuration platform linux/arm64, snapshotter devmapper not supported"

    def test_unsupported_platform_fails(self, selector: Selector) -> None:
        with pytest.raises(UnsupportedPlatformError) as err:
            plan_unpacks([UnpackRequest(LINUX_386)], selector)

        assert err.value.snapshotter is None
        assert "linux/386" in str(err.value)

    def test_empty_requests(self, selector: Selector) -> None:
        plan = plan_unpacks([], selector)
        assert plan.resolved == ()
        assert not plan.matcher.match(LINUX_AMD64)


class TestSelectManifests:
    @pytest.mark.asyncio
    async def test_picks_first_descriptor_per_platform(
        self,
        httpx_mock: HTTPXMock,
        registry_client: RegistryClient,
        selector: Selector,
    ) -> None:
        httpx_mock.add_response(url=MANIFEST_URL, json=IMAGE_INDEX)
        plan = plan_unpacks([UnpackRequest(LINUX_AMD64), UnpackRequest(LINUX_ARM64, "native")], selector)

        unpacks = await select_manifests(registry_client, "owner/image", "1.0", plan)

        assert unpacks == [
            ResolvedUnpack(platform=LINUX_AMD64, snapshotter=DEFAULT_SNAPSHOTTER, digest="sha256:amd64"),
            ResolvedUnpack(platform=LINUX_ARM64, snapshotter="native", digest="sha256:arm64"),
        ]

    @pytest.mark.asyncio
    async def test_missing_platform_in_index(
        self,
        httpx_mock: HTTPXMock,
        registry_client: RegistryClient,
        selector: Selector,
    ) -> None:
        httpx_mock.add_response(url=MANIFEST_URL, json=IMAGE_INDEX)
        # The index only has arm/v7, which is not linux/arm
        plan = plan_unpacks([UnpackRequest(LINUX_ARM)], selector)

        with pytest.raises(ManifestNotFoundError) as err:
            await select_manifests(registry_client, "owner/image", "1.0", plan)

        assert err.value.platform == LINUX_ARM
        assert str(err.value) == f"{MOCK_REGISTRY}/owner/image:1.0 has no manifest for platform linux/arm"

    @pytest.mark.asyncio
    async def test_single_platform_image(
        self,
        httpx_mock: HTTPXMock,
        registry_client: RegistryClient,
        selector: Selector,
    ) -> None:
        httpx_mock.add_response(
            url=MANIFEST_URL,
            json={
                "schemaVersion": 2,
                "mediaType": OCI_MANIFEST_MEDIA_TYPE,
                "config": {"digest": "sha256:config"},
                "layers": [],
            },
            headers={"Docker-Content-Digest": "sha256:image"},
        )
        httpx_mock.add_response(
            url=f"https://{MOCK_REGISTRY}/v2/owner/image/blobs/sha256:config",
            json={"os": "linux", "architecture": "amd64"},
        )
        plan = plan_unpacks([UnpackRequest(LINUX_AMD64, "devmapper")], selector)

        unpacks = await select_manifests(registry_client, "owner/image", "1.0", plan)

        assert unpacks == [ResolvedUnpack(platform=LINUX_AMD64, snapshotter="devmapper", digest="sha256:image")]

    @pytest.mark.asyncio
    async def test_single_platform_image_wrong_platform(
        self,
        httpx_mock: HTTPXMock,
        registry_client: RegistryClient,
        selector: Selector,
    ) -> None:
        httpx_mock.add_response(
            url=f"https://{MOCK_REGISTRY}/v2/owner/image/manifests/sha256:image",
            json={
                "schemaVersion": 2,
                "mediaType": OCI_MANIFEST_MEDIA_TYPE,
                "config": {"digest": "sha256:config"},
                "layers": [],
            },
        )
        httpx_mock.add_response(
            url=f"https://{MOCK_REGISTRY}/v2/owner/image/blobs/sha256:config",
            json={"os": "linux", "architecture": "arm64"},
        )
        plan = plan_unpacks([UnpackRequest(LINUX_AMD64)], selector)

        with pytest.raises(ManifestNotFoundError) as err:
            await select_manifests(registry_client, "owner/image", "sha256:image", plan)

        assert str(err.value).startswith(f"{MOCK_REGISTRY}/owner/image@sha256:image ")

    @pytest.mark.asyncio
    async def test_skips_descriptors_which_are_not_image_manifests(
        self,
        httpx_mock: HTTPXMock,
        registry_client: RegistryClient,
        selector: Selector,
    ) -> None:
        httpx_mock.add_response(
            url=MANIFEST_URL,
            json={
                "schemaVersion": 2,
                "mediaType": OCI_INDEX_MEDIA_TYPE,
                "manifests": [
                    {
                        "mediaType": OCI_INDEX_MEDIA_TYPE,
                        "digest": "sha256:nested-index",
                        "platform": {"os": "linux", "architecture": "amd64"},
                    },
                    {
                        "mediaType": "application/vnd.in-toto+json",
                        "digest": "sha256:attestation",
                        "platform": {"os": "linux", "architecture": "amd64"},
                    },
                    {
                        "mediaType": DOCKER_MANIFEST_MEDIA_TYPE,
                        "digest": "sha256:amd64",
                        "platform": {"os": "linux", "architecture": "amd64"},
                    },
                ],
            },
        )
        plan = plan_unpacks([UnpackRequest(LINUX_AMD64)], selector)

        unpacks = await select_manifests(registry_client, "owner/image", "1.0", plan)

        assert [u.digest for u in unpacks] == ["sha256:amd64"]
