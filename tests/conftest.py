import pytest
import pytest_asyncio

from regtools.images import RegistryClient
from unpack.models import SupportedPairing
from unpack.platforms import PlatformSpec
from unpack.platforms import only_strict

# --- Constants for Mock Fixtures ---
MOCK_TOKEN = "test_conftest_token"
MOCK_REGISTRY = "registry.test"
DEFAULT_SNAPSHOTTER = "default"

LINUX_AMD64 = PlatformSpec("linux", "amd64")
LINUX_ARM64 = PlatformSpec("linux", "arm64")
LINUX_ARM = PlatformSpec("linux", "arm")
LINUX_ARM_V7 = PlatformSpec("linux", "arm", "v7")
LINUX_386 = PlatformSpec("linux", "386")


@pytest.fixture
def catalog() -> list[SupportedPairing]:
    """
    Several snapshotters per platform, with the default snapshotter not
    always registered first
    """
    return [
        SupportedPairing(only_strict(LINUX_AMD64), "native"),
        SupportedPairing(only_strict(LINUX_AMD64), DEFAULT_SNAPSHOTTER),
        SupportedPairing(only_strict(LINUX_AMD64), "devmapper"),
        SupportedPairing(only_strict(LINUX_ARM64), DEFAULT_SNAPSHOTTER),
        SupportedPairing(only_strict(LINUX_ARM64), "native"),
        SupportedPairing(only_strict(LINUX_ARM), "native"),
        SupportedPairing(only_strict(LINUX_ARM), DEFAULT_SNAPSHOTTER),
    ]


@pytest_asyncio.fixture
async def registry_client():
    """Provides a RegistryClient for a fake registry host."""
    async with RegistryClient(host=MOCK_REGISTRY, token=MOCK_TOKEN) as client:
        yield client
