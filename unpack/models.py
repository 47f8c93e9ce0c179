from dataclasses import dataclass
from typing import Self

from unpack.errors import InvalidCatalogError
from unpack.errors import InvalidSnapshotterKeyError
from unpack.platforms import PlatformMatcher
from unpack.platforms import PlatformSpec


@dataclass(frozen=True, slots=True)
class SupportedPairing:
    """
    A platform matcher and the snapshotter which can unpack images for the
    platforms it matches.  An entry of the (ordered) catalog
    """

    platform: PlatformMatcher
    snapshotter: str

    def __post_init__(self) -> None:
        # An absent matcher would be a wildcard, which is not allowed
        if self.platform is None:
            raise InvalidCatalogError(f"Pairing for snapshotter {self.snapshotter!r} has no platform matcher")
        if not isinstance(self.platform, PlatformMatcher):
            raise InvalidCatalogError(f"{self.platform!r} is not a platform matcher")
        if not self.snapshotter:
            raise InvalidCatalogError(f"Pairing for {self.platform} has an empty snapshotter key")


@dataclass(frozen=True, slots=True)
class UnpackRequest:
    """
    The platform to unpack, and optionally which snapshotter to unpack with.
    A snapshotter of None means no preference, the default is used
    """

    platform: PlatformSpec
    snapshotter: str | None = None

    def __post_init__(self) -> None:
        if self.snapshotter is not None and not self.snapshotter:
            raise InvalidSnapshotterKeyError("An empty snapshotter key is not valid, use None for no preference")


@dataclass(frozen=True, slots=True)
class MatchResult:
    matched: bool
    platform: PlatformSpec | None = None
    snapshotter: str | None = None

    @classmethod
    def no_match(cls) -> Self:
        return cls(matched=False)

    def __bool__(self) -> bool:
        return self.matched
