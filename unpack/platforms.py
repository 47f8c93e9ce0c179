"""
Platform values and the matchers used to decide compatibility between them.

Platform identifiers are never parsed here, values are built from their
parts or from the OCI ``platform`` object of a descriptor or image config.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from typing import Protocol
from typing import Self
from typing import runtime_checkable


@dataclass(frozen=True, slots=True)
class PlatformSpec:
    """
    A target runtime platform: operating system, architecture and an
    optional variant
    """

    os: str
    architecture: str
    variant: str | None = None

    @classmethod
    def from_oci(cls, platform_data: Mapping[str, Any]) -> Self:
        """
        Builds a spec from an OCI platform object (a descriptor's "platform"
        or an image config), where an empty variant means no variant
        """
        return cls(
            os=platform_data.get("os", "unknown"),
            architecture=platform_data.get("architecture", "unknown"),
            variant=platform_data.get("variant") or None,
        )

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


@runtime_checkable
class PlatformMatcher(Protocol):
    def match(self, candidate: PlatformSpec) -> bool: ...


@dataclass(frozen=True, slots=True)
class StrictMatcher:
    """
    Matches only a platform exactly equal to the bound one.  No aliasing or
    normalization is done, so linux/arm and linux/arm/v7 are different
    platforms
    """

    platform: PlatformSpec

    def match(self, candidate: PlatformSpec) -> bool:
        return (
            self.platform.os == candidate.os
            and self.platform.architecture == candidate.architecture
            and self.platform.variant == candidate.variant
        )

    def __str__(self) -> str:
        return str(self.platform)


@dataclass(frozen=True, slots=True)
class AnyMatcher:
    """Matches if any of the wrapped matchers match"""

    matchers: tuple[PlatformMatcher, ...]

    def match(self, candidate: PlatformSpec) -> bool:
        return any(m.match(candidate) for m in self.matchers)

    def __str__(self) -> str:
        return ", ".join(str(m) for m in self.matchers)


def only_strict(platform: PlatformSpec) -> StrictMatcher:
    return StrictMatcher(platform)


def any_of(*matchers: PlatformMatcher) -> AnyMatcher:
    return AnyMatcher(tuple(matchers))
