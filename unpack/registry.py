"""
The registry of which snapshotters can unpack which platforms.

Registration order is kept, as it is the priority order used when resolving.
Each registration publishes a new catalog tuple, so a catalog handed out
earlier is never changed underneath a resolution using it.
"""

import json
import logging
import threading
from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from pathlib import Path
from typing import NotRequired
from typing import Self
from typing import TypedDict
from typing import cast

from regtools.models import Platform
from unpack.defaults import default_snapshotter
from unpack.errors import InvalidCatalogError
from unpack.models import SupportedPairing
from unpack.platforms import PlatformMatcher
from unpack.platforms import PlatformSpec
from unpack.platforms import only_strict
from unpack.selector import Selector

logger = logging.getLogger(__name__)


class PairingEntry(TypedDict):
    platform: Platform
    snapshotter: str


class CatalogDocument(TypedDict):
    default: NotRequired[str]
    pairings: Sequence[PairingEntry]


class SnapshotterRegistry:
    def __init__(self, default: str | None = None) -> None:
        self.default_snapshotter = default or default_snapshotter()
        self._catalog: tuple[SupportedPairing, ...] = ()
        self._lock = threading.Lock()

    @property
    def catalog(self) -> tuple[SupportedPairing, ...]:
        return self._catalog

    def register_matcher(self, matcher: PlatformMatcher, snapshotter: str) -> SupportedPairing:
        pairing = SupportedPairing(matcher, snapshotter)
        with self._lock:
            self._catalog = (*self._catalog, pairing)
        logger.debug(f"Registered snapshotter {snapshotter} for {matcher}")
        return pairing

    def register(self, platform: PlatformSpec, snapshotter: str) -> SupportedPairing:
        return self.register_matcher(only_strict(platform), snapshotter)

    def selector(self) -> Selector:
        """
        Returns a selector over the catalog as it is right now
        """
        return Selector(self._catalog, self.default_snapshotter)

    def snapshotters_for(self, platform: PlatformSpec) -> list[str]:
        """
        The snapshotters registered for the platform, in registration order,
        without duplicates
        """
        found: list[str] = []
        for pairing in self._catalog:
            if pairing.platform.match(platform) and pairing.snapshotter not in found:
                found.append(pairing.snapshotter)
        return found

    def platforms_for(self, snapshotter: str) -> list[PlatformMatcher]:
        return [p.platform for p in self._catalog if p.snapshotter == snapshotter]

    @classmethod
    def from_document(cls, document: CatalogDocument, default: str | None = None) -> Self:
        """
        Builds a registry from a parsed catalog document.  An explicit default
        takes precedence over the one in the document
        """
        pairings = document.get("pairings")
        if not isinstance(pairings, Sequence) or isinstance(pairings, str):
            raise InvalidCatalogError("Catalog document requires a list of pairings")

        document_default = document.get("default")
        if document_default is not None and (not isinstance(document_default, str) or not document_default):
            raise InvalidCatalogError(f"Catalog default snapshotter {document_default!r} is not a snapshotter key")

        registry = cls(default or document_default)
        registry.extend(pairings)
        return registry

    def extend(self, entries: Iterable[PairingEntry]) -> None:
        for index, entry in enumerate(entries):
            platform_data = entry.get("platform")
            snapshotter = entry.get("snapshotter")
            if not isinstance(platform_data, Mapping):
                raise InvalidCatalogError(f"Pairing {index} has no platform")
            for key in ("os", "architecture"):
                value = platform_data.get(key)
                if not isinstance(value, str) or not value:
                    raise InvalidCatalogError(f"Pairing {index} platform requires a non-empty {key}")
            if not isinstance(platform_data.get("variant", ""), str):
                raise InvalidCatalogError(f"Pairing {index} platform variant must be a string")
            if not isinstance(snapshotter, str) or not snapshotter:
                raise InvalidCatalogError(f"Pairing {index} has no snapshotter")
            self.register(PlatformSpec.from_oci(platform_data), snapshotter)


def load_catalog(path: Path | str, default: str | None = None) -> SnapshotterRegistry:
    """
    Loads a registry from a JSON catalog file
    """
    path = Path(path)
    logger.info(f"Loading snapshotter catalog from {path}")
    try:
        document = json.loads(path.read_text())
    except OSError as e:
        raise InvalidCatalogError(f"Could not read catalog {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidCatalogError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(document, Mapping):
        raise InvalidCatalogError(f"{path} does not contain a catalog object")

    registry = SnapshotterRegistry.from_document(cast(CatalogDocument, document), default)
    logger.info(
        f"Loaded {len(registry.catalog)} pairings, default snapshotter is {registry.default_snapshotter}",
    )
    return registry
