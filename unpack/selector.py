import logging
from collections.abc import Iterable
from collections.abc import Sequence

from unpack.errors import InvalidSnapshotterKeyError
from unpack.models import MatchResult
from unpack.models import SupportedPairing
from unpack.models import UnpackRequest

logger = logging.getLogger(__name__)


def resolve(
    request: UnpackRequest,
    catalog: Sequence[SupportedPairing],
    default_snapshotter: str,
) -> MatchResult:
    """
    Returns the first pairing from the catalog, in catalog order, which
    supports the requested platform and snapshotter.

    When the request has no snapshotter preference, only a pairing using
    the default snapshotter is accepted, even if another snapshotter for the
    same platform is registered earlier.
    """
    wanted = request.snapshotter if request.snapshotter is not None else default_snapshotter
    for candidate in catalog:
        if not candidate.platform.match(request.platform):
            continue
        if candidate.snapshotter != wanted:
            continue
        return MatchResult(matched=True, platform=request.platform, snapshotter=candidate.snapshotter)
    return MatchResult.no_match()


class Selector:
    """
    Holds a catalog snapshot and the process default snapshotter, resolving
    unpack requests against them
    """

    def __init__(self, catalog: Iterable[SupportedPairing], default_snapshotter: str) -> None:
        if not default_snapshotter:
            raise InvalidSnapshotterKeyError("A default snapshotter key is required")
        self.catalog: tuple[SupportedPairing, ...] = tuple(catalog)
        self.default_snapshotter = default_snapshotter

    def resolve(self, request: UnpackRequest) -> MatchResult:
        result = resolve(request, self.catalog, self.default_snapshotter)
        if result:
            logger.debug(f"Resolved {request.platform} to snapshotter {result.snapshotter}")
        else:
            wanted = request.snapshotter or f"default ({self.default_snapshotter})"
            logger.debug(f"No supported pairing for {request.platform} with snapshotter {wanted}")
        return result

    def __len__(self) -> int:
        return len(self.catalog)
