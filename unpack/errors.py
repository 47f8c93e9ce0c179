from unpack.platforms import PlatformSpec


class UnpackError(Exception):
    pass


class InvalidSnapshotterKeyError(UnpackError, ValueError):
    pass


class InvalidCatalogError(UnpackError, ValueError):
    pass


class UnsupportedPlatformError(UnpackError):
    """
    Raised by the pipeline when no registered pairing satisfies an unpack
    request
    """

    def __init__(self, platform: PlatformSpec, snapshotter: str | None) -> None:
        self.platform = platform
        self.snapshotter = snapshotter
        if snapshotter is None:
            msg = f"unpack configuration platform {platform} is not supported by the default snapshotter"
        else:
            msg = f"unpack configuration platform {platform}, snapshotter {snapshotter} not supported"
        super().__init__(msg)


class ManifestNotFoundError(UnpackError):
    """
    Raised when an image has no manifest for a platform which was resolved
    for unpacking
    """

    def __init__(self, reference: str, platform: PlatformSpec) -> None:
        self.reference = reference
        self.platform = platform
        super().__init__(f"{reference} has no manifest for platform {platform}")
