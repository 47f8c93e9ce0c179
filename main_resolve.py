#!/usr/bin/env python3

import logging
import sys

import github_action_utils as gha_utils
import httpx

from regtools.images import RegistryClient
from regtools.images import split_reference
from unpack.errors import UnpackError
from unpack.errors import UnsupportedPlatformError
from unpack.models import UnpackRequest
from unpack.platforms import PlatformSpec
from unpack.registry import load_catalog
from unpack.transfer import plan_unpacks
from unpack.transfer import select_manifests
from utils import coerce_to_bool
from utils import common_args
from utils import get_log_level
from utils import optional_str

logger = logging.getLogger("unpack-resolver")


class Config:
    def __init__(self, args) -> None:
        self.catalog: str = args.catalog
        self.default_snapshotter: str | None = optional_str(args.default_snapshotter)
        self.log_level: int = get_log_level(args.loglevel)
        self.platform = PlatformSpec(
            os=args.os,
            architecture=args.arch,
            variant=optional_str(args.variant),
        )
        self.snapshotter: str | None = optional_str(args.snapshotter)
        self.image: str | None = optional_str(args.image)
        self.registry: str = args.registry
        self.fail_on_unsupported: bool = coerce_to_bool(args.fail_on_unsupported)


async def _main() -> None:
    parser = common_args(
        "Resolve which snapshotter unpacks an image for a platform, optionally"
        " checking the image has a manifest for that platform",
    )

    parser.add_argument(
        "--os",
        default="linux",
        help="The operating system of the platform to unpack",
    )

    parser.add_argument(
        "--arch",
        help="The architecture of the platform to unpack",
        required=True,
    )

    parser.add_argument(
        "--variant",
        default="",
        help="The architecture variant of the platform to unpack, if any",
    )

    parser.add_argument(
        "--snapshotter",
        default="",
        help="The snapshotter to unpack with, the default snapshotter if not given",
    )

    parser.add_argument(
        "--image",
        default="",
        help="If provided, an image (owner/name:tag) which must have a manifest for the platform",
    )

    parser.add_argument(
        "--registry",
        default="ghcr.io",
        help="The registry host of the image",
    )

    parser.add_argument(
        "--fail-on-unsupported",
        default=True,
        help="If True, an unsupported platform and snapshotter fails the run",
    )

    config = Config(parser.parse_args())

    logging.basicConfig(
        level=config.log_level,
        datefmt="%Y-%m-%d %H:%M:%S",
        format="[%(asctime)s] [%(levelname)-8s] [%(name)-10s] %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.info("Starting processing")

    #
    # Step 1 - load the supported pairings
    #
    registry = load_catalog(config.catalog, config.default_snapshotter)
    selector = registry.selector()

    #
    # Step 2 - resolve the snapshotter for the requested platform
    #
    request = UnpackRequest(config.platform, config.snapshotter)
    try:
        plan = plan_unpacks([request], selector)
    except UnsupportedPlatformError as e:
        if config.fail_on_unsupported:
            raise
        logger.warning(str(e))
        gha_utils.warning(str(e), title="Unsupported platform")
        gha_utils.set_output("matched", "false")
        return

    resolved = plan.resolved[0]
    gha_utils.set_output("matched", "true")
    gha_utils.set_output("snapshotter", resolved.snapshotter)

    #
    # Step 3 - make sure the image can be unpacked for the platform
    #
    if config.image is None:
        logger.info("No image given, not checking manifests")
        return

    repository, reference = split_reference(config.image)
    async with RegistryClient(host=config.registry) as client:
        unpacks = await select_manifests(client, repository, reference, plan)

    for unpack in unpacks:
        logger.info(f"{config.image} unpacks {unpack.digest} for {unpack.platform} with {unpack.snapshotter}")
        gha_utils.set_output("digest", unpack.digest)


if __name__ == "__main__":
    import asyncio

    exit_code = 0
    try:
        asyncio.run(_main())
    except UnpackError as e:
        logger.error(str(e))
        gha_utils.error(str(e), title="Unpack resolution failed")
        exit_code = 1
    except httpx.HTTPError as e:
        logger.error(f"Registry request failed: {e}")
        gha_utils.error(str(e), title="Registry error")
        exit_code = 1
    except ValueError as e:
        # Unknown manifest media types from the registry
        logger.error(f"Unexpected registry response: {e}")
        gha_utils.error(str(e), title="Registry error")
        exit_code = 1
    finally:
        logging.shutdown()
    sys.exit(exit_code)
