import logging
import os
from argparse import ArgumentParser

from unpack.defaults import DEFAULT_SNAPSHOTTER_ENV


def get_log_level(level_name: str) -> int:
    """
    Returns a logging level from its name, defaulting to INFO for
    anything unknown
    """
    levels = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
    }
    level = levels.get(level_name.lower())
    if level is None:
        level = logging.INFO
    return level


def coerce_to_bool(value) -> bool:
    """
    Given a thing, try hard to convert it from something which looks boolean
    like, but it actually a string or something, to a boolean
    """
    if not isinstance(value, bool):
        if isinstance(value, str):
            return value.lower() in {"true", "1"}
        else:
            raise TypeError(type(value))
    return value


def optional_str(value: str | None) -> str | None:
    """
    Action inputs are always strings, an unset one arrives empty
    """
    if value is None or not value.strip():
        return None
    return value.strip()


def common_args(description: str) -> ArgumentParser:
    """
    Constructs an ArgumentParser with the arguments describing the
    snapshotter catalog and the logging
    """
    parser = ArgumentParser(
        description=description,
    )

    # The JSON file of platform and snapshotter pairings
    parser.add_argument(
        "--catalog",
        help="JSON file listing the supported platform and snapshotter pairings, in priority order",
        required=True,
    )

    # Overrides the default in the catalog and the per OS default
    parser.add_argument(
        "--default-snapshotter",
        default=os.getenv(DEFAULT_SNAPSHOTTER_ENV, ""),
        help="The snapshotter used when none is requested",
    )

    # Allows configuration of log level for debugging
    parser.add_argument(
        "--loglevel",
        default="info",
        help="Configures the logging level",
    )

    return parser
