"""String enums for recall-proxy."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class Direction(StrEnum):
    """Which way a captured line was travelling."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    LOG = "log"
