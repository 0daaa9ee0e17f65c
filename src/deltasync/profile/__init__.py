"""Per-bar volume profile computation (delta, VPOC, value area)."""

from deltasync.profile.volume_profile import (
    PriceLevel,
    build_histogram,
    compute_profile,
    enrich_bar,
    find_vpoc,
    select_value_area,
)

__all__ = [
    "PriceLevel",
    "build_histogram",
    "compute_profile",
    "enrich_bar",
    "find_vpoc",
    "select_value_area",
]
