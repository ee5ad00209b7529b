"""Shared utility helpers."""

from om_publish.utils.paths import ensure_directories
from om_publish.utils.time_utils import now_utc, ns_to_ticks, utc_from_ns

__all__ = [
    "ensure_directories",
    "now_utc",
    "ns_to_ticks",
    "utc_from_ns",
]
