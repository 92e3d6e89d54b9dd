"""Time helpers (UTC only)."""

from componentos.core.time.clock import (
    utc_now,
    utc_now_ms,
    utc_now_iso,
    to_iso_z,
    to_epoch_ms,
    from_epoch_ms,
    format_epoch_ms,
)

__all__ = [
    "utc_now",
    "utc_now_ms",
    "utc_now_iso",
    "to_iso_z",
    "to_epoch_ms",
    "from_epoch_ms",
    "format_epoch_ms",
]
