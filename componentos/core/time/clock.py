"""
UTC clock for componentos

- Version, branch and log timestamps: epoch milliseconds (int)
- Event envelopes: ISO 8601 with a Z suffix
- Human-readable descriptions (revert messages): "YYYY-MM-DD HH:MM:SS UTC"

Never call datetime.now() without a timezone elsewhere in the package.
"""

from datetime import datetime, timedelta, timezone

_ISO_Z_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_ms() -> int:
    """Epoch milliseconds, the unit of every stored timestamp."""
    return to_epoch_ms(utc_now())


def utc_now_iso() -> str:
    """
    Current time for event envelopes

    Example:
        >>> utc_now_iso()
        '2026-01-31T12:34:56.789012Z'
    """
    return to_iso_z(utc_now())


def to_iso_z(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(_ISO_Z_FORMAT)


def to_epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        raise ValueError("naive datetime; attach a timezone first")
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def format_epoch_ms(ms: int) -> str:
    """Render a stored timestamp for descriptions, e.g. '2026-01-31 12:34:56 UTC'."""
    return from_epoch_ms(ms).strftime(_DISPLAY_FORMAT)
