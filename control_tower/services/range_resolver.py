"""
Range Resolver Service

Turns the inbound report window (preset token and/or explicit bounds) into an
absolute current window, its comparison window and the aggregation granularity.

Windows are carried as epoch milliseconds. The comparison window has the same
length as the current one and ends exactly 1 ms before it starts, so the two
never overlap:

    previous.end   = current.start - 1
    previous.start = current.start - 1 - (current.end - current.start)

When the current window is not usable (end <= start) there is no comparison
window; callers receive None and skip every previous-period collaborator call.
That is a degraded report, not an error. Only missing or unparseable bounds
raise InvalidRangeError.

Presets without explicit bounds are resolved against the clock in the report
timezone: start at local start-of-day N days/months/years back, end at local
end-of-day today.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone, tzinfo
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from control_tower.core.errors import InvalidRangeError
from control_tower.models.enums import Granularity, RangePreset

logger = logging.getLogger(__name__)


DAY_MS = 86_400_000
DEFAULT_PRESET = RangePreset.D28.value
UNRESOLVED_SPAN_DAYS = 30

DAY_PRESETS = frozenset({"today", "24h", "1d", "7d", "28d"})
WEEK_PRESETS = frozenset({"1m", "3m"})
MONTH_PRESETS = frozenset({"6m", "1y"})

# Provider range tokens understood by the ads and search collaborators.
_PROVIDER_RANGE_BY_PRESET: Dict[str, str] = {
    "today": "last_7_days",
    "24h": "last_7_days",
    "1d": "last_7_days",
    "7d": "last_7_days",
    "28d": "last_28_days",
    "1m": "last_month",
    "3m": "last_quarter",
    "6m": "last_6_months",
    "1y": "last_year",
}

# Calendar offsets for clock-derived windows.
_PRESET_OFFSETS: Dict[str, relativedelta] = {
    "today": relativedelta(),
    "24h": relativedelta(days=1),
    "1d": relativedelta(days=1),
    "7d": relativedelta(days=7),
    "28d": relativedelta(days=28),
    "1m": relativedelta(months=1),
    "3m": relativedelta(months=3),
    "6m": relativedelta(months=6),
    "1y": relativedelta(years=1),
}


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class TimeRange:
    """Absolute window in epoch milliseconds (inclusive bounds)."""
    start_ms: int
    end_ms: int

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    @property
    def start_iso(self) -> str:
        return iso_from_ms(self.start_ms)

    @property
    def end_iso(self) -> str:
        return iso_from_ms(self.end_ms)


@dataclass
class ResolvedRange:
    """
    Everything downstream stages need to know about the report window.

    Attributes:
        preset: Normalized preset token (defaults to "28d").
        start_text / end_text: Bounds as sent to collaborators and echoed back.
        current: The current window.
        previous: The comparison window, or None when unresolvable.
        granularity: Time-bucket unit for the trend.
        ads_range: Provider token for the ads join (caller override wins).
        search_range: Provider token for search sync/join.
        tz: Report timezone used for bucket boundaries.
    """
    preset: str
    start_text: str
    end_text: str
    current: TimeRange
    previous: Optional[TimeRange]
    granularity: Granularity
    ads_range: str
    search_range: str
    tz: tzinfo = field(default=timezone.utc)

    @property
    def has_previous(self) -> bool:
        return self.previous is not None

    @property
    def previous_bounds(self) -> Dict[str, str]:
        """prevRange section; empty strings mark an absent comparison window."""
        if self.previous is None:
            return {"start": "", "end": ""}
        return {"start": self.previous.start_iso, "end": self.previous.end_iso}


# =============================================================================
# Parsing Helpers
# =============================================================================


def iso_from_ms(ms: float) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-03-04T05:00:00.000Z."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def representable_ms(ms: float) -> Optional[int]:
    """Return `ms` as an int, or None when it falls outside the datetime range."""
    try:
        datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return int(ms)


def parse_instant_ms(value: Any, tz: tzinfo = timezone.utc) -> Optional[int]:
    """
    Leniently parse a date-like value into epoch milliseconds.

    Naive values are interpreted in `tz`. Returns None when the value cannot be
    parsed.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = date_parser.parse(text)
    except (TypeError, ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    try:
        return representable_ms(parsed.timestamp() * 1000)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_preset(preset: Optional[str]) -> str:
    text = (preset or "").strip()
    return text or DEFAULT_PRESET


# =============================================================================
# Window Computation
# =============================================================================


def comparison_window(start_ms: Optional[int], end_ms: Optional[int]) -> Optional[TimeRange]:
    """
    Equal-length window ending 1 ms before `start_ms`.

    Returns None (the empty marker) when either bound is missing or
    end <= start.

    Example:
        >>> w = comparison_window(1_000, 2_000)
        >>> (w.start_ms, w.end_ms)
        (-1, 999)
    """
    if start_ms is None or end_ms is None or end_ms <= start_ms:
        return None
    length = end_ms - start_ms
    return TimeRange(start_ms=start_ms - 1 - length, end_ms=start_ms - 1)


def choose_granularity(preset: str, start_ms: Optional[int], end_ms: Optional[int]) -> Granularity:
    """
    Pick the bucket unit for the trend.

    Fixed presets map directly; anything else (custom, unknown tokens) goes by
    span: up to 45 days -> day, up to 180 days -> week, else month. A span that
    cannot be computed counts as 30 days.
    """
    if preset in DAY_PRESETS:
        return Granularity.DAY
    if preset in WEEK_PRESETS:
        return Granularity.WEEK
    if preset in MONTH_PRESETS:
        return Granularity.MONTH

    if start_ms is None or end_ms is None:
        days = float(UNRESOLVED_SPAN_DAYS)
    else:
        days = (end_ms - start_ms) / DAY_MS

    if days <= 45:
        return Granularity.DAY
    if days <= 180:
        return Granularity.WEEK
    return Granularity.MONTH


def ads_range_from_preset(preset: str) -> str:
    """Ads provider token; custom and unknown presets fall back differently."""
    if preset == RangePreset.CUSTOM.value:
        return "last_28_days"
    return _PROVIDER_RANGE_BY_PRESET.get(preset, "last_7_days")


def search_range_from_preset(preset: str) -> str:
    return _PROVIDER_RANGE_BY_PRESET.get(preset, "last_28_days")


def window_from_preset(preset: str, now: datetime, tz: tzinfo) -> TimeRange:
    """
    Clock-derived window for a fixed preset.

    Raises:
        InvalidRangeError: For "custom" or an unknown token.
    """
    offset = _PRESET_OFFSETS.get(preset)
    if offset is None:
        raise InvalidRangeError(
            "Missing start/end query params.",
            preset=preset,
        )

    local_now = now.astimezone(tz)
    start_day = (local_now - offset).date()
    start = datetime.combine(start_day, time.min, tzinfo=tz)
    end = datetime.combine(local_now.date(), time.max, tzinfo=tz)
    return TimeRange(
        start_ms=int(start.timestamp() * 1000),
        # time.max carries microseconds; trim to the last whole millisecond
        end_ms=int(end.timestamp() * 1000),
    )


def resolve_range(
    preset: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    ads_range: Optional[str] = None,
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> ResolvedRange:
    """
    Resolve the inbound query into a ResolvedRange.

    Args:
        preset: Preset token; empty means "28d".
        start: Explicit start bound (ISO-8601 or any date-like string).
        end: Explicit end bound.
        ads_range: Caller override for the ads provider token.
        now: Clock reading for preset-only resolution (defaults to now).
        tz: Report timezone.

    Returns:
        ResolvedRange with current/previous windows and derived tokens.

    Raises:
        InvalidRangeError: A single bound is missing, a bound cannot be parsed,
            or no bounds were sent with a preset that needs them.
    """
    preset_token = normalize_preset(preset)
    start_text = (start or "").strip()
    end_text = (end or "").strip()

    if start_text and end_text:
        start_ms = parse_instant_ms(start_text, tz)
        end_ms = parse_instant_ms(end_text, tz)
        if start_ms is None or end_ms is None:
            raise InvalidRangeError(
                "Invalid start/end query params.",
                start=start_text,
                end=end_text,
            )
        current = TimeRange(start_ms=start_ms, end_ms=end_ms)
    elif start_text or end_text:
        raise InvalidRangeError("Missing start/end query params.")
    else:
        current = window_from_preset(preset_token, now or datetime.now(timezone.utc), tz)
        start_text = current.start_iso
        end_text = current.end_iso

    previous = comparison_window(current.start_ms, current.end_ms)
    if previous is None:
        logger.info(
            "No comparison window for %s..%s; previous-period calls will be skipped",
            start_text, end_text,
        )

    return ResolvedRange(
        preset=preset_token,
        start_text=start_text,
        end_text=end_text,
        current=current,
        previous=previous,
        granularity=choose_granularity(preset_token, current.start_ms, current.end_ms),
        ads_range=(ads_range or "").strip() or ads_range_from_preset(preset_token),
        search_range=search_range_from_preset(preset_token),
        tz=tz,
    )


def search_sync_params(resolved: ResolvedRange, force: bool = False) -> Dict[str, str]:
    """
    Query parameters shared by the search sync triggers and the search join.

    Custom windows pass their day bounds; fixed presets pass the provider token.
    """
    params: Dict[str, str] = {}
    if resolved.preset == RangePreset.CUSTOM.value:
        params["range"] = "custom"
        params["start"] = resolved.start_text[:10]
        params["end"] = resolved.end_text[:10]
    else:
        params["range"] = resolved.search_range
    params["compare"] = "1"
    if force:
        params["force"] = "1"
    return params


def range_days(current: TimeRange) -> int:
    """Inclusive day count of a window, at least 1."""
    if current.end_ms < current.start_ms:
        return 1
    return max(1, current.duration_ms // DAY_MS + 1)
