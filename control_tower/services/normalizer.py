"""
Row Normalizer Service

Each collaborator returns rows in its own shape: the calls export uses
spreadsheet headers ("Phone Call Start Time", "Contact ID"), the CRM feeds use
camelCase, and most feeds add precomputed epoch fields (`__startMs`,
`__createdMs`, ...). This module maps every row onto one NormalizedRow so the
aggregators never look at source-specific keys.

Field resolution per source is declared in ROW_SPECS. For each canonical field
the candidates are tried in order and the first one present wins.

Timestamps:
    - a positive number (or numeric string) is taken as epoch milliseconds
    - anything else is parsed leniently as a date (python-dateutil); naive
      values are read in the report timezone
    - unresolvable -> timestamp_ms is None: the row still counts toward source
      totals but is left out of time buckets

Geo labels are trimmed; an empty label maps to the UNKNOWN sentinel instead of
being dropped. Contact ids are trimmed; empty means "no identity".

Status classification is done by the named predicates at the bottom of this
module, each driven by a keyword constant, so vocabulary drift upstream has a
single place to be fixed.
"""

import math
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Any, Dict, List, Optional, Sequence, Tuple

from control_tower.models.enums import SourceKind
from control_tower.services.range_resolver import parse_instant_ms, representable_ms
from control_tower.services.source_gateway import SourceBundle, SourceResult
from control_tower.services.stats import to_number, to_text


# =============================================================================
# Classification Constants
# =============================================================================

SUCCESSFUL_TRANSACTION_KEYWORDS: Tuple[str, ...] = ("succeed", "paid", "complete", "approved")
MISSED_CALL_STATUSES = frozenset({"no-answer", "voicemail"})
CANCELLED_KEYWORD = "cancel"
OPEN_OPPORTUNITY_STATUS = "open"
UNKNOWN_CHANNEL = "unknown"

UNKNOWN_GEO_KEY = "__unknown"
UNKNOWN_GEO_LABEL = "Unknown"


# =============================================================================
# Field Specs
# =============================================================================


@dataclass(frozen=True)
class RowSpec:
    """Candidate keys, in priority order, for each canonical field of a source."""
    timestamp: Tuple[str, ...]
    state: Tuple[str, ...] = ("state", "State")
    county: Tuple[str, ...] = ()
    city: Tuple[str, ...] = ()
    contact_id: Tuple[str, ...] = ("contactId",)
    status: Tuple[str, ...] = ()
    amount: Tuple[str, ...] = ()
    channel: Tuple[str, ...] = ()
    created: Tuple[str, ...] = ()


ROW_SPECS: Dict[SourceKind, RowSpec] = {
    SourceKind.CALLS: RowSpec(
        timestamp=("__startMs", "Phone Call Start Time", "__startIso"),
        state=("state", "State", "Address State"),
        contact_id=("contactId", "Contact ID"),
        status=("Phone Call Status", "status"),
    ),
    SourceKind.CONTACTS: RowSpec(
        timestamp=("__createdMs", "dateAdded"),
        contact_id=("contactId", "id"),
    ),
    SourceKind.CONVERSATIONS: RowSpec(
        timestamp=("__lastMs", "lastMessageAt"),
        channel=("channel",),
    ),
    SourceKind.TRANSACTIONS: RowSpec(
        timestamp=("__createdMs", "createdAt"),
        status=("status",),
        amount=("amount",),
    ),
    SourceKind.APPOINTMENTS: RowSpec(
        timestamp=("__startMs", "startAt"),
        status=("statusNormalized", "status"),
    ),
    SourceKind.LOST_BOOKINGS: RowSpec(
        timestamp=("__eventMs", "createdAt", "updatedAt"),
        county=("county",),
        city=("city",),
        status=("status",),
        amount=("value",),
        created=("createdAt", "__eventMs"),
    ),
}


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class GeoFields:
    """Trimmed geo labels; "" when the row carries none."""
    state: str = ""
    county: str = ""
    city: str = ""


@dataclass
class NormalizedRow:
    """Canonical view of one source row."""
    kind: SourceKind
    timestamp_ms: Optional[int]
    geo: GeoFields
    contact_id: Optional[str]
    amount: float = 0.0
    status: str = ""
    channel: Optional[str] = None
    phone: str = ""
    email: str = ""
    source: str = ""
    created_ms: Optional[int] = None


@dataclass
class NormalizedSources:
    """Current-period rows of every row-bearing collaborator."""
    calls: List[NormalizedRow] = field(default_factory=list)
    contacts: List[NormalizedRow] = field(default_factory=list)
    conversations: List[NormalizedRow] = field(default_factory=list)
    transactions: List[NormalizedRow] = field(default_factory=list)
    appointments: List[NormalizedRow] = field(default_factory=list)
    lost_bookings: List[NormalizedRow] = field(default_factory=list)


# =============================================================================
# Field Resolution
# =============================================================================


def first_present(row: Dict[str, Any], keys: Sequence[str]) -> Any:
    """Value of the first key whose value is not None."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def first_text(row: Dict[str, Any], keys: Sequence[str]) -> str:
    """First non-empty trimmed text among the keys."""
    for key in keys:
        text = to_text(row.get(key))
        if text:
            return text
    return ""


def to_epoch_ms(value: Any, tz: tzinfo = timezone.utc) -> Optional[int]:
    """
    Resolve a timestamp candidate to epoch milliseconds.

    Example:
        >>> to_epoch_ms(1714000000000)
        1714000000000
        >>> to_epoch_ms("2024-04-25T00:00:00Z")
        1714003200000
        >>> to_epoch_ms("not a date") is None
        True
        >>> to_epoch_ms(1e20) is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if math.isfinite(value) and value > 0:
            return representable_ms(value)
        return None
    text = to_text(value)
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return parse_instant_ms(text, tz)
    if math.isfinite(number) and number > 0:
        return representable_ms(number)
    return None


def geo_key(label: str) -> str:
    """Grouping key for a geo label; empty -> UNKNOWN_GEO_KEY."""
    text = to_text(label)
    return text.lower() if text else UNKNOWN_GEO_KEY


def geo_label(label: str) -> str:
    text = to_text(label)
    return text or UNKNOWN_GEO_LABEL


def normalize_row(kind: SourceKind, row: Dict[str, Any], tz: tzinfo = timezone.utc) -> NormalizedRow:
    row_spec = ROW_SPECS[kind]
    contact_id = first_text(row, row_spec.contact_id) or None

    normalized = NormalizedRow(
        kind=kind,
        timestamp_ms=to_epoch_ms(first_present(row, row_spec.timestamp), tz),
        geo=GeoFields(
            state=to_text(first_present(row, row_spec.state)),
            county=to_text(first_present(row, row_spec.county)) if row_spec.county else "",
            city=to_text(first_present(row, row_spec.city)) if row_spec.city else "",
        ),
        contact_id=contact_id,
        amount=to_number(first_present(row, row_spec.amount)) if row_spec.amount else 0.0,
        status=first_text(row, row_spec.status) if row_spec.status else "",
    )

    if row_spec.channel:
        normalized.channel = to_text(first_present(row, row_spec.channel))
    if row_spec.created:
        normalized.created_ms = to_epoch_ms(first_present(row, row_spec.created), tz)
    if kind == SourceKind.CONTACTS:
        normalized.phone = to_text(row.get("phone"))
        normalized.email = to_text(row.get("email"))
        normalized.source = to_text(row.get("source"))
    return normalized


def normalize_rows(kind: SourceKind, rows: Sequence[Dict[str, Any]], tz: tzinfo = timezone.utc) -> List[NormalizedRow]:
    return [normalize_row(kind, row, tz) for row in rows]


# =============================================================================
# Row Extraction
# =============================================================================


def _dict_rows(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, dict)]


def source_rows(result: SourceResult) -> List[Dict[str, Any]]:
    """`rows` of a successful collaborator payload; [] for a degraded one."""
    if not result.ok:
        return []
    return _dict_rows(result.payload.get("rows"))


def lost_booking_rows(result: SourceResult) -> List[Dict[str, Any]]:
    """`lostBookings.rows` of a successful appointments payload."""
    if not result.ok:
        return []
    lost = result.payload.get("lostBookings")
    if not isinstance(lost, dict):
        return []
    return _dict_rows(lost.get("rows"))


def normalize_bundle(bundle: SourceBundle, tz: tzinfo = timezone.utc) -> NormalizedSources:
    """Normalize the current-period rows of every row-bearing collaborator."""
    return NormalizedSources(
        calls=normalize_rows(SourceKind.CALLS, source_rows(bundle.calls), tz),
        contacts=normalize_rows(SourceKind.CONTACTS, source_rows(bundle.contacts), tz),
        conversations=normalize_rows(SourceKind.CONVERSATIONS, source_rows(bundle.conversations), tz),
        transactions=normalize_rows(SourceKind.TRANSACTIONS, source_rows(bundle.transactions), tz),
        appointments=normalize_rows(SourceKind.APPOINTMENTS, source_rows(bundle.appointments), tz),
        lost_bookings=normalize_rows(SourceKind.LOST_BOOKINGS, lost_booking_rows(bundle.appointments), tz),
    )


# =============================================================================
# Classification Predicates
# =============================================================================


def is_successful_transaction(status: Any) -> bool:
    """Lenient match: "Payment Succeeded", "paid", "Completed", "approved"..."""
    text = to_text(status).lower()
    return any(keyword in text for keyword in SUCCESSFUL_TRANSACTION_KEYWORDS)


def is_missed_call(status: Any) -> bool:
    """Exact match only; "no-answer-callback" is not a missed call."""
    return to_text(status).lower() in MISSED_CALL_STATUSES


def is_cancelled(status: Any) -> bool:
    return CANCELLED_KEYWORD in to_text(status).lower()


def is_open_opportunity(status: Any) -> bool:
    return to_text(status).lower() == OPEN_OPPORTUNITY_STATUS


def is_unknown_channel(channel: Optional[str]) -> bool:
    text = to_text(channel).lower()
    return not text or text == UNKNOWN_CHANNEL
