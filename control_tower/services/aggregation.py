"""
Time-Bucket and Geo Aggregators

Groups normalized rows into request-scoped tables of counters:

- TimeBucketTable: one Bucket per granularity-aligned interval in the report
  timezone (local midnight / Monday-aligned week / first of month). Buckets are
  created on first use, so the set of keys partitions exactly the rows that have
  a resolvable timestamp. Rows without one are skipped here but still count in
  the collaborator totals.
- GeoBusinessTable: one GeoAggregate per normalized state across every source,
  feeding the per-state business score.
- GeoOpportunityTable: lost-booking value and counts per state, county or city.

Each table lives for one request only; nothing here is module-level state.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Set, Tuple

from control_tower.models.enums import Granularity
from control_tower.models.schemas import GeoOpportunity
from control_tower.services.normalizer import (
    UNKNOWN_GEO_LABEL,
    NormalizedRow,
    NormalizedSources,
    geo_key,
    geo_label,
    is_cancelled,
    is_successful_transaction,
)
from control_tower.services.range_resolver import iso_from_ms
from control_tower.services.stats import round_to


ACTIVITY_CALL_WEIGHT = 0.6
ACTIVITY_CONVERSATION_WEIGHT = 0.4


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class Bucket:
    """Counter aggregate keyed by a time interval (or a geo, via GeoAggregate)."""
    key: str
    label: str
    leads: int = 0
    calls: int = 0
    conversations: int = 0
    appointments: int = 0
    cancelled_appointments: int = 0
    successful_revenue: float = 0.0
    lost_count: int = 0
    lost_value: float = 0.0

    @property
    def activity(self) -> float:
        """Weighted activity used for the volume component."""
        return (
            self.leads
            + self.calls * ACTIVITY_CALL_WEIGHT
            + self.conversations * ACTIVITY_CONVERSATION_WEIGHT
        )

    def add_appointment(self, status: str) -> None:
        self.appointments += 1
        if is_cancelled(status):
            self.cancelled_appointments += 1

    def add_transaction(self, status: str, amount: float) -> None:
        if is_successful_transaction(status):
            self.successful_revenue += amount

    def add_lost(self, value: float) -> None:
        self.lost_count += 1
        self.lost_value += value


@dataclass
class GeoAggregate(Bucket):
    """Bucket counters for one geography plus its distinct contacts."""
    name: str = UNKNOWN_GEO_LABEL
    contacts: Set[str] = field(default_factory=set)

    @property
    def unique_contacts(self) -> int:
        return len(self.contacts)

    def mark_contact(self, contact_id: Optional[str]) -> None:
        if contact_id:
            self.contacts.add(contact_id)


# =============================================================================
# Bucket Boundaries
# =============================================================================


def _local_midnight_ms(day: date, tz: tzinfo) -> int:
    return int(datetime.combine(day, time.min, tzinfo=tz).timestamp() * 1000)


def bucket_start_day(ms: float, granularity: Granularity, tz: tzinfo = timezone.utc) -> date:
    """Local calendar day on which the bucket containing `ms` starts."""
    day = datetime.fromtimestamp(ms / 1000, tz=tz).date()
    if granularity == Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    return day


def bucket_start_ms(ms: float, granularity: Granularity, tz: tzinfo = timezone.utc) -> int:
    return _local_midnight_ms(bucket_start_day(ms, granularity, tz), tz)


def bucket_label(start: date, granularity: Granularity) -> str:
    """
    Display label for a bucket starting on `start`.

    Example:
        >>> bucket_label(date(2024, 3, 4), Granularity.WEEK)
        '03/04 - 03/10'
        >>> bucket_label(date(2024, 3, 1), Granularity.MONTH)
        'Mar 24'
    """
    if granularity == Granularity.MONTH:
        return start.strftime("%b %y")
    if granularity == Granularity.WEEK:
        end = start + timedelta(days=6)
        return f"{start:%m/%d} - {end:%m/%d}"
    return f"{start:%m/%d}"


# =============================================================================
# Time Buckets
# =============================================================================


class TimeBucketTable:
    """
    Ordered table of time buckets for one request.

    Keys are ISO-8601 UTC instants of the local bucket start; `buckets()`
    returns them sorted by start instant.
    """

    def __init__(self, granularity: Granularity, tz: tzinfo = timezone.utc):
        self.granularity = granularity
        self.tz = tz
        self._buckets: Dict[int, Bucket] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def ensure(self, ms: float) -> Bucket:
        start_day = bucket_start_day(ms, self.granularity, self.tz)
        start_ms = _local_midnight_ms(start_day, self.tz)
        bucket = self._buckets.get(start_ms)
        if bucket is None:
            bucket = Bucket(key=iso_from_ms(start_ms), label=bucket_label(start_day, self.granularity))
            self._buckets[start_ms] = bucket
        return bucket

    def _timed(self, rows: Iterable[NormalizedRow]) -> Iterable[Tuple[Bucket, NormalizedRow]]:
        for row in rows:
            if row.timestamp_ms is None:
                continue
            yield self.ensure(row.timestamp_ms), row

    def add_sources(self, sources: NormalizedSources) -> "TimeBucketTable":
        for bucket, _ in self._timed(sources.calls):
            bucket.calls += 1
        for bucket, _ in self._timed(sources.contacts):
            bucket.leads += 1
        for bucket, _ in self._timed(sources.conversations):
            bucket.conversations += 1
        for bucket, row in self._timed(sources.transactions):
            bucket.add_transaction(row.status, row.amount)
        for bucket, row in self._timed(sources.appointments):
            bucket.add_appointment(row.status)
        for bucket, row in self._timed(sources.lost_bookings):
            bucket.add_lost(row.amount)
        return self

    def buckets(self) -> List[Bucket]:
        return [self._buckets[start] for start in sorted(self._buckets)]


def build_time_buckets(
    sources: NormalizedSources,
    granularity: Granularity,
    tz: tzinfo = timezone.utc,
) -> List[Bucket]:
    return TimeBucketTable(granularity, tz).add_sources(sources).buckets()


# =============================================================================
# Geo Business Aggregates
# =============================================================================


class GeoBusinessTable:
    """Per-state aggregates across every source, keyed case-insensitively."""

    def __init__(self):
        self._geos: Dict[str, GeoAggregate] = {}

    def __len__(self) -> int:
        return len(self._geos)

    def ensure(self, state: str) -> GeoAggregate:
        key = geo_key(state)
        label = geo_label(state)
        geo = self._geos.get(key)
        if geo is None:
            geo = GeoAggregate(key=key, label=key, name=label)
            self._geos[key] = geo
        elif geo.name == UNKNOWN_GEO_LABEL and label != UNKNOWN_GEO_LABEL:
            geo.name = label
        return geo

    def _each(self, rows: Iterable[NormalizedRow]) -> Iterable[Tuple[GeoAggregate, NormalizedRow]]:
        for row in rows:
            geo = self.ensure(row.geo.state)
            geo.mark_contact(row.contact_id)
            yield geo, row

    def add_sources(self, sources: NormalizedSources) -> "GeoBusinessTable":
        for geo, _ in self._each(sources.calls):
            geo.calls += 1
        for geo, _ in self._each(sources.contacts):
            geo.leads += 1
        for geo, _ in self._each(sources.conversations):
            geo.conversations += 1
        for geo, row in self._each(sources.transactions):
            geo.add_transaction(row.status, row.amount)
        for geo, row in self._each(sources.appointments):
            geo.add_appointment(row.status)
        for geo, row in self._each(sources.lost_bookings):
            geo.add_lost(row.amount)
        return self

    def aggregates(self) -> List[GeoAggregate]:
        return list(self._geos.values())


# =============================================================================
# Geo Opportunities
# =============================================================================


@dataclass
class _OpportunityCounter:
    name: str
    opportunities: int = 0
    value: float = 0.0
    contacts: Set[str] = field(default_factory=set)


class GeoOpportunityTable:
    """Lost-booking opportunities rolled up by one geo level."""

    def __init__(self):
        self._rows: Dict[str, _OpportunityCounter] = {}

    def add(self, label: str, value: float, contact_id: Optional[str]) -> None:
        key = geo_key(label)
        counter = self._rows.get(key)
        if counter is None:
            counter = _OpportunityCounter(name=geo_label(label))
            self._rows[key] = counter
        elif counter.name == UNKNOWN_GEO_LABEL and geo_label(label) != UNKNOWN_GEO_LABEL:
            counter.name = geo_label(label)
        counter.opportunities += 1
        counter.value += value
        if contact_id:
            counter.contacts.add(contact_id)

    def top(self, limit: int = 10) -> List[GeoOpportunity]:
        """Highest value first, then most opportunities, then name A-Z."""
        ranked = sorted(
            (
                GeoOpportunity(
                    name=counter.name,
                    opportunities=counter.opportunities,
                    value=round_to(counter.value, 2),
                    uniqueContacts=len(counter.contacts),
                )
                for counter in self._rows.values()
            ),
            key=lambda row: (-row.value, -row.opportunities, row.name),
        )
        return ranked[:limit]


def build_opportunity_tables(
    lost_rows: Iterable[NormalizedRow],
) -> Tuple[GeoOpportunityTable, GeoOpportunityTable, GeoOpportunityTable]:
    """State, county and city tables over every lost booking row."""
    states, counties, cities = GeoOpportunityTable(), GeoOpportunityTable(), GeoOpportunityTable()
    for row in lost_rows:
        states.add(row.geo.state, row.amount, row.contact_id)
        counties.add(row.geo.county, row.amount, row.contact_id)
        cities.add(row.geo.city, row.amount, row.contact_id)
    return states, counties, cities
