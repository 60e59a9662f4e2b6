"""
Tests for the time-bucket and geo aggregators.

Covers:
- Time buckets partition the timestamped rows (no double counting, no loss)
- Bucket alignment: local midnight, Monday weeks, first of month
- Bucket labels per granularity
- Geo business table: case-insensitive keys and the Unknown sentinel
- Geo opportunity ranking, including lost rows without a state
- Only successful transactions add revenue
"""

from datetime import date
from typing import List, Optional
from zoneinfo import ZoneInfo

from control_tower.models.enums import Granularity, SourceKind
from control_tower.services.aggregation import (
    Bucket,
    GeoBusinessTable,
    GeoOpportunityTable,
    TimeBucketTable,
    bucket_label,
    bucket_start_day,
    build_opportunity_tables,
    build_time_buckets,
)
from control_tower.services.normalizer import GeoFields, NormalizedRow, NormalizedSources, normalize_bundle, to_epoch_ms


def make_row(
    kind: SourceKind,
    when: Optional[str],
    state: str = '',
    contact_id: Optional[str] = None,
    status: str = '',
    amount: float = 0.0,
    county: str = '',
    city: str = '',
) -> NormalizedRow:
    return NormalizedRow(
        kind=kind,
        timestamp_ms=to_epoch_ms(when) if when else None,
        geo=GeoFields(state=state, county=county, city=city),
        contact_id=contact_id,
        status=status,
        amount=amount,
    )


# ============================================================
# Bucket Counters
# ============================================================

class TestBucketCounters:

    def test_activity_weights(self) -> None:
        bucket = Bucket(key='k', label='l', leads=10, calls=5, conversations=5)
        assert bucket.activity == 10 + 3 + 2

    def test_only_successful_transactions_add_revenue(self) -> None:
        bucket = Bucket(key='k', label='l')
        bucket.add_transaction('Payment Succeeded', 100)
        bucket.add_transaction('failed', 40)
        assert bucket.successful_revenue == 100

    def test_cancelled_appointments(self) -> None:
        bucket = Bucket(key='k', label='l')
        bucket.add_appointment('showed')
        bucket.add_appointment('Cancelled')
        assert (bucket.appointments, bucket.cancelled_appointments) == (2, 1)


# ============================================================
# Time Buckets
# ============================================================

class TestTimeBuckets:

    def test_rows_are_partitioned(self, bundle_factory) -> None:
        sources = normalize_bundle(bundle_factory())

        buckets = build_time_buckets(sources, Granularity.DAY)

        assert sum(b.calls for b in buckets) == len(sources.calls)
        assert sum(b.leads for b in buckets) == len(sources.contacts)
        assert sum(b.conversations for b in buckets) == len(sources.conversations)
        assert sum(b.appointments for b in buckets) == len(sources.appointments)
        assert sum(b.lost_count for b in buckets) == len(sources.lost_bookings)
        assert sum(b.successful_revenue for b in buckets) == 1200
        assert len({b.key for b in buckets}) == len(buckets)

    def test_rows_without_timestamp_are_skipped(self) -> None:
        sources = NormalizedSources(calls=[
            make_row(SourceKind.CALLS, '2024-03-04T10:00:00Z'),
            make_row(SourceKind.CALLS, None),
        ])

        buckets = build_time_buckets(sources, Granularity.DAY)

        assert len(buckets) == 1
        assert buckets[0].calls == 1

    def test_buckets_sorted_by_start(self) -> None:
        sources = NormalizedSources(contacts=[
            make_row(SourceKind.CONTACTS, '2024-03-09T10:00:00Z'),
            make_row(SourceKind.CONTACTS, '2024-03-04T10:00:00Z'),
            make_row(SourceKind.CONTACTS, '2024-03-06T10:00:00Z'),
        ])

        buckets = build_time_buckets(sources, Granularity.DAY)

        assert [b.label for b in buckets] == ['03/04', '03/06', '03/09']

    def test_week_buckets_align_to_monday(self) -> None:
        table = TimeBucketTable(Granularity.WEEK)

        wednesday = table.ensure(to_epoch_ms('2024-03-06T18:00:00Z'))
        sunday = table.ensure(to_epoch_ms('2024-03-10T23:00:00Z'))

        assert wednesday is sunday
        assert wednesday.key == '2024-03-04T00:00:00.000Z'
        assert wednesday.label == '03/04 - 03/10'
        assert len(table) == 1

    def test_month_buckets(self) -> None:
        table = TimeBucketTable(Granularity.MONTH)

        bucket = table.ensure(to_epoch_ms('2024-03-17T12:00:00Z'))

        assert bucket.key == '2024-03-01T00:00:00.000Z'
        assert bucket.label == 'Mar 24'

    def test_local_midnight_in_report_timezone(self) -> None:
        table = TimeBucketTable(Granularity.DAY, ZoneInfo('America/New_York'))

        # 03:00 UTC on the 5th is still the evening of the 4th in New York
        bucket = table.ensure(to_epoch_ms('2024-03-05T03:00:00Z'))

        assert bucket.label == '03/04'
        assert bucket.key == '2024-03-04T05:00:00.000Z'

    def test_bucket_start_day(self) -> None:
        ms = to_epoch_ms('2024-03-06T12:00:00Z')
        assert bucket_start_day(ms, Granularity.DAY) == date(2024, 3, 6)
        assert bucket_start_day(ms, Granularity.WEEK) == date(2024, 3, 4)
        assert bucket_start_day(ms, Granularity.MONTH) == date(2024, 3, 1)

    def test_labels(self) -> None:
        assert bucket_label(date(2024, 12, 30), Granularity.WEEK) == '12/30 - 01/05'
        assert bucket_label(date(2024, 1, 1), Granularity.MONTH) == 'Jan 24'
        assert bucket_label(date(2024, 1, 9), Granularity.DAY) == '01/09'


# ============================================================
# Geo Business Table
# ============================================================

class TestGeoBusinessTable:

    def test_unknown_state_is_kept(self) -> None:
        sources = NormalizedSources(
            contacts=[
                make_row(SourceKind.CONTACTS, None, state='', contact_id='c1'),
                make_row(SourceKind.CONTACTS, None, state='TX', contact_id='c2'),
            ],
            calls=[make_row(SourceKind.CALLS, None, state='  ', contact_id='c1')],
        )

        table = GeoBusinessTable().add_sources(sources)
        by_name = {geo.name: geo for geo in table.aggregates()}

        assert set(by_name) == {'Unknown', 'TX'}
        assert by_name['Unknown'].leads == 1
        assert by_name['Unknown'].calls == 1
        assert by_name['Unknown'].unique_contacts == 1

    def test_states_merge_case_insensitively(self) -> None:
        sources = NormalizedSources(transactions=[
            make_row(SourceKind.TRANSACTIONS, None, state='tx', status='paid', amount=100),
            make_row(SourceKind.TRANSACTIONS, None, state='TX', status='paid', amount=50),
        ])

        table = GeoBusinessTable().add_sources(sources)

        assert len(table) == 1
        assert table.aggregates()[0].successful_revenue == 150


# ============================================================
# Geo Opportunities
# ============================================================

class TestGeoOpportunities:

    def test_ranking(self) -> None:
        table = GeoOpportunityTable()
        table.add('TX', 500, 'c1')
        table.add('tx', 300, 'c2')
        table.add('CA', 800, 'c3')
        table.add('', 100, None)
        table.add('AZ', 800, 'c4')

        ranked = table.top()

        assert [row.name for row in ranked] == ['TX', 'AZ', 'CA', 'Unknown']
        assert ranked[0].opportunities == 2
        assert ranked[0].value == 800
        assert ranked[0].uniqueContacts == 2
        assert ranked[-1].uniqueContacts == 0

    def test_limit(self) -> None:
        table = GeoOpportunityTable()
        for index in range(15):
            table.add(f'County {index:02d}', index, None)

        ranked = table.top()

        assert len(ranked) == 10
        assert ranked[0].name == 'County 14'

    def test_levels(self) -> None:
        rows: List[NormalizedRow] = [
            make_row(SourceKind.LOST_BOOKINGS, None, state='TX', county='Harris', city='Houston', amount=200),
            make_row(SourceKind.LOST_BOOKINGS, None, state='TX', county='Harris', city='', amount=100),
        ]

        states, counties, cities = build_opportunity_tables(rows)

        assert states.top()[0].value == 300
        assert counties.top()[0].opportunities == 2
        assert {row.name for row in cities.top()} == {'Houston', 'Unknown'}

    def test_lost_booking_without_state_groups_under_unknown(self) -> None:
        rows = [make_row(SourceKind.LOST_BOOKINGS, None, state='', county='Harris', amount=75, contact_id='c1')]

        states, _, _ = build_opportunity_tables(rows)

        top = states.top()
        assert len(top) == 1
        assert top[0].name == 'Unknown'
        assert top[0].value == 75


class TestTransactionRevenue:

    def test_succeeded_counts_refunded_does_not(self) -> None:
        sources = NormalizedSources(transactions=[
            make_row(SourceKind.TRANSACTIONS, '2024-03-05T10:00:00Z', status='Payment Succeeded', amount=120),
            make_row(SourceKind.TRANSACTIONS, '2024-03-05T11:00:00Z', status='Refunded', amount=120),
        ])

        buckets = build_time_buckets(sources, Granularity.DAY)

        assert len(buckets) == 1
        assert buckets[0].successful_revenue == 120
