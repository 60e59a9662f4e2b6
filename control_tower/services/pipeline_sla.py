"""
SLA & Aging Analyzer

Lead response: for every contact with a known creation instant, find its
earliest touch across calls, conversations, appointments and transactions and
measure the lag in minutes. Tiers are cumulative in the report: a 10-minute
response counts toward both within15m and within60m.

Open lost-booking aging: every lost booking still in status "open" is aged from
its creation instant to `now`.

Percentiles use the nearest-rank rule (see stats.percentile). Figures that have
no sample (no touched lead, no open booking with a known creation instant) are
null rather than 0.
"""

from typing import Dict, Iterable, List, Optional

from control_tower.models.enums import SlaTier
from control_tower.models.schemas import LeadResponseSla, LostOpenAging, PipelineSla
from control_tower.services.normalizer import NormalizedRow, NormalizedSources, is_open_opportunity
from control_tower.services.stats import mean, percentile, round_half_up, round_to


MINUTE_MS = 60_000
DAY_MS = 86_400_000

FAST_RESPONSE_MINUTES = 15
SLA_RESPONSE_MINUTES = 60


def earliest_by_contact(rows: Iterable[NormalizedRow]) -> Dict[str, int]:
    """Earliest timestamp per contact id, ignoring rows missing either."""
    earliest: Dict[str, int] = {}
    for row in rows:
        if not row.contact_id or row.timestamp_ms is None:
            continue
        known = earliest.get(row.contact_id)
        if known is None or row.timestamp_ms < known:
            earliest[row.contact_id] = row.timestamp_ms
    return earliest


def classify_lag(lag_minutes: Optional[float]) -> SlaTier:
    if lag_minutes is None:
        return SlaTier.NO_TOUCH_YET
    if lag_minutes <= FAST_RESPONSE_MINUTES:
        return SlaTier.WITHIN_15M
    if lag_minutes <= SLA_RESPONSE_MINUTES:
        return SlaTier.WITHIN_60M
    return SlaTier.BREACHED_60M


def _share(count: int, sample: int) -> Optional[int]:
    if sample <= 0:
        return None
    return round_half_up(count / sample * 100)


def _rounded(value: Optional[float]) -> Optional[float]:
    return None if value is None else round_to(value, 1)


def lead_response(sources: NormalizedSources) -> LeadResponseSla:
    created = earliest_by_contact(sources.contacts)
    first_touch = earliest_by_contact(
        [*sources.calls, *sources.conversations, *sources.appointments, *sources.transactions]
    )

    lags: List[float] = []
    tiers: Dict[SlaTier, int] = {tier: 0 for tier in SlaTier}
    for contact_id, created_ms in created.items():
        touch_ms = first_touch.get(contact_id)
        lag = None if touch_ms is None else max(0, touch_ms - created_ms) / MINUTE_MS
        if lag is not None:
            lags.append(lag)
        tiers[classify_lag(lag)] += 1

    within15 = tiers[SlaTier.WITHIN_15M]
    within60 = within15 + tiers[SlaTier.WITHIN_60M]

    return LeadResponseSla(
        trackedLeads=len(created),
        withTouch=len(lags),
        noTouchYet=tiers[SlaTier.NO_TOUCH_YET],
        within15m=within15,
        within60m=within60,
        breached60m=tiers[SlaTier.BREACHED_60M],
        medianMinutes=_rounded(percentile(lags, 50)),
        p90Minutes=_rounded(percentile(lags, 90)),
        sla15Rate=_share(within15, len(lags)),
        sla60Rate=_share(within60, len(lags)),
    )


def lost_open_aging(lost_rows: Iterable[NormalizedRow], now_ms: int) -> LostOpenAging:
    open_rows = [row for row in lost_rows if is_open_opportunity(row.status)]
    ages = [
        max(0, now_ms - row.created_ms) / DAY_MS
        for row in open_rows
        if row.created_ms is not None
    ]
    return LostOpenAging(
        totalOpen=len(open_rows),
        avgDays=_rounded(mean(ages)),
        p90Days=_rounded(percentile(ages, 90)),
        over7d=sum(1 for age in ages if age > 7),
        over14d=sum(1 for age in ages if age > 14),
    )


def build_pipeline_sla(sources: NormalizedSources, now_ms: int) -> PipelineSla:
    return PipelineSla(
        leadResponse=lead_response(sources),
        lostOpenAging=lost_open_aging(sources.lost_bookings, now_ms),
    )
