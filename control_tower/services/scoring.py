"""
Business Scorer Service

Computes the 0-100 composite business score of a Bucket-shaped aggregate from
five components, each relative to baselines taken over its siblings in the same
pass (the busiest and highest-revenue bucket, or state, floored at 1):

    volume             = 100 * (leads + 0.6*calls + 0.4*conversations) / maxActivity
    revenue            = 100 * successfulRevenue / maxRevenue
    appointmentQuality = 100 * (1 - cancelled / appointments)   (100 with none)
    coverage           = 45 * calls/leads+ + 55 * appointments/leads+
    lossHealth         = 100 - (0.7 * lost value share + 0.3 * lost count share)

    score = round(0.20*volume + 0.25*revenue + 0.20*appointmentQuality
                  + 0.20*coverage + 0.15*lossHealth)

Every component is clamped to [0, 100] and rounded half-up for output; the
composite is computed from the unrounded components.

Whole-period scores:

- current  = rounded mean of the per-time-bucket scores (0 with no buckets)
- previous = score of ONE synthetic aggregate built from previous-period
             collaborator totals, with baselines taken from itself

The reported delta compares these two figures as they are computed here.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from control_tower.models.enums import BusinessGrade, NorthStarStatus
from control_tower.models.schemas import (
    BusinessScore,
    GeoBusinessScore,
    GeoScoreRow,
    ScoreComponents,
    TrendPoint,
)
from control_tower.services.aggregation import Bucket, GeoAggregate
from control_tower.services.stats import clamp, mean, round_half_up, round_to
from control_tower.services.summaries import PeriodTotals


# =============================================================================
# Constants
# =============================================================================

COMPONENT_WEIGHTS: Dict[str, float] = {
    "volume": 0.20,
    "revenue": 0.25,
    "appointmentQuality": 0.20,
    "coverage": 0.20,
    "lossHealth": 0.15,
}

COVERAGE_CALL_WEIGHT = 45
COVERAGE_APPOINTMENT_WEIGHT = 55
LOSS_VALUE_WEIGHT = 0.7
LOSS_COUNT_WEIGHT = 0.3

GRADE_THRESHOLDS = (
    (80, BusinessGrade.A),
    (70, BusinessGrade.B),
    (60, BusinessGrade.C),
    (50, BusinessGrade.D),
)

TOP_GEO_LIMIT = 12
LAGGING_GEO_LIMIT = 5


@dataclass(frozen=True)
class Baselines:
    """Sibling maxima the volume and revenue components are relative to."""
    max_activity: float = 1.0
    max_revenue: float = 1.0

    @classmethod
    def from_siblings(cls, aggregates: Iterable[Bucket]) -> "Baselines":
        max_activity = 1.0
        max_revenue = 1.0
        for aggregate in aggregates:
            max_activity = max(max_activity, aggregate.activity)
            max_revenue = max(max_revenue, aggregate.successful_revenue)
        return cls(max_activity=max_activity, max_revenue=max_revenue)


# =============================================================================
# Scoring
# =============================================================================


def raw_components(bucket: Bucket, baselines: Baselines) -> Dict[str, float]:
    """Unrounded, clamped components of one aggregate."""
    volume = clamp(bucket.activity / max(1.0, baselines.max_activity) * 100)
    revenue = clamp(bucket.successful_revenue / max(1.0, baselines.max_revenue) * 100)

    if bucket.appointments > 0:
        cancellation_share = bucket.cancelled_appointments / bucket.appointments
    else:
        cancellation_share = 0.0
    appointment_quality = clamp((1 - cancellation_share) * 100)

    lead_base = max(1, bucket.leads)
    coverage = clamp(
        bucket.calls / lead_base * COVERAGE_CALL_WEIGHT
        + bucket.appointments / lead_base * COVERAGE_APPOINTMENT_WEIGHT
    )

    lost_value_share = bucket.lost_value / max(1.0, bucket.successful_revenue + bucket.lost_value) * 100
    lost_count_share = bucket.lost_count / max(1, bucket.appointments + bucket.lost_count) * 100
    loss_health = 100 - clamp(lost_value_share * LOSS_VALUE_WEIGHT + lost_count_share * LOSS_COUNT_WEIGHT)

    return {
        "volume": volume,
        "revenue": revenue,
        "appointmentQuality": appointment_quality,
        "coverage": coverage,
        "lossHealth": loss_health,
    }


def compute_score(bucket: Bucket, baselines: Baselines) -> BusinessScore:
    """
    Score one aggregate. Pure: identical inputs give identical output.

    Args:
        bucket: Time bucket, geo aggregate or synthetic period aggregate.
        baselines: Sibling maxima for the relative components.

    Returns:
        BusinessScore with an integer score in [0, 100].
    """
    components = raw_components(bucket, baselines)
    weighted = sum(components[name] * weight for name, weight in COMPONENT_WEIGHTS.items())
    score = int(clamp(round_half_up(weighted)))
    return BusinessScore(
        score=score,
        components=ScoreComponents(**{name: round_half_up(value) for name, value in components.items()}),
    )


def grade_for(score: float) -> BusinessGrade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return BusinessGrade.F


def status_for(score: float) -> NorthStarStatus:
    if score >= 80:
        return NorthStarStatus.STRONG
    if score >= 60:
        return NorthStarStatus.MIXED
    return NorthStarStatus.CRITICAL


# =============================================================================
# Whole-period Scores
# =============================================================================


def score_trend(buckets: Sequence[Bucket]) -> List[TrendPoint]:
    """Score every time bucket against the busiest/highest-revenue bucket."""
    baselines = Baselines.from_siblings(buckets)
    trend = []
    for bucket in buckets:
        calc = compute_score(bucket, baselines)
        trend.append(TrendPoint(
            key=bucket.key,
            label=bucket.label,
            score=calc.score,
            **calc.components.model_dump(),
            leads=bucket.leads,
            calls=bucket.calls,
            conversations=bucket.conversations,
            appointments=bucket.appointments,
            successfulRevenue=round_half_up(bucket.successful_revenue),
            lostCount=bucket.lost_count,
            lostValue=round_half_up(bucket.lost_value),
        ))
    return trend


def current_score(trend: Sequence[TrendPoint]) -> BusinessScore:
    """Mean of the trend scores and of each component; zeros with no buckets."""
    if not trend:
        return BusinessScore(
            score=0,
            components=ScoreComponents(volume=0, revenue=0, appointmentQuality=0, coverage=0, lossHealth=0),
        )
    components = {
        name: round_half_up(mean([getattr(point, name) for point in trend]))
        for name in COMPONENT_WEIGHTS
    }
    return BusinessScore(
        score=round_half_up(mean([point.score for point in trend])),
        components=ScoreComponents(**components),
    )


def previous_score(totals: PeriodTotals) -> int:
    """
    Score of the previous period as one synthetic aggregate.

    With every previous collaborator degraded the totals are all zero and this
    yields 35 (full appointment quality and loss health, nothing else).
    """
    synthetic = Bucket(
        key="prev",
        label="prev",
        leads=totals.leads,
        calls=totals.calls,
        conversations=totals.conversations,
        appointments=totals.appointments,
        cancelled_appointments=totals.cancelled_appointments,
        successful_revenue=totals.revenue,
        lost_count=totals.lost_count,
        lost_value=totals.lost_value,
    )
    return compute_score(synthetic, Baselines.from_siblings([synthetic])).score


# =============================================================================
# Geo Scores
# =============================================================================


def score_geos(aggregates: Sequence[GeoAggregate]) -> List[GeoScoreRow]:
    """Score each state; best first (score, then revenue, then leads)."""
    baselines = Baselines.from_siblings(aggregates)
    rows = []
    for geo in aggregates:
        calc = compute_score(geo, baselines)
        rows.append(GeoScoreRow(
            state=geo.name,
            score=calc.score,
            opportunitiesLost=geo.lost_count,
            lostValue=round_to(geo.lost_value, 2),
            successfulRevenue=round_to(geo.successful_revenue, 2),
            leads=geo.leads,
            calls=geo.calls,
            conversations=geo.conversations,
            appointments=geo.appointments,
            uniqueContacts=geo.unique_contacts,
            components=calc.components,
        ))
    rows.sort(key=lambda row: (-row.score, -row.successfulRevenue, -row.leads))
    return rows


def geo_business_score(aggregates: Sequence[GeoAggregate]) -> GeoBusinessScore:
    ranked = score_geos(aggregates)
    lagging = sorted(ranked, key=lambda row: row.score)[:LAGGING_GEO_LIMIT]
    return GeoBusinessScore(states=ranked[:TOP_GEO_LIMIT], laggingStates=lagging)
