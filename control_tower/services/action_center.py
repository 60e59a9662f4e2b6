"""
Action-Center Synthesizer

Turns already-computed signals into prioritized execution playbooks. Each rule
is independent of the others; when none fires a single "scale winners" playbook
is emitted so the action list is never empty.

| Playbook               | Fires when                          | Priority | Owner        |
|------------------------|-------------------------------------|----------|--------------|
| bookings_reliability   | cancellation >= 25 or no-show >= 15 | P1       | Ops Manager  |
| revenue_recovery       | revenue delta <= -10 %              | P1       | Revenue Lead |
| data_quality_hardening | data-quality score < 85             | P2       | CRM Admin    |
| forecast_gap_close     | 30-day revenue forecast gap < 0     | P1       | CEO          |
| scale_winners          | nothing above fired                 | P3       | Growth Lead  |

Impact estimates are rough heuristics (a share of the value at stake with a
floor), rounded to whole dollars.
"""

from dataclasses import dataclass
from typing import List, Optional

from control_tower.models.enums import PlaybookModule, PlaybookPriority
from control_tower.models.schemas import ActionCenter, Playbook
from control_tower.services.stats import round_half_up, round_to


def _fmt(value: float) -> str:
    """Render a number without a trailing .0 (30.0 -> "30", 31.5 -> "31.5")."""
    return f"{value:g}"


@dataclass(frozen=True)
class ActionSignals:
    cancellation_rate: float
    no_show_rate: float
    revenue_now: float
    revenue_before: float
    revenue_delta_pct: Optional[float]
    lost_value: float
    data_quality_score: float
    revenue_gap: float


def bookings_reliability(signals: ActionSignals) -> Optional[Playbook]:
    if signals.cancellation_rate < 25 and signals.no_show_rate < 15:
        return None
    return Playbook(
        id="bookings_reliability",
        priority=PlaybookPriority.P1,
        owner="Ops Manager",
        module=PlaybookModule.APPOINTMENTS,
        title="Stabilize booking reliability (cancel/no-show)",
        why=(
            f"Cancellation {_fmt(signals.cancellation_rate)}% and "
            f"no-show {_fmt(signals.no_show_rate)}% are above target."
        ),
        expectedImpactUsd=round_half_up(max(500, signals.lost_value * 0.25)),
        triggerMetric="appointmentsCancellationRate / appointmentsNoShowRate",
        ctaDashboard="/dashboard/appointments",
        steps=[
            "Enable 24h and 2h reminder sequence for all calendars",
            "Require same-day reconfirmation for first-time contacts",
            "Escalate high-risk counties with manual callback",
        ],
    )


def revenue_recovery(signals: ActionSignals) -> Optional[Playbook]:
    delta = signals.revenue_delta_pct or 0.0
    if delta > -10:
        return None
    return Playbook(
        id="revenue_recovery",
        priority=PlaybookPriority.P1,
        owner="Revenue Lead",
        module=PlaybookModule.TRANSACTIONS,
        title="Revenue recovery sprint",
        why=f"Revenue trend is down {_fmt(round_to(delta, 1))}% vs previous period.",
        expectedImpactUsd=round_half_up(max(1000, abs(signals.revenue_before - signals.revenue_now) * 0.4)),
        triggerMetric="transactionsRevenueDeltaPct",
        ctaDashboard="/dashboard/transactions",
        steps=[
            "Prioritize follow-up on top lost-value counties",
            "Reactivate open qualified bookings older than 7 days",
            "Bundle high-converting treatments in targeted offers",
        ],
    )


def data_quality_hardening(signals: ActionSignals) -> Optional[Playbook]:
    if signals.data_quality_score >= 85:
        return None
    return Playbook(
        id="data_quality_hardening",
        priority=PlaybookPriority.P2,
        owner="CRM Admin",
        module=PlaybookModule.OVERVIEW,
        title="Data quality hardening",
        why=f"Data Quality Score is {_fmt(signals.data_quality_score)}, limiting decision reliability.",
        expectedImpactUsd=round_half_up(max(300, signals.revenue_now * 0.05)),
        triggerMetric="dataQuality.score",
        ctaDashboard="/dashboard",
        steps=[
            "Enforce required state/county/city in intake forms",
            "Backfill missing source on high-value leads first",
            "Normalize unknown conversation channels weekly",
        ],
    )


def forecast_gap_close(signals: ActionSignals) -> Optional[Playbook]:
    if signals.revenue_gap >= 0:
        return None
    gap = round_half_up(abs(signals.revenue_gap))
    return Playbook(
        id="forecast_gap_close",
        priority=PlaybookPriority.P1,
        owner="CEO",
        module=PlaybookModule.OVERVIEW,
        title="Close monthly revenue forecast gap",
        why=f"30-day forecast is below target by {gap} USD.",
        expectedImpactUsd=gap,
        triggerMetric="forecast.forecastVsTarget.revenueGap",
        ctaDashboard="/dashboard",
        steps=[
            "Focus team on top 3 geographies by lost value",
            "Run fast reactivation campaign for stale open opportunities",
            "Shift paid budget to highest lead-to-revenue sources",
        ],
    )


def scale_winners(signals: ActionSignals) -> Playbook:
    return Playbook(
        id="scale_winners",
        priority=PlaybookPriority.P3,
        owner="Growth Lead",
        module=PlaybookModule.OVERVIEW,
        title="Scale winning geos and channels",
        why="No critical issues detected; focus on compounding growth.",
        expectedImpactUsd=round_half_up(max(300, signals.revenue_now * 0.08)),
        triggerMetric="northStarScore",
        ctaDashboard="/dashboard",
        steps=[
            "Increase effort in top-performing state cohorts",
            "Expand best-converting source playbooks to adjacent counties",
            "Audit weekly capacity to protect show rate while scaling",
        ],
    )


PLAYBOOK_RULES = (
    bookings_reliability,
    revenue_recovery,
    data_quality_hardening,
    forecast_gap_close,
)


def synthesize_playbooks(signals: ActionSignals) -> List[Playbook]:
    playbooks = [pb for pb in (rule(signals) for rule in PLAYBOOK_RULES) if pb is not None]
    if not playbooks:
        playbooks.append(scale_winners(signals))
    return playbooks


def build_action_center(signals: ActionSignals) -> ActionCenter:
    playbooks = synthesize_playbooks(signals)
    return ActionCenter(
        total=len(playbooks),
        p1=sum(1 for pb in playbooks if pb.priority == PlaybookPriority.P1),
        p2=sum(1 for pb in playbooks if pb.priority == PlaybookPriority.P2),
        p3=sum(1 for pb in playbooks if pb.priority == PlaybookPriority.P3),
        expectedImpactUsd=sum(pb.expectedImpactUsd for pb in playbooks),
        playbooks=playbooks,
    )
