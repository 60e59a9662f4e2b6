"""
Alert Engine Service

Stateless threshold rules over already-computed KPIs. Every rule is evaluated on
every run (no short-circuiting) and emits at most one Alert, in the fixed order
of ALERT_RULES, so the same inputs always produce the same list.

The two north-star rules are mutually exclusive: below 60 is critical, 60-74 is
informational.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from control_tower.models.enums import AlertSeverity
from control_tower.models.schemas import Alert, AlertsSummary
from control_tower.services.stats import percent_change
from control_tower.services.summaries import PeriodSummaries


@dataclass(frozen=True)
class AlertSignals:
    """Inputs to the alert rules."""
    revenue_delta_pct: Optional[float]
    cancellation_rate: float
    no_show_rate: float
    conversations_state_rate: float
    conversations: float
    lost_value: float
    north_star_score: float

    @classmethod
    def from_summaries(cls, summaries: PeriodSummaries, north_star_score: float) -> "AlertSignals":
        return cls(
            revenue_delta_pct=percent_change(summaries.current.revenue, summaries.previous.revenue),
            cancellation_rate=summaries.kpis.cancellation_rate,
            no_show_rate=summaries.kpis.no_show_rate,
            conversations_state_rate=summaries.kpis.conversations_state_rate,
            conversations=summaries.current.conversations,
            lost_value=summaries.current.lost_value,
            north_star_score=north_star_score,
        )


@dataclass(frozen=True)
class AlertRule:
    id: str
    severity: AlertSeverity
    title: str
    message: str
    metric: str
    threshold: float
    action: str
    value: Callable[[AlertSignals], Optional[float]]
    fires: Callable[[AlertSignals], bool]

    def evaluate(self, signals: AlertSignals) -> Optional[Alert]:
        if not self.fires(signals):
            return None
        return Alert(
            id=self.id,
            severity=self.severity,
            title=self.title,
            message=self.message,
            metric=self.metric,
            value=self.value(signals) or 0.0,
            threshold=self.threshold,
            action=self.action,
        )


def _revenue_dropped(signals: AlertSignals) -> bool:
    return signals.revenue_delta_pct is not None and signals.revenue_delta_pct <= -15


ALERT_RULES: List[AlertRule] = [
    AlertRule(
        id="revenue_drop",
        severity=AlertSeverity.CRITICAL,
        title="Revenue drop detected",
        message="Transactions revenue dropped more than 15% vs previous period.",
        metric="transactionsRevenueDeltaPct",
        threshold=-15,
        action="Prioritize recovery campaigns and call back high-intent lost bookings within 24h.",
        value=lambda s: s.revenue_delta_pct,
        fires=_revenue_dropped,
    ),
    AlertRule(
        id="cancel_rate_high",
        severity=AlertSeverity.CRITICAL,
        title="High cancellation rate",
        message="Appointments cancellation rate is above 25%.",
        metric="appointmentsCancellationRate",
        threshold=25,
        action="Audit booking confirmations/reminders and enforce double confirmation for high-risk slots.",
        value=lambda s: s.cancellation_rate,
        fires=lambda s: s.cancellation_rate >= 25,
    ),
    AlertRule(
        id="no_show_rate_high",
        severity=AlertSeverity.WARNING,
        title="No-show risk rising",
        message="No-show rate is above 15%.",
        metric="appointmentsNoShowRate",
        threshold=15,
        action="Add 24h + 2h reminders and require reconfirmation for first-time contacts.",
        value=lambda s: s.no_show_rate,
        fires=lambda s: s.no_show_rate >= 15,
    ),
    AlertRule(
        id="state_coverage_conversations",
        severity=AlertSeverity.WARNING,
        title="State mapping coverage low (Conversations)",
        message="Less than 70% of conversations are mapped to a state.",
        metric="conversationsStateRate",
        threshold=70,
        action="Enforce CRM address/state enrichment to improve geo-level decision quality.",
        value=lambda s: s.conversations_state_rate,
        fires=lambda s: s.conversations_state_rate < 70 and s.conversations > 0,
    ),
    AlertRule(
        id="lost_value_high",
        severity=AlertSeverity.WARNING,
        title="High lost booking value",
        message="Potential lost value from qualified bookings is above $1,000.",
        metric="lostBookingsValue",
        threshold=1000,
        action="Launch reactivation workflow segmented by county + top service intent.",
        value=lambda s: s.lost_value,
        fires=lambda s: s.lost_value >= 1000,
    ),
    AlertRule(
        id="north_star_low",
        severity=AlertSeverity.CRITICAL,
        title="North Star score below target",
        message="Business score is below 60 and needs immediate operating focus.",
        metric="northStarScore",
        threshold=60,
        action="Run 7-day CEO execution plan: pipeline hygiene, follow-up SLA, conversion bottleneck fixes.",
        value=lambda s: s.north_star_score,
        fires=lambda s: s.north_star_score < 60,
    ),
    AlertRule(
        id="north_star_mid",
        severity=AlertSeverity.INFO,
        title="North Star in mixed zone",
        message="Business score is between 60 and 74: stable but below high-performance target.",
        metric="northStarScore",
        threshold=75,
        action="Optimize top 2 funnel bottlenecks and monitor score trend weekly.",
        value=lambda s: s.north_star_score,
        fires=lambda s: 60 <= s.north_star_score < 75,
    ),
]


def evaluate_alerts(signals: AlertSignals) -> List[Alert]:
    alerts = []
    for rule in ALERT_RULES:
        alert = rule.evaluate(signals)
        if alert is not None:
            alerts.append(alert)
    return alerts


def summarize_alerts(alerts: List[Alert]) -> AlertsSummary:
    return AlertsSummary(
        total=len(alerts),
        critical=sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL),
        warning=sum(1 for a in alerts if a.severity == AlertSeverity.WARNING),
        info=sum(1 for a in alerts if a.severity == AlertSeverity.INFO),
        rows=alerts,
    )
