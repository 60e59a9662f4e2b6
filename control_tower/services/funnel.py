"""
Funnel Builder Service

Six ordered stages from reach to revenue, current vs previous period:

    impressions -> clicks -> leads -> conversations -> appointments -> revenue

Impressions and clicks combine organic search console with paid ads. Stage
deltas use percent_change_finite, so a stage with no previous volume reports
null rather than a misleading +100%.

Conversion ratios between adjacent stages are null when their denominator is
not positive.
"""

from typing import Dict, List, Tuple

from control_tower.models.schemas import ConversionRate, ConversionRates, Funnel, FunnelStage
from control_tower.services.stats import percent_change_finite, rate, to_number
from control_tower.services.summaries import PeriodSummaries, PeriodTotals


STAGES: Tuple[Tuple[str, str], ...] = (
    ("impressions", "Impressions"),
    ("clicks", "Clicks"),
    ("leads", "Leads"),
    ("conversations", "Conversations"),
    ("appointments", "Appointments"),
    ("revenue", "Revenue"),
)

# (ratio name, numerator stage, denominator stage)
CONVERSIONS: Tuple[Tuple[str, str, str], ...] = (
    ("ctr", "clicks", "impressions"),
    ("clickToLead", "leads", "clicks"),
    ("leadToConversation", "conversations", "leads"),
    ("conversationToAppointment", "appointments", "conversations"),
    ("appointmentToTransaction", "transactions", "appointments"),
)


def _stage_values(totals: PeriodTotals, impressions: float, clicks: float) -> Dict[str, float]:
    return {
        "impressions": impressions,
        "clicks": clicks,
        "leads": totals.leads,
        "conversations": totals.conversations,
        "appointments": totals.appointments,
        "revenue": totals.revenue,
        "transactions": totals.transactions,
    }


def funnel_values(summaries: PeriodSummaries) -> Tuple[Dict[str, float], Dict[str, float]]:
    """Stage values (plus transactions) for the current and previous period."""
    marketing = summaries.marketing

    impressions_now = max(0.0, to_number(marketing.gsc_totals.get("impressions")) + marketing.ads_impressions_now)
    impressions_prev = max(
        0.0, to_number(marketing.gsc_prev_totals.get("impressions")) + marketing.ads_impressions_before
    )
    clicks_now = to_number(marketing.gsc_totals.get("clicks")) + marketing.ads_clicks_now
    clicks_prev = to_number(marketing.gsc_prev_totals.get("clicks")) + marketing.ads_clicks_before

    return (
        _stage_values(summaries.current, impressions_now, clicks_now),
        _stage_values(summaries.previous, impressions_prev, clicks_prev),
    )


def build_funnel(summaries: PeriodSummaries) -> Funnel:
    now, prev = funnel_values(summaries)

    stages: List[FunnelStage] = [
        FunnelStage(
            key=key,
            label=label,
            valueNow=now[key],
            valuePrev=prev[key],
            deltaPct=percent_change_finite(now[key], prev[key]),
        )
        for key, label in STAGES
    ]

    ratios = {
        name: ConversionRate(
            now=rate(now[numerator], now[denominator]),
            prev=rate(prev[numerator], prev[denominator]),
        )
        for name, numerator, denominator in CONVERSIONS
    }

    return Funnel(stages=stages, conversionRates=ConversionRates(**ratios))
