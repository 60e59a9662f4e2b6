"""
Overview Service (response assembler and orchestration)

Builds the consolidated executive report for one request:

    resolve range -> collect sources (two waves) -> normalize rows
        -> period summaries, time buckets, geo tables
        -> business score, funnel, forecast, alerts, SLA, data quality,
           cohorts, attribution
        -> action center
        -> OverviewResponse

`generate_overview` performs the I/O; `assemble_overview` is a pure function of
the collected SourceBundle, so every section can be tested from canned payloads.

A degraded collaborator never fails the report: its module carries an `error`
and its contribution is empty. Only an invalid range (raised before any call)
or an unexpected exception during assembly aborts the request.
"""

import logging
import time
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from control_tower.core.config import Settings
from control_tower.models.schemas import (
    AdsModule,
    AppointmentsModule,
    BusinessScoreSection,
    CallsModule,
    ContactsModule,
    ConversationsModule,
    Executive,
    GaModule,
    GscModule,
    Modules,
    NorthStar,
    OverviewResponse,
    PrevRangeInfo,
    RangeInfo,
    SearchPerformanceModule,
    TopOpportunitiesGeo,
    TransactionsModule,
)
from control_tower.services.action_center import ActionSignals, build_action_center
from control_tower.services.aggregation import GeoBusinessTable, build_opportunity_tables, build_time_buckets
from control_tower.services.alerts import AlertSignals, evaluate_alerts, summarize_alerts
from control_tower.services.attribution import build_attribution
from control_tower.services.cohorts import build_cohorts
from control_tower.services.data_quality import build_data_quality
from control_tower.services.forecast import build_forecast
from control_tower.services.funnel import build_funnel
from control_tower.services.normalizer import NormalizedSources, normalize_bundle
from control_tower.services.pipeline_sla import build_pipeline_sla
from control_tower.services.range_resolver import ResolvedRange
from control_tower.services.scoring import (
    current_score,
    geo_business_score,
    grade_for,
    previous_score,
    score_trend,
    status_for,
)
from control_tower.services.source_gateway import SourceBundle, SourceGateway
from control_tower.services.stats import percent_change, rate, round_to, to_number
from control_tower.services.summaries import PeriodSummaries, summarize

logger = logging.getLogger(__name__)


def get_report_timezone(settings: Settings) -> tzinfo:
    """Report timezone from settings (raises ZoneInfoNotFoundError for bad names)."""
    return ZoneInfo(settings.report_timezone)


# =============================================================================
# Section Builders
# =============================================================================


def build_executive(summaries: PeriodSummaries) -> Executive:
    now, prev, marketing = summaries.current, summaries.previous, summaries.marketing

    lead_to_call = rate(now.leads, now.calls)
    lead_to_call_prev = rate(prev.leads, prev.calls)
    if lead_to_call is not None and lead_to_call_prev is not None:
        lead_to_call_delta = percent_change(lead_to_call, lead_to_call_prev)
    else:
        lead_to_call_delta = None

    return Executive(
        leadsNow=now.leads,
        leadsBefore=prev.leads,
        leadsDeltaPct=percent_change(now.leads, prev.leads),
        callsNow=now.calls,
        callsBefore=prev.calls,
        callsDeltaPct=percent_change(now.calls, prev.calls),
        conversationsNow=now.conversations,
        conversationsBefore=prev.conversations,
        conversationsDeltaPct=percent_change(now.conversations, prev.conversations),
        transactionsNow=now.transactions,
        transactionsBefore=prev.transactions,
        transactionsDeltaPct=percent_change(now.transactions, prev.transactions),
        transactionsRevenueNow=now.revenue,
        transactionsRevenueBefore=prev.revenue,
        transactionsRevenueDeltaPct=percent_change(now.revenue, prev.revenue),
        transactionsAvgLtvNow=summaries.kpis.avg_lifetime_order_value,
        appointmentsNow=now.appointments,
        appointmentsBefore=prev.appointments,
        appointmentsDeltaPct=percent_change(now.appointments, prev.appointments),
        appointmentsLostNow=now.lost_count,
        appointmentsLostBefore=prev.lost_count,
        appointmentsLostDeltaPct=percent_change(now.lost_count, prev.lost_count),
        appointmentsLostValueNow=now.lost_value,
        appointmentsLostValueBefore=prev.lost_value,
        appointmentsLostValueDeltaPct=percent_change(now.lost_value, prev.lost_value),
        leadToCall=lead_to_call,
        leadToCallDeltaPct=lead_to_call_delta,
        searchImpressionsNow=marketing.search_impressions_now,
        searchImpressionsBefore=marketing.search_impressions_before,
        searchImpressionsDeltaPct=percent_change(
            marketing.search_impressions_now, marketing.search_impressions_before
        ),
        searchClicksNow=marketing.search_clicks_now,
        gscClicks=to_number(marketing.gsc_totals.get("clicks")),
        gscImpressions=to_number(marketing.gsc_totals.get("impressions")),
        gaSessions=to_number(marketing.ga_summary.get("sessions")),
        gaUsers=to_number(marketing.ga_summary.get("users")),
        gaConversions=to_number(marketing.ga_summary.get("conversions")),
        adsCost=to_number(marketing.ads_summary.get("cost")),
        adsConversions=to_number(marketing.ads_summary.get("conversions")),
        adsConversionValue=to_number(marketing.ads_summary.get("conversionValue")),
    )


def build_modules(bundle: SourceBundle, summaries: PeriodSummaries, sources: NormalizedSources) -> Modules:
    now, prev, kpis, marketing = summaries.current, summaries.previous, summaries.kpis, summaries.marketing

    miss_rate = rate(summaries.missed_calls, len(sources.calls))

    return Modules(
        calls=CallsModule(
            ok=bundle.calls.ok,
            error=bundle.calls.error,
            total=now.calls,
            missed=summaries.missed_calls,
            missRate=None if miss_rate is None else round_to(miss_rate * 100, 1),
            prevTotal=prev.calls,
            deltaPct=percent_change(now.calls, prev.calls),
        ),
        contacts=ContactsModule(
            ok=bundle.contacts.ok,
            error=bundle.contacts.error,
            total=now.leads,
            prevTotal=prev.leads,
            deltaPct=percent_change(now.leads, prev.leads),
            contactableRate=kpis.contacts_phone_rate,
            emailRate=kpis.contacts_email_rate,
            inferredFromOpportunity=kpis.contacts_inferred_from_opportunity,
        ),
        conversations=ConversationsModule(
            ok=bundle.conversations.ok,
            error=bundle.conversations.error,
            total=now.conversations,
            prevTotal=prev.conversations,
            deltaPct=percent_change(now.conversations, prev.conversations),
            mappedStateRate=kpis.conversations_state_rate,
            topChannel=kpis.top_channel,
        ),
        transactions=TransactionsModule(
            ok=bundle.transactions.ok,
            error=bundle.transactions.error,
            total=now.transactions,
            prevTotal=prev.transactions,
            deltaPct=percent_change(now.transactions, prev.transactions),
            grossAmount=now.revenue,
            prevGrossAmount=prev.revenue,
            revenueDeltaPct=percent_change(now.revenue, prev.revenue),
            avgLifetimeOrderValue=kpis.avg_lifetime_order_value,
            mappedStateRate=kpis.transactions_state_rate,
        ),
        appointments=AppointmentsModule(
            ok=bundle.appointments.ok,
            error=bundle.appointments.error,
            total=now.appointments,
            prevTotal=prev.appointments,
            deltaPct=percent_change(now.appointments, prev.appointments),
            showRate=kpis.show_rate,
            noShowRate=kpis.no_show_rate,
            cancellationRate=kpis.cancellation_rate,
            mappedStateRate=kpis.appointments_state_rate,
            lostQualified=now.lost_count,
            lostQualifiedPrev=prev.lost_count,
            lostQualifiedDeltaPct=percent_change(now.lost_count, prev.lost_count),
            potentialLostValue=now.lost_value,
            potentialLostValuePrev=prev.lost_value,
            potentialLostValueDeltaPct=percent_change(now.lost_value, prev.lost_value),
        ),
        gsc=GscModule(
            ok=bundle.gsc.ok,
            error=bundle.gsc.error,
            totals=marketing.gsc_totals,
            deltas=marketing.gsc_deltas,
        ),
        ga=GaModule(
            ok=bundle.ga.ok,
            error=bundle.ga.error,
            summaryOverall=marketing.ga_summary,
            compare=marketing.ga_compare,
        ),
        ads=AdsModule(
            ok=bundle.ads.ok,
            error=bundle.ads.error,
            summary=marketing.ads_summary,
        ),
        searchPerformance=SearchPerformanceModule(
            ok=bundle.search_join.ok,
            error=bundle.search_join.error,
            totals={
                "clicks": marketing.search_clicks_now,
                "impressions": marketing.search_impressions_now,
            },
            deltas={
                "clicksPct": percent_change(marketing.search_clicks_now, marketing.search_clicks_before),
                "impressionsPct": percent_change(
                    marketing.search_impressions_now, marketing.search_impressions_before
                ),
            },
            attempts=bundle.search_join.attempts,
        ),
    )


# =============================================================================
# Assembly
# =============================================================================


def assemble_overview(
    bundle: SourceBundle,
    resolved: ResolvedRange,
    settings: Settings,
    now_ms: Optional[int] = None,
) -> OverviewResponse:
    """
    Build the full report from collected collaborator results.

    Args:
        bundle: One SourceResult per collaborator role.
        resolved: The resolved report window.
        settings: Supplies forecast targets.
        now_ms: Clock reading for lost-booking aging (defaults to now).

    Returns:
        OverviewResponse ready for serialization.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    sources = normalize_bundle(bundle, resolved.tz)
    summaries = summarize(bundle, sources)

    # Business score: mean of bucket scores vs one synthetic previous aggregate
    trend = score_trend(build_time_buckets(sources, resolved.granularity, resolved.tz))
    current = current_score(trend)
    previous = previous_score(summaries.previous)
    score_delta = percent_change(current.score, previous)
    grade = grade_for(current.score)

    geo_table = GeoBusinessTable().add_sources(sources)
    opp_states, opp_counties, opp_cities = build_opportunity_tables(sources.lost_bookings)

    forecast = build_forecast(summaries.current, resolved.current, settings)
    data_quality = build_data_quality(sources)
    alerts = evaluate_alerts(AlertSignals.from_summaries(summaries, current.score))

    revenue_delta = percent_change(summaries.current.revenue, summaries.previous.revenue)
    action_center = build_action_center(ActionSignals(
        cancellation_rate=summaries.kpis.cancellation_rate,
        no_show_rate=summaries.kpis.no_show_rate,
        revenue_now=summaries.current.revenue,
        revenue_before=summaries.previous.revenue,
        revenue_delta_pct=revenue_delta,
        lost_value=summaries.current.lost_value,
        data_quality_score=data_quality.score,
        revenue_gap=forecast.forecastVsTarget.revenueGap,
    ))

    return OverviewResponse(
        ok=True,
        range=RangeInfo(
            start=resolved.start_text,
            end=resolved.end_text,
            preset=resolved.preset,
            adsRange=resolved.ads_range,
            granularity=resolved.granularity,
            timezone=str(resolved.tz),
        ),
        prevRange=PrevRangeInfo(**resolved.previous_bounds),
        executive=build_executive(summaries),
        businessScore=BusinessScoreSection(
            current=current.score,
            previous=previous,
            deltaPct=score_delta,
            grade=grade,
            granularity=resolved.granularity,
            components=current.components,
            trend=trend,
        ),
        northStar=NorthStar(
            score=current.score,
            previous=previous,
            deltaPct=score_delta,
            grade=grade,
            status=status_for(current.score),
            components=current.components,
        ),
        funnel=build_funnel(summaries),
        forecast=forecast,
        geoBusinessScore=geo_business_score(geo_table.aggregates()),
        pipelineSla=build_pipeline_sla(sources, now_ms),
        dataQuality=data_quality,
        cohorts=build_cohorts(sources),
        attribution=build_attribution(sources),
        actionCenter=action_center,
        topOpportunitiesGeo=TopOpportunitiesGeo(
            states=opp_states.top(),
            counties=opp_counties.top(),
            cities=opp_cities.top(),
        ),
        alerts=summarize_alerts(alerts),
        modules=build_modules(bundle, summaries, sources),
    )


async def generate_overview(
    gateway: SourceGateway,
    resolved: ResolvedRange,
    settings: Settings,
    force: bool = False,
) -> OverviewResponse:
    """
    Collect every collaborator for `resolved` and assemble the report.

    Args:
        gateway: Source gateway for this request.
        resolved: The resolved report window.
        settings: Application settings.
        force: Ask collaborators to bypass their caches.

    Returns:
        OverviewResponse.
    """
    started = time.monotonic()
    bundle = await gateway.collect(resolved, force=force)
    response = assemble_overview(bundle, resolved, settings)
    logger.info(
        "Overview %s..%s (%s) assembled in %.2fs: score=%s alerts=%s playbooks=%s",
        resolved.start_text,
        resolved.end_text,
        resolved.preset,
        time.monotonic() - started,
        response.northStar.score,
        response.alerts.total,
        response.actionCenter.total,
    )
    return response
