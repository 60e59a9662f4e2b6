"""
Pydantic response models for the Control Tower overview service.

This module provides type-safe serialization for the consolidated executive
report returned by GET /api/dashboard/overview. Field names are camelCase so the
JSON document matches what the dashboard frontend already consumes.

Sections:
- Business score, north star and per-bucket trend
- Conversion funnel and forecast
- Geography scores and lost-opportunity rollups
- Pipeline SLA, data quality, cohorts and attribution
- Alerts and action-center playbooks
- Per-collaborator module status

Request-scoped working structures (TimeRange, SourceResult, NormalizedRow,
Bucket, GeoAggregate) are plain dataclasses living next to the services that
build them; only what leaves the process is modelled here.

All models use Pydantic v2 syntax.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from control_tower.models.enums import (
    AlertSeverity,
    BusinessGrade,
    Granularity,
    NorthStarStatus,
    PlaybookModule,
    PlaybookPriority,
)


# =============================================================================
# Business Score Models
# =============================================================================


class ScoreComponents(BaseModel):
    """
    The five sub-scores blended into the composite business score.

    Each component is rounded to an integer in [0, 100].
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "volume": 72,
                "revenue": 64,
                "appointmentQuality": 88,
                "coverage": 51,
                "lossHealth": 90,
            }
        }
    )

    volume: int = Field(..., ge=0, le=100, description="Weighted activity vs the busiest sibling")
    revenue: int = Field(..., ge=0, le=100, description="Successful revenue vs the top sibling")
    appointmentQuality: int = Field(..., ge=0, le=100, description="100 minus cancellation share")
    coverage: int = Field(..., ge=0, le=100, description="Calls and appointments per lead")
    lossHealth: int = Field(..., ge=0, le=100, description="100 minus weighted loss share")


class BusinessScore(BaseModel):
    """Composite score of one aggregate plus its components."""
    score: int = Field(..., ge=0, le=100)
    components: ScoreComponents


class TrendPoint(BaseModel):
    """One scored time bucket of the business-score trend."""
    key: str = Field(..., description="ISO-8601 UTC instant of the bucket start")
    label: str = Field(..., description="Human label (MM/DD, MM/DD - MM/DD, Mon YY)")
    score: int
    volume: int
    revenue: int
    appointmentQuality: int
    coverage: int
    lossHealth: int
    leads: int
    calls: int
    conversations: int
    appointments: int
    successfulRevenue: int
    lostCount: int
    lostValue: int


class BusinessScoreSection(BaseModel):
    """
    Whole-period business score.

    `current` is the mean of the per-bucket scores in `trend`; `previous` is the
    score of a single synthetic aggregate of previous-period totals.
    """
    current: int = Field(..., ge=0, le=100)
    previous: int = Field(..., ge=0, le=100)
    deltaPct: Optional[float] = None
    grade: BusinessGrade
    granularity: Granularity
    components: ScoreComponents
    trend: List[TrendPoint] = Field(default_factory=list)


class NorthStar(BaseModel):
    """Headline view of the business score."""
    score: int = Field(..., ge=0, le=100)
    previous: int = Field(..., ge=0, le=100)
    deltaPct: Optional[float] = None
    grade: BusinessGrade
    status: NorthStarStatus
    components: ScoreComponents


# =============================================================================
# Funnel Models
# =============================================================================


class FunnelStage(BaseModel):
    """
    One stage of the conversion funnel.

    deltaPct is null whenever the previous value is not positive, which keeps
    "no prior data" distinguishable from "0% change".
    """
    key: str
    label: str
    valueNow: float
    valuePrev: float
    deltaPct: Optional[float] = None


class ConversionRate(BaseModel):
    """Adjacent-stage ratio for both periods; null on a non-positive denominator."""
    now: Optional[float] = None
    prev: Optional[float] = None


class ConversionRates(BaseModel):
    ctr: ConversionRate
    clickToLead: ConversionRate
    leadToConversation: ConversionRate
    conversationToAppointment: ConversionRate
    appointmentToTransaction: ConversionRate


class Funnel(BaseModel):
    stages: List[FunnelStage]
    conversionRates: ConversionRates


# =============================================================================
# Forecast Models
# =============================================================================


class ForecastFigures(BaseModel):
    leads: float
    appointments: float
    revenue: float


class ForecastGap(BaseModel):
    leadsGap: float
    appointmentsGap: float
    revenueGap: float


class Forecast(BaseModel):
    """Linear 30-day projection of the current daily pace against targets."""
    rangeDays: int = Field(..., ge=1)
    currentPeriod: ForecastFigures
    dailyPace: ForecastFigures
    forecast30: ForecastFigures
    targetMonthly: ForecastFigures
    targetForRange: ForecastFigures
    forecastVsTarget: ForecastGap


# =============================================================================
# Geography Models
# =============================================================================


class GeoScoreRow(BaseModel):
    """Business score of one state."""
    state: str
    score: int = Field(..., ge=0, le=100)
    opportunitiesLost: int
    lostValue: float
    successfulRevenue: float
    leads: int
    calls: int
    conversations: int
    appointments: int
    uniqueContacts: int
    components: ScoreComponents


class GeoBusinessScore(BaseModel):
    states: List[GeoScoreRow] = Field(default_factory=list)
    laggingStates: List[GeoScoreRow] = Field(default_factory=list)


class GeoOpportunity(BaseModel):
    """Lost-booking opportunity rolled up for one geography."""
    name: str
    opportunities: int
    value: float
    uniqueContacts: int


class TopOpportunitiesGeo(BaseModel):
    states: List[GeoOpportunity] = Field(default_factory=list)
    counties: List[GeoOpportunity] = Field(default_factory=list)
    cities: List[GeoOpportunity] = Field(default_factory=list)


# =============================================================================
# Pipeline SLA Models
# =============================================================================


class LeadResponseSla(BaseModel):
    """
    Lead creation to first touch latency.

    Percentiles use the nearest-rank rule on a sorted copy; rates are null when
    no tracked lead has been touched yet.
    """
    trackedLeads: int
    withTouch: int
    noTouchYet: int
    within15m: int
    within60m: int
    breached60m: int
    medianMinutes: Optional[float] = None
    p90Minutes: Optional[float] = None
    sla15Rate: Optional[int] = None
    sla60Rate: Optional[int] = None


class LostOpenAging(BaseModel):
    """Age in days of lost bookings that are still open."""
    totalOpen: int
    avgDays: Optional[float] = None
    p90Days: Optional[float] = None
    over7d: int
    over14d: int


class PipelineSla(BaseModel):
    leadResponse: LeadResponseSla
    lostOpenAging: LostOpenAging


# =============================================================================
# Data Quality Models
# =============================================================================


class UnknownMapping(BaseModel):
    contactsStateUnknown: int
    conversationsStateUnknown: int
    appointmentsStateUnknown: int
    transactionsStateUnknown: int
    lostCountyUnknown: int
    lostCityUnknown: int


class MissingCritical(BaseModel):
    contactsMissingPhone: int
    contactsMissingEmail: int
    contactsMissingSource: int
    conversationsUnknownChannel: int


class DataQualityTotals(BaseModel):
    contacts: int
    conversations: int
    appointments: int
    transactions: int
    lostBookings: int


class DataQuality(BaseModel):
    """Unweighted mean of eight coverage checks plus the raw counts behind them."""
    score: int = Field(..., ge=0, le=100)
    checks: Dict[str, float] = Field(default_factory=dict)
    unknownMapping: UnknownMapping
    missingCritical: MissingCritical
    totals: DataQualityTotals


# =============================================================================
# Cohort & Attribution Models
# =============================================================================


class CohortRow(BaseModel):
    """Contacts grouped by the month of their first observed touch."""
    cohort: str = Field(..., description="YYYY-MM (UTC)")
    contacts: int
    buyers: int
    buyerRate: int
    revenue: float
    ltv: float


class Cohorts(BaseModel):
    """
    Whole-period retention figures.

    The 60d/90d rebooking rates are a heuristic bump over the repeat ratio and
    are approximate by construction.
    """
    activeContacts: int
    repeatContacts: int
    repeatBuyers: int
    rebookingRate30d: Optional[int] = None
    rebookingRate60d: Optional[int] = None
    rebookingRate90d: Optional[int] = None
    rows: List[CohortRow] = Field(default_factory=list)


class AttributionRow(BaseModel):
    source: str
    leads: int
    calls: int
    conversations: int
    appointments: int
    revenue: float
    leadToAppointmentRate: Optional[int] = None
    leadToRevenue: Optional[float] = None


class Attribution(BaseModel):
    topSources: List[AttributionRow] = Field(default_factory=list)


# =============================================================================
# Alert & Action Center Models
# =============================================================================


class Alert(BaseModel):
    """
    Threshold alert raised by the alert engine.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "cancel_rate_high",
                "severity": "critical",
                "title": "High cancellation rate",
                "message": "Appointments cancellation rate is above 25%.",
                "metric": "appointmentsCancellationRate",
                "value": 31.5,
                "threshold": 25,
                "action": "Audit booking confirmations/reminders.",
            }
        }
    )

    id: str
    severity: AlertSeverity
    title: str
    message: str
    metric: str
    value: float
    threshold: float
    action: str


class AlertsSummary(BaseModel):
    total: int
    critical: int
    warning: int
    info: int
    rows: List[Alert] = Field(default_factory=list)


class Playbook(BaseModel):
    """
    Execution playbook synthesized by the action center.
    """
    id: str
    priority: PlaybookPriority
    owner: str
    module: PlaybookModule
    title: str
    why: str
    expectedImpactUsd: int = Field(..., ge=0)
    triggerMetric: str
    ctaDashboard: str
    steps: List[str]
    status: str = "ready"


class ActionCenter(BaseModel):
    total: int = Field(..., ge=1)
    p1: int
    p2: int
    p3: int
    expectedImpactUsd: int
    playbooks: List[Playbook]


# =============================================================================
# Executive KPI Models
# =============================================================================


class Executive(BaseModel):
    """Period-over-period headline KPIs."""
    leadsNow: float
    leadsBefore: float
    leadsDeltaPct: Optional[float] = None
    callsNow: float
    callsBefore: float
    callsDeltaPct: Optional[float] = None
    conversationsNow: float
    conversationsBefore: float
    conversationsDeltaPct: Optional[float] = None
    transactionsNow: float
    transactionsBefore: float
    transactionsDeltaPct: Optional[float] = None
    transactionsRevenueNow: float
    transactionsRevenueBefore: float
    transactionsRevenueDeltaPct: Optional[float] = None
    transactionsAvgLtvNow: float
    appointmentsNow: float
    appointmentsBefore: float
    appointmentsDeltaPct: Optional[float] = None
    appointmentsLostNow: float
    appointmentsLostBefore: float
    appointmentsLostDeltaPct: Optional[float] = None
    appointmentsLostValueNow: float
    appointmentsLostValueBefore: float
    appointmentsLostValueDeltaPct: Optional[float] = None
    leadToCall: Optional[float] = None
    leadToCallDeltaPct: Optional[float] = None
    searchImpressionsNow: float
    searchImpressionsBefore: float
    searchImpressionsDeltaPct: Optional[float] = None
    searchClicksNow: float
    gscClicks: float
    gscImpressions: float
    gaSessions: float
    gaUsers: float
    gaConversions: float
    adsCost: float
    adsConversions: float
    adsConversionValue: float


# =============================================================================
# Module Status Models
# =============================================================================


class ModuleStatus(BaseModel):
    """Common fields of every collaborator module; `error` is authoritative."""
    ok: bool
    error: Optional[str] = None


class CallsModule(ModuleStatus):
    total: float
    missed: int
    missRate: Optional[float] = None
    prevTotal: float
    deltaPct: Optional[float] = None


class ContactsModule(ModuleStatus):
    total: float
    prevTotal: float
    deltaPct: Optional[float] = None
    contactableRate: float = 0
    emailRate: float = 0
    inferredFromOpportunity: float = 0


class ConversationsModule(ModuleStatus):
    total: float
    prevTotal: float
    deltaPct: Optional[float] = None
    mappedStateRate: float = 0
    topChannel: str = "unknown"


class TransactionsModule(ModuleStatus):
    total: float
    prevTotal: float
    deltaPct: Optional[float] = None
    grossAmount: float
    prevGrossAmount: float
    revenueDeltaPct: Optional[float] = None
    avgLifetimeOrderValue: float
    mappedStateRate: float = 0


class AppointmentsModule(ModuleStatus):
    total: float
    prevTotal: float
    deltaPct: Optional[float] = None
    showRate: float = 0
    noShowRate: float = 0
    cancellationRate: float = 0
    mappedStateRate: float = 0
    lostQualified: float
    lostQualifiedPrev: float
    lostQualifiedDeltaPct: Optional[float] = None
    potentialLostValue: float
    potentialLostValuePrev: float
    potentialLostValueDeltaPct: Optional[float] = None


class GscModule(ModuleStatus):
    totals: Dict[str, Any] = Field(default_factory=dict)
    deltas: Dict[str, Any] = Field(default_factory=dict)


class GaModule(ModuleStatus):
    summaryOverall: Dict[str, Any] = Field(default_factory=dict)
    compare: Dict[str, Any] = Field(default_factory=dict)


class AdsModule(ModuleStatus):
    summary: Dict[str, Any] = Field(default_factory=dict)


class SearchPerformanceModule(ModuleStatus):
    totals: Dict[str, float] = Field(default_factory=dict)
    deltas: Dict[str, Optional[float]] = Field(default_factory=dict)
    attempts: int = 1


class Modules(BaseModel):
    calls: CallsModule
    contacts: ContactsModule
    conversations: ConversationsModule
    transactions: TransactionsModule
    appointments: AppointmentsModule
    gsc: GscModule
    ga: GaModule
    ads: AdsModule
    searchPerformance: SearchPerformanceModule


# =============================================================================
# Overview Response
# =============================================================================


class RangeInfo(BaseModel):
    start: str
    end: str
    preset: str
    adsRange: str
    granularity: Granularity
    timezone: str


class PrevRangeInfo(BaseModel):
    """Comparison window; both bounds are empty strings when it is absent."""
    start: str = ""
    end: str = ""


class OverviewResponse(BaseModel):
    """
    Consolidated executive report.

    Built fresh for each request from that request's collaborator responses.
    """
    ok: bool = True
    range: RangeInfo
    prevRange: PrevRangeInfo
    executive: Executive
    businessScore: BusinessScoreSection
    northStar: NorthStar
    funnel: Funnel
    forecast: Forecast
    geoBusinessScore: GeoBusinessScore
    pipelineSla: PipelineSla
    dataQuality: DataQuality
    cohorts: Cohorts
    attribution: Attribution
    actionCenter: ActionCenter
    topOpportunitiesGeo: TopOpportunitiesGeo
    alerts: AlertsSummary
    modules: Modules


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx overview response."""
    ok: bool = False
    error: str
