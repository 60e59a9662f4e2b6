"""
Period summaries: headline totals and KPIs per collaborator and period.

Collaborators report their own totals (`total`, `kpis.*`, `lostBookings.*`)
alongside the rows, and those totals are authoritative for the executive KPIs:
they count rows the normalizer may have left out of time buckets. A degraded
collaborator contributes zeros.

The marketing feeds (search console, search-performance join, analytics, ads)
have no rows; only their summary objects are read here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from control_tower.services.normalizer import NormalizedSources, is_missed_call
from control_tower.services.source_gateway import SourceBundle, SourceResult
from control_tower.services.stats import to_number


def payload_section(result: SourceResult, key: str) -> Dict[str, Any]:
    """A dict-valued payload key of a successful result, else {}."""
    if not result.ok:
        return {}
    value = result.payload.get(key)
    return value if isinstance(value, dict) else {}


def reported_total(result: SourceResult) -> float:
    return to_number(result.payload.get("total")) if result.ok else 0.0


def kpi_value(result: SourceResult, name: str) -> float:
    return to_number(payload_section(result, "kpis").get(name))


def lost_bookings_value(result: SourceResult, name: str) -> float:
    return to_number(payload_section(result, "lostBookings").get(name))


# =============================================================================
# Period Totals
# =============================================================================


@dataclass
class PeriodTotals:
    """Collaborator-reported totals for one period."""
    leads: float = 0.0
    calls: float = 0.0
    conversations: float = 0.0
    transactions: float = 0.0
    revenue: float = 0.0
    appointments: float = 0.0
    cancelled_appointments: float = 0.0
    lost_count: float = 0.0
    lost_value: float = 0.0

    @classmethod
    def from_results(
        cls,
        contacts: SourceResult,
        calls: SourceResult,
        conversations: SourceResult,
        transactions: SourceResult,
        appointments: SourceResult,
    ) -> "PeriodTotals":
        return cls(
            leads=reported_total(contacts),
            calls=reported_total(calls),
            conversations=reported_total(conversations),
            transactions=reported_total(transactions),
            revenue=kpi_value(transactions, "grossAmount"),
            appointments=reported_total(appointments),
            cancelled_appointments=kpi_value(appointments, "cancelled"),
            lost_count=lost_bookings_value(appointments, "total"),
            lost_value=lost_bookings_value(appointments, "valueTotal"),
        )


@dataclass
class CrmKpis:
    """Current-period rates reported by the CRM collaborators (percent values)."""
    avg_lifetime_order_value: float = 0.0
    cancellation_rate: float = 0.0
    no_show_rate: float = 0.0
    show_rate: float = 0.0
    appointments_state_rate: float = 0.0
    conversations_state_rate: float = 0.0
    transactions_state_rate: float = 0.0
    contacts_phone_rate: float = 0.0
    contacts_email_rate: float = 0.0
    contacts_inferred_from_opportunity: float = 0.0
    top_channel: str = "unknown"


def top_channel(result: SourceResult) -> str:
    """Channel with the highest count in `byChannel`; first one wins a tie."""
    by_channel = payload_section(result, "byChannel")
    if not by_channel:
        return "unknown"
    name = max(by_channel, key=lambda key: to_number(by_channel[key]))
    return str(name) or "unknown"


# =============================================================================
# Marketing Summary
# =============================================================================


@dataclass
class MarketingSummary:
    """Summary objects of the marketing collaborators, {} when degraded."""
    gsc_totals: Dict[str, Any] = field(default_factory=dict)
    gsc_deltas: Dict[str, Any] = field(default_factory=dict)
    gsc_prev_totals: Dict[str, Any] = field(default_factory=dict)
    search_summary: Dict[str, Any] = field(default_factory=dict)
    search_previous: Dict[str, Any] = field(default_factory=dict)
    ga_summary: Dict[str, Any] = field(default_factory=dict)
    ga_compare: Dict[str, Any] = field(default_factory=dict)
    ads_summary: Dict[str, Any] = field(default_factory=dict)
    ads_prev_summary: Dict[str, Any] = field(default_factory=dict)
    ads_compare: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_bundle(cls, bundle: SourceBundle) -> "MarketingSummary":
        search_compare = payload_section(bundle.search_join, "compare")
        search_previous = search_compare.get("previous")

        # ads join reports either summaryOverall or a plain summary
        ads_summary = payload_section(bundle.ads, "summaryOverall") or payload_section(bundle.ads, "summary")

        return cls(
            gsc_totals=payload_section(bundle.gsc, "totals"),
            gsc_deltas=payload_section(bundle.gsc, "deltas"),
            gsc_prev_totals=payload_section(bundle.gsc, "prevTotals"),
            search_summary=payload_section(bundle.search_join, "summaryOverall"),
            search_previous=search_previous if isinstance(search_previous, dict) else {},
            ga_summary=payload_section(bundle.ga, "summaryOverall"),
            ga_compare=payload_section(bundle.ga, "compare"),
            ads_summary=ads_summary,
            ads_prev_summary=payload_section(bundle.ads, "summaryPrev"),
            ads_compare=payload_section(bundle.ads, "compare"),
        )

    @property
    def search_impressions_now(self) -> float:
        return to_number(self.search_summary.get("impressions"))

    @property
    def search_impressions_before(self) -> float:
        return to_number(self.search_previous.get("impressions"))

    @property
    def search_clicks_now(self) -> float:
        return to_number(self.search_summary.get("clicks"))

    @property
    def search_clicks_before(self) -> float:
        return to_number(self.search_previous.get("clicks"))

    @property
    def ads_impressions_now(self) -> float:
        return max(0.0, to_number(self.ads_summary.get("impressions")))

    @property
    def ads_impressions_before(self) -> float:
        return max(
            0.0,
            to_number(self.ads_prev_summary.get("impressions"))
            or to_number(self.ads_compare.get("prevImpressions")),
        )

    @property
    def ads_clicks_now(self) -> float:
        return to_number(self.ads_summary.get("clicks"))

    @property
    def ads_clicks_before(self) -> float:
        return to_number(self.ads_prev_summary.get("clicks")) or to_number(self.ads_compare.get("prevClicks"))


# =============================================================================
# Request Summary
# =============================================================================


@dataclass
class PeriodSummaries:
    current: PeriodTotals
    previous: PeriodTotals
    kpis: CrmKpis
    marketing: MarketingSummary
    missed_calls: int = 0


def summarize(bundle: SourceBundle, sources: NormalizedSources) -> PeriodSummaries:
    """
    Build both period totals plus the current CRM KPIs and marketing summary.

    Args:
        bundle: Collaborator results of the request.
        sources: Normalized current-period rows (for the missed-call count).

    Returns:
        PeriodSummaries for the executive, funnel, alert and forecast stages.
    """
    current = PeriodTotals.from_results(
        bundle.contacts, bundle.calls, bundle.conversations, bundle.transactions, bundle.appointments,
    )
    previous = PeriodTotals.from_results(
        bundle.contacts_prev,
        bundle.calls_prev,
        bundle.conversations_prev,
        bundle.transactions_prev,
        bundle.appointments_prev,
    )
    kpis = CrmKpis(
        avg_lifetime_order_value=kpi_value(bundle.transactions, "avgLifetimeOrderValue"),
        cancellation_rate=kpi_value(bundle.appointments, "cancellationRate"),
        no_show_rate=kpi_value(bundle.appointments, "noShowRate"),
        show_rate=kpi_value(bundle.appointments, "showRate"),
        appointments_state_rate=kpi_value(bundle.appointments, "stateRate"),
        conversations_state_rate=kpi_value(bundle.conversations, "stateRate"),
        transactions_state_rate=kpi_value(bundle.transactions, "stateRate"),
        contacts_phone_rate=kpi_value(bundle.contacts, "phoneRate"),
        contacts_email_rate=kpi_value(bundle.contacts, "emailRate"),
        contacts_inferred_from_opportunity=kpi_value(bundle.contacts, "inferredFromOpportunity"),
        top_channel=top_channel(bundle.conversations),
    )
    return PeriodSummaries(
        current=current,
        previous=previous,
        kpis=kpis,
        marketing=MarketingSummary.from_bundle(bundle),
        missed_calls=sum(1 for row in sources.calls if is_missed_call(row.status)),
    )
