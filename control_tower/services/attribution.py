"""
Attribution Aggregator

Assigns each contact one source, the first non-empty `source` among its own
contact records ("unknown" otherwise), and rolls activity up per source:

- leads: every contact row, by that row's own source
- calls, conversations, appointments: via the contact's assigned source
- revenue: successful transactions only, via the contact's assigned source

A source seen only on later activity (a call or appointment) is never used to
back-fill a contact without one; such activity lands under "unknown".
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from control_tower.models.schemas import Attribution, AttributionRow
from control_tower.services.normalizer import NormalizedSources, is_successful_transaction
from control_tower.services.stats import round_half_up, round_to


UNKNOWN_SOURCE = "unknown"
TOP_SOURCE_LIMIT = 10


@dataclass
class _SourceCounter:
    source: str
    leads: int = 0
    calls: int = 0
    conversations: int = 0
    appointments: int = 0
    revenue: float = 0.0

    def to_row(self) -> AttributionRow:
        revenue = round_to(self.revenue, 2)
        if self.leads > 0:
            appointment_rate: Optional[int] = round_half_up(self.appointments / self.leads * 100)
            revenue_per_lead: Optional[float] = round_to(self.revenue / self.leads, 2)
        else:
            appointment_rate = None
            revenue_per_lead = None
        return AttributionRow(
            source=self.source,
            leads=self.leads,
            calls=self.calls,
            conversations=self.conversations,
            appointments=self.appointments,
            revenue=revenue,
            leadToAppointmentRate=appointment_rate,
            leadToRevenue=revenue_per_lead,
        )


def source_by_contact(sources: NormalizedSources) -> Dict[str, str]:
    assigned: Dict[str, str] = {}
    for row in sources.contacts:
        if row.contact_id and row.contact_id not in assigned:
            assigned[row.contact_id] = row.source or UNKNOWN_SOURCE
    return assigned


def build_attribution(sources: NormalizedSources) -> Attribution:
    assigned = source_by_contact(sources)
    counters: Dict[str, _SourceCounter] = {}

    def counter_for(source: str) -> _SourceCounter:
        name = source or UNKNOWN_SOURCE
        if name not in counters:
            counters[name] = _SourceCounter(source=name)
        return counters[name]

    def contact_source(contact_id: Optional[str]) -> str:
        return assigned.get(contact_id or "", UNKNOWN_SOURCE)

    for row in sources.contacts:
        counter_for(row.source).leads += 1
    for row in sources.calls:
        counter_for(contact_source(row.contact_id)).calls += 1
    for row in sources.conversations:
        counter_for(contact_source(row.contact_id)).conversations += 1
    for row in sources.appointments:
        counter_for(contact_source(row.contact_id)).appointments += 1
    for row in sources.transactions:
        if is_successful_transaction(row.status):
            counter_for(contact_source(row.contact_id)).revenue += row.amount

    rows: List[AttributionRow] = [counter.to_row() for counter in counters.values()]
    rows.sort(key=lambda row: (-row.revenue, -row.leads))
    return Attribution(topSources=rows[:TOP_SOURCE_LIMIT])
