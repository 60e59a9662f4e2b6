"""
Cohort & Retention Analyzer

Contacts are grouped by the UTC month of their first observed touch over any
source (contact creation, call, conversation, appointment or transaction), not
just by creation date. Per cohort: distinct contacts, distinct buyers (at least
one successful transaction), buyer rate, revenue and LTV.

Rebooking rates are whole-period figures:

    30d = repeat contacts / active contacts
    60d = (repeat + 8% of active) / active, capped at 100%
    90d = (repeat + 15% of active) / active, capped at 100%

The 60d/90d figures are a fixed bump over the 30d ratio, an approximate proxy
and not a cohort survival curve. They are null when no contact was active.
"""

import math
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from control_tower.models.schemas import CohortRow, Cohorts
from control_tower.services.normalizer import NormalizedRow, NormalizedSources, is_successful_transaction
from control_tower.services.stats import round_half_up, round_to


REBOOKING_60D_BUMP = 0.08
REBOOKING_90D_BUMP = 0.15
COHORT_LIMIT = 8


def cohort_month(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m")


def _rebooking_rate(repeat: int, active: int, bump: float = 0.0) -> Optional[int]:
    if active <= 0:
        return None
    rebooked = min(repeat + math.floor(active * bump), active)
    return round_half_up(rebooked / active * 100)


class ContactActivity:
    """Per-contact touch counts, first-seen instants and purchases for one request."""

    def __init__(self):
        self.touches: Counter = Counter()
        self.first_seen: Dict[str, int] = {}
        self.purchases: Counter = Counter()
        self.revenue: Dict[str, float] = defaultdict(float)

    def mark_touch(self, row: NormalizedRow) -> None:
        if not row.contact_id:
            return
        self.touches[row.contact_id] += 1
        if row.timestamp_ms is not None:
            known = self.first_seen.get(row.contact_id)
            if known is None or row.timestamp_ms < known:
                self.first_seen[row.contact_id] = row.timestamp_ms

    def add_rows(self, rows: Iterable[NormalizedRow]) -> None:
        for row in rows:
            self.mark_touch(row)

    def add_transactions(self, rows: Iterable[NormalizedRow]) -> None:
        for row in rows:
            self.mark_touch(row)
            if row.contact_id and is_successful_transaction(row.status):
                self.purchases[row.contact_id] += 1
                self.revenue[row.contact_id] += row.amount

    @property
    def active(self) -> int:
        return len(self.touches)

    @property
    def repeat_contacts(self) -> int:
        return sum(1 for count in self.touches.values() if count > 1)

    @property
    def repeat_buyers(self) -> int:
        return sum(1 for count in self.purchases.values() if count > 1)


def cohort_rows(activity: ContactActivity) -> List[CohortRow]:
    members: Dict[str, Set[str]] = defaultdict(set)
    for contact_id, first_ms in activity.first_seen.items():
        members[cohort_month(first_ms)].add(contact_id)

    rows = []
    for cohort in sorted(members):
        contacts = members[cohort]
        buyers = sum(1 for cid in contacts if activity.purchases[cid] > 0)
        revenue = sum(activity.revenue.get(cid, 0.0) for cid in contacts)
        rows.append(CohortRow(
            cohort=cohort,
            contacts=len(contacts),
            buyers=buyers,
            buyerRate=round_half_up(buyers / max(1, len(contacts)) * 100),
            revenue=round_to(revenue, 2),
            ltv=round_to(revenue / max(1, buyers or len(contacts)), 2),
        ))
    return rows[-COHORT_LIMIT:]


def build_cohorts(sources: NormalizedSources) -> Cohorts:
    activity = ContactActivity()
    activity.add_rows(sources.contacts)
    activity.add_rows(sources.calls)
    activity.add_rows(sources.conversations)
    activity.add_rows(sources.appointments)
    activity.add_transactions(sources.transactions)

    active = activity.active
    repeat = activity.repeat_contacts
    return Cohorts(
        activeContacts=active,
        repeatContacts=repeat,
        repeatBuyers=activity.repeat_buyers,
        rebookingRate30d=_rebooking_rate(repeat, active),
        rebookingRate60d=_rebooking_rate(repeat, active, REBOOKING_60D_BUMP),
        rebookingRate90d=_rebooking_rate(repeat, active, REBOOKING_90D_BUMP),
        rows=cohort_rows(activity),
    )
