"""
Data-Quality Scorer

Eight coverage checks over the current-period rows, each
clamp(100 * (1 - missing / max(1, total))):

    state on contacts, conversations, appointments, transactions
    phone on contacts
    source on contacts
    county on lost bookings
    known channel on conversations

The score is their unweighted mean, rounded. An empty source scores 100 on its
checks (nothing is missing). Email and lost-booking city are reported as raw
counts but do not enter the score.
"""

from typing import Dict, List

from control_tower.models.schemas import DataQuality, DataQualityTotals, MissingCritical, UnknownMapping
from control_tower.services.normalizer import NormalizedRow, NormalizedSources, is_unknown_channel
from control_tower.services.stats import clamp, mean, round_half_up, round_to


def coverage(missing: int, total: int) -> float:
    return clamp(100 * (1 - missing / max(1, total)))


def _count_missing_state(rows: List[NormalizedRow]) -> int:
    return sum(1 for row in rows if not row.geo.state)


def build_data_quality(sources: NormalizedSources) -> DataQuality:
    contacts = sources.contacts
    conversations = sources.conversations
    lost = sources.lost_bookings

    unknown = UnknownMapping(
        contactsStateUnknown=_count_missing_state(contacts),
        conversationsStateUnknown=_count_missing_state(conversations),
        appointmentsStateUnknown=_count_missing_state(sources.appointments),
        transactionsStateUnknown=_count_missing_state(sources.transactions),
        lostCountyUnknown=sum(1 for row in lost if not row.geo.county),
        lostCityUnknown=sum(1 for row in lost if not row.geo.city),
    )
    missing = MissingCritical(
        contactsMissingPhone=sum(1 for row in contacts if not row.phone),
        contactsMissingEmail=sum(1 for row in contacts if not row.email),
        contactsMissingSource=sum(1 for row in contacts if not row.source),
        conversationsUnknownChannel=sum(1 for row in conversations if is_unknown_channel(row.channel)),
    )

    checks: Dict[str, float] = {
        "contactsState": coverage(unknown.contactsStateUnknown, len(contacts)),
        "conversationsState": coverage(unknown.conversationsStateUnknown, len(conversations)),
        "appointmentsState": coverage(unknown.appointmentsStateUnknown, len(sources.appointments)),
        "transactionsState": coverage(unknown.transactionsStateUnknown, len(sources.transactions)),
        "contactsPhone": coverage(missing.contactsMissingPhone, len(contacts)),
        "contactsSource": coverage(missing.contactsMissingSource, len(contacts)),
        "lostCounty": coverage(unknown.lostCountyUnknown, len(lost)),
        "conversationsChannel": coverage(missing.conversationsUnknownChannel, len(conversations)),
    }

    return DataQuality(
        score=round_half_up(mean(list(checks.values()))),
        checks={name: round_to(value, 1) for name, value in checks.items()},
        unknownMapping=unknown,
        missingCritical=missing,
        totals=DataQualityTotals(
            contacts=len(contacts),
            conversations=len(conversations),
            appointments=len(sources.appointments),
            transactions=len(sources.transactions),
            lostBookings=len(lost),
        ),
    )
