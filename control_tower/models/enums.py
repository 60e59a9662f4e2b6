"""
Enumeration definitions for the Control Tower overview service.

All enums inherit from both `str` and `Enum` so they serialize as plain strings
in Pydantic response models and compare equal to the raw query values.
"""

from enum import Enum


class RangePreset(str, Enum):
    """
    Report window shortcuts accepted by the overview endpoint.

    - TODAY / H24 / D1: the last day
    - D7 / D28: rolling 7 and 28 days
    - M1 / M3 / M6: calendar months back
    - Y1: one calendar year back
    - CUSTOM: explicit start/end bounds only
    """
    TODAY = "today"
    H24 = "24h"
    D1 = "1d"
    D7 = "7d"
    D28 = "28d"
    M1 = "1m"
    M3 = "3m"
    M6 = "6m"
    Y1 = "1y"
    CUSTOM = "custom"


class Granularity(str, Enum):
    """Time-bucket unit chosen from the requested range."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class AlertSeverity(str, Enum):
    """
    Severity levels for executive alerts.

    - critical: Requires immediate attention
    - warning: Needs attention soon
    - info: Informational notification
    """
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class BusinessGrade(str, Enum):
    """Letter grade for the composite business score (A >= 80 ... F < 50)."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class NorthStarStatus(str, Enum):
    """Coarse status band for the north-star score."""
    STRONG = "strong"
    MIXED = "mixed"
    CRITICAL = "critical"


class PlaybookPriority(str, Enum):
    """Execution priority of an action-center playbook."""
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class PlaybookModule(str, Enum):
    """Dashboard module that owns a playbook."""
    APPOINTMENTS = "appointments"
    TRANSACTIONS = "transactions"
    CONVERSATIONS = "conversations"
    LEADS = "leads"
    CALLS = "calls"
    GSC = "gsc"
    GA = "ga"
    ADS = "ads"
    OVERVIEW = "overview"


class SlaTier(str, Enum):
    """Lead-response SLA classification of one contact."""
    WITHIN_15M = "within_15m"
    WITHIN_60M = "within_60m"
    BREACHED_60M = "breached_60m"
    NO_TOUCH_YET = "no_touch_yet"


class SourceKind(str, Enum):
    """Row-bearing collaborator kinds handled by the normalizer."""
    CALLS = "calls"
    CONTACTS = "contacts"
    CONVERSATIONS = "conversations"
    TRANSACTIONS = "transactions"
    APPOINTMENTS = "appointments"
    LOST_BOOKINGS = "lost_bookings"
