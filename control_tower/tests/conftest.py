"""
Pytest Configuration and Shared Fixtures for Control Tower Tests.

This module provides fixtures and configuration for all tests, supporting:
- Async test execution with pytest-asyncio (asyncio_mode = auto)
- A scripted collaborator served through httpx.MockTransport, so the source
  gateway issues real HTTP requests without any network access
- A recording sleep so sequential-wave pacing can be asserted without waiting
- Canned collaborator payloads shaped like the production dashboard feeds
- A SourceBundle factory for exercising the pure assembly stages

Report window used throughout:
    current  = 2024-03-04T00:00:00.000Z .. 2024-03-10T23:59:59.999Z (preset 7d)
    previous = 2024-02-26T00:00:00.000Z .. 2024-03-03T23:59:59.999Z

Dependency References:
- control_tower/core/config.py: Settings for targets, pacing and timezone
- control_tower/services/source_gateway.py: SourceGateway, SourceResult, SourceBundle
- control_tower/services/range_resolver.py: resolve_range
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from control_tower.core.config import Settings
from control_tower.services.range_resolver import ResolvedRange, resolve_range
from control_tower.services.source_gateway import (
    ADS_JOIN_PATH,
    APPOINTMENTS_PATH,
    CALLS_PATH,
    CONTACTS_PATH,
    CONVERSATIONS_PATH,
    GA_JOIN_PATH,
    GSC_AGGREGATE_PATH,
    SEARCH_JOIN_PATH,
    TRANSACTIONS_PATH,
    SourceBundle,
    SourceGateway,
    SourceResult,
)


WINDOW_START = "2024-03-04T00:00:00.000Z"
WINDOW_END = "2024-03-10T23:59:59.999Z"
PREVIOUS_START = "2024-02-26T00:00:00.000Z"
PREVIOUS_END = "2024-03-03T23:59:59.999Z"

COLLABORATOR_BASE_URL = "http://collaborators.test"


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - slow: Marks tests as slow (deselect with -m "not slow")
    - integration: Marks tests that drive the full FastAPI app

    Usage:
        # Run only fast tests:
        pytest -m "not slow"
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests that exercise the HTTP app end to end'
    )


# ============================================================
# SETTINGS FIXTURES
# ============================================================

@pytest.fixture
def settings() -> Settings:
    """
    Settings isolated from the process environment and any .env file.

    Returns:
        Settings with default targets (300 leads, 80 appointments, 25000 USD)
        and the default 500 ms sequential pacing.
    """
    return Settings(
        _env_file=None,
        collaborator_base_url=COLLABORATOR_BASE_URL,
        report_timezone='UTC',
    )


@pytest.fixture
def resolved_range() -> ResolvedRange:
    """The 7-day report window shared by most tests."""
    return resolve_range(preset='7d', start=WINDOW_START, end=WINDOW_END)


# ============================================================
# COLLABORATOR PAYLOAD FIXTURES
# ============================================================

def _calls_payload() -> Dict[str, Any]:
    # Spreadsheet-style export; two of the four calls were missed.
    return {
        'total': 4,
        'rows': [
            {'Phone Call Start Time': '2024-03-04 09:10:00', 'Phone Call Status': 'completed',
             'Contact ID': 'c1', 'State': 'TX'},
            {'Phone Call Start Time': '2024-03-05 14:00:00', 'Phone Call Status': 'no-answer',
             'Contact ID': 'c2', 'State': 'TX'},
            {'Phone Call Start Time': '2024-03-06 11:30:00', 'Phone Call Status': 'voicemail',
             'Contact ID': 'c3', 'State': 'FL'},
            {'Phone Call Start Time': '2024-03-07 16:45:00', 'Phone Call Status': 'answered',
             'Contact ID': 'c1', 'Address State': 'TX'},
        ],
    }


def _contacts_payload() -> Dict[str, Any]:
    return {
        'total': 3,
        'kpis': {'phoneRate': 100, 'emailRate': 66.7, 'inferredFromOpportunity': 0},
        'rows': [
            {'contactId': 'c1', 'dateAdded': '2024-03-04T09:00:00Z', 'state': 'TX',
             'phone': '+15550001', 'email': 'a@example.com', 'source': 'google'},
            {'contactId': 'c2', 'dateAdded': '2024-03-05T13:00:00Z', 'state': 'TX',
             'phone': '+15550002', 'email': 'b@example.com', 'source': 'facebook'},
            {'contactId': 'c3', 'dateAdded': '2024-03-06T08:00:00Z', 'state': 'FL',
             'phone': '+15550003', 'email': '', 'source': 'google'},
        ],
    }


def _conversations_payload() -> Dict[str, Any]:
    return {
        'total': 2,
        'kpis': {'stateRate': 100},
        'byChannel': {'sms': 3, 'email': 1},
        'rows': [
            {'contactId': 'c1', 'lastMessageAt': '2024-03-04T09:30:00Z', 'state': 'TX', 'channel': 'sms'},
            {'contactId': 'c3', 'lastMessageAt': '2024-03-06T09:00:00Z', 'state': 'FL', 'channel': 'email'},
        ],
    }


def _transactions_payload() -> Dict[str, Any]:
    return {
        'total': 2,
        'kpis': {'grossAmount': 1200, 'avgLifetimeOrderValue': 600, 'stateRate': 100},
        'rows': [
            {'contactId': 'c1', 'createdAt': '2024-03-08T10:00:00Z', 'state': 'TX',
             'status': 'Payment Succeeded', 'amount': 1200},
            {'contactId': 'c2', 'createdAt': '2024-03-09T10:00:00Z', 'state': 'TX',
             'status': 'failed', 'amount': 300},
        ],
    }


def _appointments_payload() -> Dict[str, Any]:
    return {
        'total': 2,
        'kpis': {
            'cancelled': 1,
            'cancellationRate': 10,
            'noShowRate': 5,
            'showRate': 85,
            'stateRate': 100,
        },
        'rows': [
            {'contactId': 'c1', 'startAt': '2024-03-07T15:00:00Z', 'state': 'TX', 'statusNormalized': 'showed'},
            {'contactId': 'c3', 'startAt': '2024-03-08T15:00:00Z', 'state': 'FL', 'statusNormalized': 'cancelled'},
        ],
        'lostBookings': {
            'total': 2,
            'valueTotal': 800,
            'rows': [
                {'contactId': 'c2', 'createdAt': '2024-03-05T12:00:00Z', 'state': 'TX',
                 'county': 'Harris', 'city': 'Houston', 'status': 'open', 'value': 500},
                {'contactId': 'c3', 'createdAt': '2024-03-06T12:00:00Z', 'state': 'FL',
                 'county': 'Miami-Dade', 'city': 'Miami', 'status': 'lost', 'value': 300},
            ],
        },
    }


def _previous_payloads() -> Dict[str, Dict[str, Any]]:
    return {
        CALLS_PATH: {'total': 2, 'rows': []},
        CONTACTS_PATH: {'total': 2, 'rows': []},
        CONVERSATIONS_PATH: {'total': 2, 'rows': []},
        TRANSACTIONS_PATH: {'total': 1, 'kpis': {'grossAmount': 1000}, 'rows': []},
        APPOINTMENTS_PATH: {
            'total': 2,
            'kpis': {'cancelled': 0},
            'rows': [],
            'lostBookings': {'total': 1, 'valueTotal': 400, 'rows': []},
        },
    }


@pytest.fixture
def collaborator_payloads() -> Dict[str, Dict[str, Any]]:
    """
    Current-period collaborator payloads keyed by collaborator path.

    Covers every row-bearing feed plus the marketing summaries:
    - calls: 4 rows, 2 missed (no-answer, voicemail)
    - contacts: 3 leads across TX and FL
    - transactions: one successful 1200 USD payment and one failed charge
    - appointments: 2 rows (1 cancelled) and 2 lost bookings worth 800 USD
    """
    return {
        CALLS_PATH: _calls_payload(),
        CONTACTS_PATH: _contacts_payload(),
        CONVERSATIONS_PATH: _conversations_payload(),
        TRANSACTIONS_PATH: _transactions_payload(),
        APPOINTMENTS_PATH: _appointments_payload(),
        GSC_AGGREGATE_PATH: {
            'totals': {'clicks': 100, 'impressions': 2000},
            'prevTotals': {'clicks': 80, 'impressions': 1600},
            'deltas': {'clicksPct': 25.0, 'impressionsPct': 25.0},
        },
        SEARCH_JOIN_PATH: {
            'summaryOverall': {'clicks': 120, 'impressions': 2400},
            'compare': {'previous': {'clicks': 100, 'impressions': 2000}},
        },
        GA_JOIN_PATH: {
            'summaryOverall': {'sessions': 900, 'users': 700, 'conversions': 12},
            'compare': {'sessionsPct': 5.0},
        },
        ADS_JOIN_PATH: {
            'summaryOverall': {'impressions': 1000, 'clicks': 50, 'cost': 200,
                               'conversions': 5, 'conversionValue': 900},
            'summaryPrev': {'impressions': 800, 'clicks': 40},
        },
    }


@pytest.fixture
def previous_payloads() -> Dict[str, Dict[str, Any]]:
    """Previous-period payloads for the five windowed CRM feeds."""
    return _previous_payloads()


# ============================================================
# SCRIPTED COLLABORATOR
# ============================================================

class CollaboratorStub:
    """
    In-process stand-in for the dashboard collaborators.

    Serves canned payloads by path; requests whose `start` parameter equals
    PREVIOUS_START get the previous-period payload. Every request is recorded.

    Attributes:
        statuses: Per-path queue of status codes to answer with before falling
            back to 200 (e.g. {SEARCH_JOIN_PATH: [503]} fails the first attempt).
        broken: Paths that raise a transport error instead of answering.
        raw_bodies: Paths that answer 200 with a non-JSON body.
    """

    def __init__(self, payloads: Dict[str, Dict[str, Any]], previous: Dict[str, Dict[str, Any]]):
        self.payloads = payloads
        self.previous = previous
        self.statuses: Dict[str, List[int]] = {}
        self.broken: set = set()
        self.raw_bodies: Dict[str, str] = {}
        self.requests: List[Tuple[str, Dict[str, str]]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        params = dict(request.url.params)
        self.requests.append((path, params))

        if path in self.broken:
            raise httpx.ConnectError('connection refused', request=request)

        queue = self.statuses.get(path)
        if queue:
            status = queue.pop(0)
            return httpx.Response(status, json={'error': f'upstream {status}'})

        if path in self.raw_bodies:
            return httpx.Response(200, text=self.raw_bodies[path])

        if params.get('start') == PREVIOUS_START and path in self.previous:
            return httpx.Response(200, json=self.previous[path])
        return httpx.Response(200, json=self.payloads.get(path, {}))

    def paths(self) -> List[str]:
        return [path for path, _ in self.requests]

    def calls_to(self, path: str) -> List[Dict[str, str]]:
        return [params for recorded, params in self.requests if recorded == path]


@pytest.fixture
def collaborator(
    collaborator_payloads: Dict[str, Dict[str, Any]],
    previous_payloads: Dict[str, Dict[str, Any]],
) -> CollaboratorStub:
    """Scripted collaborator serving the canned payloads."""
    return CollaboratorStub(collaborator_payloads, previous_payloads)


@pytest.fixture
def recorded_sleeps() -> List[float]:
    """Delays (seconds) the gateway asked to sleep, in order."""
    return []


@pytest_asyncio.fixture
async def collaborator_client(collaborator: CollaboratorStub):
    """
    AsyncClient routed to the scripted collaborator.

    Yields:
        httpx.AsyncClient bound to COLLABORATOR_BASE_URL
    """
    client = httpx.AsyncClient(
        base_url=COLLABORATOR_BASE_URL,
        transport=httpx.MockTransport(collaborator.handler),
    )
    yield client
    await client.aclose()


@pytest.fixture
def gateway(collaborator_client: httpx.AsyncClient, recorded_sleeps: List[float]) -> SourceGateway:
    """
    SourceGateway over the scripted collaborator whose pauses are recorded
    instead of slept.
    """
    async def fake_sleep(seconds: float) -> None:
        recorded_sleeps.append(seconds)

    return SourceGateway(
        collaborator_client,
        sequential_delay_ms=500,
        search_join_max_attempts=2,
        sleep=fake_sleep,
    )


# ============================================================
# SOURCE BUNDLE FACTORY
# ============================================================

def ok_result(payload: Optional[Dict[str, Any]] = None) -> SourceResult:
    return SourceResult(ok=True, status=200, payload=copy.deepcopy(payload or {}))


def failed_result(status: int = 500, error: str = 'upstream failure') -> SourceResult:
    return SourceResult(ok=False, status=status, payload={'error': error})


@pytest.fixture
def bundle_factory(
    collaborator_payloads: Dict[str, Dict[str, Any]],
    previous_payloads: Dict[str, Dict[str, Any]],
) -> Callable[..., SourceBundle]:
    """
    Build a SourceBundle of successful results from the canned payloads.

    Keyword overrides replace individual roles:

        bundle = bundle_factory(calls_prev=failed_result(503))
    """
    def factory(**overrides: SourceResult) -> SourceBundle:
        results = {
            'calls': ok_result(collaborator_payloads[CALLS_PATH]),
            'calls_prev': ok_result(previous_payloads[CALLS_PATH]),
            'contacts': ok_result(collaborator_payloads[CONTACTS_PATH]),
            'contacts_prev': ok_result(previous_payloads[CONTACTS_PATH]),
            'conversations': ok_result(collaborator_payloads[CONVERSATIONS_PATH]),
            'conversations_prev': ok_result(previous_payloads[CONVERSATIONS_PATH]),
            'transactions': ok_result(collaborator_payloads[TRANSACTIONS_PATH]),
            'transactions_prev': ok_result(previous_payloads[TRANSACTIONS_PATH]),
            'appointments': ok_result(collaborator_payloads[APPOINTMENTS_PATH]),
            'appointments_prev': ok_result(previous_payloads[APPOINTMENTS_PATH]),
            'gsc': ok_result(collaborator_payloads[GSC_AGGREGATE_PATH]),
            'search_join': ok_result(collaborator_payloads[SEARCH_JOIN_PATH]),
            'ga': ok_result(collaborator_payloads[GA_JOIN_PATH]),
            'ads': ok_result(collaborator_payloads[ADS_JOIN_PATH]),
        }
        results.update(overrides)
        return SourceBundle(**results)

    return factory
