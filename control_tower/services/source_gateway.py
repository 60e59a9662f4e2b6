"""
Source Gateway Service

Issues every outbound collaborator call for one overview request and folds each
outcome into a SourceResult. Nothing in here raises on a collaborator failure:
transport errors, non-2xx statuses and unparseable bodies all become
`SourceResult(ok=False, ...)` and the rest of the report renders around them.

Call plan for one request:

    1. Search sync triggers    gsc/sync + bing/sync, concurrently, never fatal
    2. Concurrent wave         calls cur/prev, contacts cur/prev, gsc aggregate,
                               search-performance join, ga join, ads join
    3. Sequential wave         conversations cur/prev, transactions cur/prev,
                               appointments cur/prev, one at a time with a fixed
                               pause between consecutive calls

The CRM collaborators behind conversations, transactions and appointments
throttle hard (HTTP 429); their ordering and pacing are part of the contract.

The search-performance join is the only call that is retried, once, when the
first attempt comes back not-ok.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_result, stop_after_attempt

from control_tower.core.errors import CollaboratorError
from control_tower.services.range_resolver import ResolvedRange, TimeRange, search_sync_params
from control_tower.services.stats import to_text

logger = logging.getLogger(__name__)


# =============================================================================
# Collaborator Paths
# =============================================================================

CALLS_PATH = "/api/dashboard/calls"
CONTACTS_PATH = "/api/dashboard/contacts"
CONVERSATIONS_PATH = "/api/dashboard/conversations"
TRANSACTIONS_PATH = "/api/dashboard/transactions"
APPOINTMENTS_PATH = "/api/dashboard/appointments"
GSC_AGGREGATE_PATH = "/api/dashboard/gsc/aggregate"
GSC_SYNC_PATH = "/api/dashboard/gsc/sync"
BING_SYNC_PATH = "/api/dashboard/bing/sync"
SEARCH_JOIN_PATH = "/api/dashboard/search-performance/join"
GA_JOIN_PATH = "/api/dashboard/ga/join"
ADS_JOIN_PATH = "/api/dashboard/ads/join"

Params = Dict[str, str]
SleepFn = Callable[[float], Awaitable[Any]]


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class SourceResult:
    """
    Outcome of one collaborator call.

    Attributes:
        ok: True for a 2xx response.
        status: HTTP status, or 0 when no response was received (transport
            failure, or a previous-period call skipped for lack of a window).
        payload: Parsed JSON object; `{"raw": text}` when the body was not a
            JSON object.
        attempts: Number of attempts made (only the search join retries).
    """
    ok: bool
    status: int
    payload: Dict[str, Any] = field(default_factory=dict)
    attempts: int = 1

    @property
    def error(self) -> Optional[str]:
        """Per-module error text: the payload's own error, else "HTTP <status>"."""
        if self.ok:
            return None
        return to_text(self.payload.get("error")) or f"HTTP {self.status}"

    @classmethod
    def skipped(cls) -> "SourceResult":
        return cls(ok=False, status=0, payload={}, attempts=0)


@dataclass
class SourceBundle:
    """All collaborator results of one request, keyed by role."""
    calls: SourceResult
    calls_prev: SourceResult
    contacts: SourceResult
    contacts_prev: SourceResult
    conversations: SourceResult
    conversations_prev: SourceResult
    transactions: SourceResult
    transactions_prev: SourceResult
    appointments: SourceResult
    appointments_prev: SourceResult
    gsc: SourceResult
    search_join: SourceResult
    ga: SourceResult
    ads: SourceResult


@dataclass
class SequentialCall:
    """One slot of the sequential wave; params=None means skip the call."""
    name: str
    path: str
    params: Optional[Params]


# =============================================================================
# Gateway
# =============================================================================


def window_params(window: Optional[TimeRange], start_text: str = "", end_text: str = "") -> Optional[Params]:
    """start/end query params for a window, or None when the window is absent."""
    if window is None:
        return None
    return {
        "start": start_text or window.start_iso,
        "end": end_text or window.end_iso,
    }


def _with(params: Optional[Params], extra: Params) -> Optional[Params]:
    if params is None:
        return None
    merged = dict(params)
    merged.update(extra)
    return merged


async def _skipped() -> SourceResult:
    return SourceResult.skipped()


class SourceGateway:
    """
    Collaborator client for one overview request.

    The underlying httpx.AsyncClient is shared process-wide; the gateway itself
    holds no per-request state beyond its configuration.

    Args:
        client: AsyncClient bound to the collaborator base URL.
        sequential_delay_ms: Pause between consecutive sequential-wave calls.
        search_join_max_attempts: Total attempts for the search join.
        sleep: Awaitable sleep; injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        sequential_delay_ms: int = 500,
        search_join_max_attempts: int = 2,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.client = client
        self.sequential_delay_ms = sequential_delay_ms
        self.search_join_max_attempts = search_join_max_attempts
        self._sleep = sleep

    async def fetch_json(self, path: str, params: Optional[Params] = None) -> SourceResult:
        """
        GET a collaborator and capture the outcome.

        Never raises for transport, status or parse failures.
        """
        try:
            response = await self.client.get(path, params=params)
        except httpx.HTTPError as exc:
            failure = CollaboratorError(path, status=0, reason=str(exc) or exc.__class__.__name__)
            logger.warning("Collaborator %s unreachable: %s", path, failure.message)
            return SourceResult(ok=False, status=0, payload={"error": failure.message})

        text = response.text
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        payload = parsed if isinstance(parsed, dict) else {"raw": text}

        result = SourceResult(ok=response.is_success, status=response.status_code, payload=payload)
        if not result.ok:
            logger.warning("Collaborator %s degraded: %s", path, result.error)
        return result

    async def trigger_search_sync(self, params: Params) -> Tuple[SourceResult, SourceResult]:
        """Fire the search-console and Bing sync triggers together."""
        gsc, bing = await asyncio.gather(
            self.fetch_json(GSC_SYNC_PATH, params),
            self.fetch_json(BING_SYNC_PATH, params),
        )
        logger.info("Search sync triggered (gsc=%s, bing=%s)", gsc.status, bing.status)
        return gsc, bing

    async def fetch_search_join(self, params: Params) -> SourceResult:
        """Search-performance join with one bounded retry on a not-ok result."""
        attempts = 0

        async def attempt() -> SourceResult:
            nonlocal attempts
            attempts += 1
            return await self.fetch_json(SEARCH_JOIN_PATH, params)

        retryer = AsyncRetrying(
            stop=stop_after_attempt(self.search_join_max_attempts),
            retry=retry_if_result(lambda result: not result.ok),
            before_sleep=before_sleep_log(logger, logging.INFO),
            retry_error_callback=lambda state: state.outcome.result(),
        )
        result = await retryer(attempt)
        result.attempts = attempts
        return result

    async def run_concurrent_wave(
        self,
        resolved: ResolvedRange,
        force: bool = False,
    ) -> Dict[str, SourceResult]:
        """
        Dispatch the low-throttle collaborators together and await them as a group.

        Previous-window calls resolve to SourceResult.skipped() when the
        comparison window is absent.
        """
        current = window_params(resolved.current, resolved.start_text, resolved.end_text)
        previous = window_params(resolved.previous)
        bust = {"bust": "1"} if force else {}
        force_q = {"force": "1"} if force else {}
        sync_params = search_sync_params(resolved, force)

        def maybe(path: str, params: Optional[Params]) -> Awaitable[SourceResult]:
            if params is None:
                return _skipped()
            return self.fetch_json(path, params)

        names = ["calls", "calls_prev", "contacts", "contacts_prev", "gsc", "search_join", "ga", "ads"]
        results = await asyncio.gather(
            self.fetch_json(CALLS_PATH, current),
            maybe(CALLS_PATH, previous),
            self.fetch_json(CONTACTS_PATH, _with(current, bust)),
            maybe(CONTACTS_PATH, _with(previous, bust)),
            self.fetch_json(GSC_AGGREGATE_PATH, _with(current, force_q)),
            self.fetch_search_join(sync_params),
            self.fetch_json(GA_JOIN_PATH, {"compare": "1", **force_q}),
            self.fetch_json(ADS_JOIN_PATH, {"range": resolved.ads_range, **force_q}),
        )
        return dict(zip(names, results))

    async def run_sequential_wave(self, calls: List[SequentialCall]) -> Dict[str, SourceResult]:
        """
        Run rate-limit-sensitive calls strictly one after another.

        The pause is applied between every pair of consecutive slots, including
        slots that were skipped.
        """
        results: Dict[str, SourceResult] = {}
        delay = self.sequential_delay_ms / 1000
        for index, call in enumerate(calls):
            if index > 0 and delay > 0:
                await self._sleep(delay)
            if call.params is None:
                results[call.name] = SourceResult.skipped()
            else:
                results[call.name] = await self.fetch_json(call.path, call.params)
        return results

    def sequential_plan(self, resolved: ResolvedRange, force: bool = False) -> List[SequentialCall]:
        current = window_params(resolved.current, resolved.start_text, resolved.end_text)
        previous = window_params(resolved.previous)
        bust = {"bust": "1"} if force else {}
        plan = []
        for name, path in (
            ("conversations", CONVERSATIONS_PATH),
            ("transactions", TRANSACTIONS_PATH),
            ("appointments", APPOINTMENTS_PATH),
        ):
            plan.append(SequentialCall(name, path, _with(current, bust)))
            plan.append(SequentialCall(f"{name}_prev", path, _with(previous, bust)))
        return plan

    async def collect(self, resolved: ResolvedRange, force: bool = False) -> SourceBundle:
        """
        Execute the full call plan for one request.

        Args:
            resolved: The resolved report window.
            force: Ask collaborators to bypass their caches.

        Returns:
            SourceBundle with one SourceResult per collaborator role.
        """
        await self.trigger_search_sync(search_sync_params(resolved, force))
        first = await self.run_concurrent_wave(resolved, force)
        second = await self.run_sequential_wave(self.sequential_plan(resolved, force))

        # skipped previous-period slots have attempts == 0 and are not failures
        degraded = sorted(
            name for name, result in {**first, **second}.items()
            if not result.ok and result.attempts > 0
        )
        if degraded:
            logger.warning("Overview collected with degraded sources: %s", ", ".join(degraded))

        return SourceBundle(**first, **second)
