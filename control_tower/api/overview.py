"""
FastAPI router module for the executive overview.

Implements GET /api/dashboard/overview, the consolidated report that merges
calls, contacts, conversations, transactions, appointments, search console,
search performance, analytics and ads into one JSON document.

API Contract:
- 200: { ok: true, range, prevRange, executive, businessScore, northStar,
         funnel, forecast, geoBusinessScore, pipelineSla, dataQuality, cohorts,
         attribution, actionCenter, topOpportunitiesGeo, alerts, modules }
- 400: { ok: false, error } for a missing or unparseable range; no
       collaborator is called
- 500: { ok: false, error } for an unexpected failure while assembling; never
       a partial body

Degraded collaborators do not change the status code: their module in
`modules` carries the error and the rest of the report renders normally.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from control_tower.core.dependencies import SettingsDep, SourceGatewayDep
from control_tower.core.errors import InvalidRangeError
from control_tower.models.schemas import ErrorResponse, OverviewResponse
from control_tower.services.overview import generate_overview, get_report_timezone
from control_tower.services.range_resolver import DEFAULT_PRESET, resolve_range


# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@router.get(
    "/overview",
    response_model=OverviewResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_overview(
    gateway: SourceGatewayDep,
    settings: SettingsDep,
    start: Optional[str] = Query(default=None, description="Window start (ISO-8601)"),
    end: Optional[str] = Query(default=None, description="Window end (ISO-8601)"),
    preset: str = Query(default=DEFAULT_PRESET, description="Range preset token"),
    ads_range: Optional[str] = Query(default=None, alias="adsRange", description="Ads provider range override"),
    force: Optional[str] = Query(default=None, description="'1' asks collaborators to bypass caches"),
):
    """
    Build the executive overview for one window.

    Args:
        gateway: Source gateway for this request.
        settings: Application settings.
        start: Window start; required.
        end: Window end; required.
        preset: Preset token used for granularity and provider ranges.
        ads_range: Overrides the ads provider range derived from the preset.
        force: "1" to bust collaborator caches.

    Returns:
        OverviewResponse, or an ErrorResponse JSON body with status 400/500.
    """
    if not (start or "").strip() or not (end or "").strip():
        return _error(400, "Missing start/end query params.")

    try:
        resolved = resolve_range(
            preset=preset,
            start=start,
            end=end,
            ads_range=ads_range,
            tz=get_report_timezone(settings),
        )
        return await generate_overview(
            gateway,
            resolved,
            settings,
            force=(force or "").strip() == "1",
        )
    except InvalidRangeError as e:
        logger.info("Rejected overview range: %s (%s)", e.message, e.details)
        return _error(e.status_code, e.message)
    except Exception as e:
        logger.exception("Error building overview for %s..%s", start, end)
        return _error(500, str(e) or "overview failed")
