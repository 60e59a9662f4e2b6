"""
Package initialization file for Control Tower models.

Exports the enumerations and the Pydantic response models so other modules can
import them from control_tower.models directly:

    from control_tower.models import OverviewResponse, Granularity, AlertSeverity
"""

# =============================================================================
# Enums
# =============================================================================

from control_tower.models.enums import (
    AlertSeverity,
    BusinessGrade,
    Granularity,
    NorthStarStatus,
    PlaybookModule,
    PlaybookPriority,
    RangePreset,
    SlaTier,
    SourceKind,
)

# =============================================================================
# Response Schemas
# =============================================================================

from control_tower.models.schemas import (
    ActionCenter,
    Alert,
    AlertsSummary,
    Attribution,
    AttributionRow,
    BusinessScore,
    BusinessScoreSection,
    CohortRow,
    Cohorts,
    DataQuality,
    ErrorResponse,
    Executive,
    Forecast,
    Funnel,
    FunnelStage,
    GeoBusinessScore,
    GeoOpportunity,
    GeoScoreRow,
    Modules,
    NorthStar,
    OverviewResponse,
    PipelineSla,
    Playbook,
    ScoreComponents,
    TopOpportunitiesGeo,
    TrendPoint,
)

__all__ = [
    # Enums
    "AlertSeverity",
    "BusinessGrade",
    "Granularity",
    "NorthStarStatus",
    "PlaybookModule",
    "PlaybookPriority",
    "RangePreset",
    "SlaTier",
    "SourceKind",
    # Schemas
    "ActionCenter",
    "Alert",
    "AlertsSummary",
    "Attribution",
    "AttributionRow",
    "BusinessScore",
    "BusinessScoreSection",
    "CohortRow",
    "Cohorts",
    "DataQuality",
    "ErrorResponse",
    "Executive",
    "Forecast",
    "Funnel",
    "FunnelStage",
    "GeoBusinessScore",
    "GeoOpportunity",
    "GeoScoreRow",
    "Modules",
    "NorthStar",
    "OverviewResponse",
    "PipelineSla",
    "Playbook",
    "ScoreComponents",
    "TopOpportunitiesGeo",
    "TrendPoint",
]
