"""
Control Tower Services Module

Business logic for the executive overview. Every service is request-scoped and
stateless: aggregates are built from one request's collaborator results and
discarded with the response.

Services (dependency order, leaves first):
- range_resolver: Report window, comparison window, granularity
- source_gateway: Outbound collaborator calls (concurrent + sequential waves)
- normalizer: Canonical rows and status classification predicates
- summaries: Collaborator-reported totals and KPIs per period
- aggregation: Time-bucket and geo tables
- scoring: Composite business score
- funnel, alerts, pipeline_sla, data_quality, cohorts, attribution, forecast
- action_center: Prioritized playbooks
- overview: Orchestration and response assembly

All services are designed to be consumed by the API layer (control_tower/api/).
"""

# =============================================================================
# Range & Sources
# =============================================================================

from control_tower.services.range_resolver import (
    ResolvedRange,
    TimeRange,
    ads_range_from_preset,
    choose_granularity,
    comparison_window,
    resolve_range,
    search_range_from_preset,
)
from control_tower.services.source_gateway import (
    SourceBundle,
    SourceGateway,
    SourceResult,
)
from control_tower.services.normalizer import (
    NormalizedRow,
    NormalizedSources,
    is_cancelled,
    is_missed_call,
    is_open_opportunity,
    is_successful_transaction,
    normalize_bundle,
)

# =============================================================================
# Aggregation & Scoring
# =============================================================================

from control_tower.services.aggregation import (
    Bucket,
    GeoAggregate,
    GeoBusinessTable,
    GeoOpportunityTable,
    TimeBucketTable,
)
from control_tower.services.scoring import Baselines, compute_score

# =============================================================================
# Overview
# =============================================================================

from control_tower.services.overview import assemble_overview, generate_overview

__all__ = [
    # Range & sources
    "ResolvedRange",
    "TimeRange",
    "ads_range_from_preset",
    "choose_granularity",
    "comparison_window",
    "resolve_range",
    "search_range_from_preset",
    "SourceBundle",
    "SourceGateway",
    "SourceResult",
    "NormalizedRow",
    "NormalizedSources",
    "is_cancelled",
    "is_missed_call",
    "is_open_opportunity",
    "is_successful_transaction",
    "normalize_bundle",
    # Aggregation & scoring
    "Bucket",
    "GeoAggregate",
    "GeoBusinessTable",
    "GeoOpportunityTable",
    "TimeBucketTable",
    "Baselines",
    "compute_score",
    # Overview
    "assemble_overview",
    "generate_overview",
]
