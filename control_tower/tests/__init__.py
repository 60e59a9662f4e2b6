'''
Control Tower Test Suite

Test Modules:
-------------
- test_range_resolver.py: Report window and comparison window
  - Equal-length, non-overlapping previous window
  - Granularity from presets and custom spans
  - Missing/unparseable bounds

- test_source_gateway.py: Collaborator calls
  - Failure capture (transport, status, non-JSON)
  - Sequential wave order and pacing
  - Search-performance join retry

- test_normalizer.py: Row mapping and status predicates
- test_aggregation.py: Time buckets and geo tables
- test_scoring.py: Business score, grades, period scores
- test_funnel_alerts.py: Period deltas, funnel, alert rules
- test_analytics.py: SLA, data quality, cohorts, attribution, forecast
- test_action_center.py: Playbook synthesis
- test_overview.py: Assembly and the /api/dashboard/overview endpoint

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

__all__ = []
