"""
Tests for period comparison helpers, the funnel and the alert engine.

Covers:
- percent_change / percent_change_finite zero-baseline behaviour
- Funnel stage values and conversion ratios from canned collaborator payloads
- Null ratios for non-positive denominators
- Alert rules: fixed order, thresholds, north-star mutual exclusivity
"""

import pytest

from control_tower.models.enums import AlertSeverity
from control_tower.services.alerts import ALERT_RULES, AlertSignals, evaluate_alerts, summarize_alerts
from control_tower.services.funnel import build_funnel
from control_tower.services.normalizer import normalize_bundle
from control_tower.services.stats import percent_change, percent_change_finite, rate, round_half_up, round_to
from control_tower.services.summaries import summarize
from control_tower.tests.conftest import failed_result


def make_signals(**overrides) -> AlertSignals:
    values = dict(
        revenue_delta_pct=5.0,
        cancellation_rate=5.0,
        no_show_rate=5.0,
        conversations_state_rate=95.0,
        conversations=10,
        lost_value=0.0,
        north_star_score=85,
    )
    values.update(overrides)
    return AlertSignals(**values)


# ============================================================
# Numeric Helpers
# ============================================================

class TestPeriodComparison:

    @pytest.mark.parametrize('current,previous,expected', [
        (120, 100, 20.0),
        (80, 100, -20.0),
        (0, 0, 0.0),
        (5, 0, 100.0),
        (-5, 0, 100.0),
    ])
    def test_percent_change(self, current, previous, expected) -> None:
        assert percent_change(current, previous) == pytest.approx(expected)

    def test_percent_change_non_finite(self) -> None:
        assert percent_change(float('inf'), 1) is None

    @pytest.mark.parametrize('previous', [0, -3])
    def test_percent_change_finite_needs_positive_baseline(self, previous) -> None:
        assert percent_change_finite(10, previous) is None

    def test_rate(self) -> None:
        assert rate(1, 4) == 0.25
        assert rate(1, 0) is None

    def test_half_up_rounding(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-2.5) == -2
        assert round_to(0.125, 2) == 0.13
        assert round_to(49.95, 1) == 50.0


# ============================================================
# Funnel
# ============================================================

class TestFunnel:

    def test_stages_and_ratios(self, bundle_factory) -> None:
        bundle = bundle_factory()
        funnel = build_funnel(summarize(bundle, normalize_bundle(bundle)))

        stages = {stage.key: stage for stage in funnel.stages}
        assert [stage.key for stage in funnel.stages] == [
            'impressions', 'clicks', 'leads', 'conversations', 'appointments', 'revenue',
        ]
        assert stages['impressions'].valueNow == 3000
        assert stages['impressions'].valuePrev == 2400
        assert stages['impressions'].deltaPct == pytest.approx(25.0)
        assert stages['clicks'].valueNow == 150
        assert stages['leads'].deltaPct == pytest.approx(50.0)
        assert stages['revenue'].deltaPct == pytest.approx(20.0)

        ratios = funnel.conversionRates
        assert ratios.ctr.now == pytest.approx(0.05)
        assert ratios.clickToLead.now == pytest.approx(0.02)
        assert ratios.appointmentToTransaction.now == pytest.approx(1.0)
        assert ratios.appointmentToTransaction.prev == pytest.approx(0.5)

    def test_no_previous_volume_gives_null_deltas(self, bundle_factory) -> None:
        bundle = bundle_factory(
            contacts_prev=failed_result(),
            conversations_prev=failed_result(),
            appointments_prev=failed_result(),
        )
        funnel = build_funnel(summarize(bundle, normalize_bundle(bundle)))

        stages = {stage.key: stage for stage in funnel.stages}
        assert stages['leads'].deltaPct is None
        assert stages['appointments'].deltaPct is None
        assert funnel.conversionRates.leadToConversation.prev is None
        assert funnel.conversionRates.conversationToAppointment.prev is None


# ============================================================
# Alerts
# ============================================================

class TestAlerts:

    def test_quiet_signals_raise_nothing(self) -> None:
        assert evaluate_alerts(make_signals()) == []

    def test_fixed_order(self) -> None:
        alerts = evaluate_alerts(make_signals(
            revenue_delta_pct=-20,
            cancellation_rate=30,
            no_show_rate=20,
            conversations_state_rate=50,
            lost_value=2000,
            north_star_score=40,
        ))

        assert [a.id for a in alerts] == [
            'revenue_drop',
            'cancel_rate_high',
            'no_show_rate_high',
            'state_coverage_conversations',
            'lost_value_high',
            'north_star_low',
        ]
        assert alerts[0].value == -20

    def test_rule_order_matches_registry(self) -> None:
        assert [rule.id for rule in ALERT_RULES][-2:] == ['north_star_low', 'north_star_mid']

    @pytest.mark.parametrize('score,expected', [
        (40, ['north_star_low']),
        (59, ['north_star_low']),
        (60, ['north_star_mid']),
        (74, ['north_star_mid']),
        (75, []),
    ])
    def test_north_star_rules_are_exclusive(self, score, expected) -> None:
        assert [a.id for a in evaluate_alerts(make_signals(north_star_score=score))] == expected

    @pytest.mark.parametrize('delta,fires', [(-15, True), (-14.9, False), (None, False)])
    def test_revenue_drop_threshold(self, delta, fires: bool) -> None:
        ids = [a.id for a in evaluate_alerts(make_signals(revenue_delta_pct=delta))]
        assert ('revenue_drop' in ids) is fires

    def test_state_coverage_needs_conversations(self) -> None:
        alerts = evaluate_alerts(make_signals(conversations_state_rate=10, conversations=0))
        assert alerts == []

    def test_threshold_boundaries(self) -> None:
        ids = [a.id for a in evaluate_alerts(make_signals(cancellation_rate=25, no_show_rate=15, lost_value=1000))]
        assert ids == ['cancel_rate_high', 'no_show_rate_high', 'lost_value_high']

    def test_summary_counts(self) -> None:
        alerts = evaluate_alerts(make_signals(cancellation_rate=30, no_show_rate=20, north_star_score=65))

        summary = summarize_alerts(alerts)

        assert summary.total == 3
        assert (summary.critical, summary.warning, summary.info) == (1, 1, 1)
        assert summary.rows[-1].severity == AlertSeverity.INFO
