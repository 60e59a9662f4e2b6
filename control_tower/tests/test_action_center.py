"""
Tests for the action-center playbook synthesizer.

Covers:
- Never-empty guarantee (scale_winners fallback)
- Each playbook's trigger, priority and impact estimate
- Section totals
"""

import pytest

from control_tower.models.enums import PlaybookPriority
from control_tower.services.action_center import ActionSignals, build_action_center, synthesize_playbooks


def make_signals(**overrides) -> ActionSignals:
    values = dict(
        cancellation_rate=5.0,
        no_show_rate=5.0,
        revenue_now=10000.0,
        revenue_before=9000.0,
        revenue_delta_pct=11.1,
        lost_value=0.0,
        data_quality_score=95,
        revenue_gap=500.0,
    )
    values.update(overrides)
    return ActionSignals(**values)


class TestPlaybooks:

    def test_healthy_business_scales_winners(self) -> None:
        playbooks = synthesize_playbooks(make_signals())

        assert [pb.id for pb in playbooks] == ['scale_winners']
        assert playbooks[0].priority == PlaybookPriority.P3
        assert playbooks[0].expectedImpactUsd == 800

    def test_scale_winners_impact_floor(self) -> None:
        playbooks = synthesize_playbooks(make_signals(revenue_now=0, revenue_before=0, revenue_delta_pct=0))
        assert playbooks[0].expectedImpactUsd == 300

    def test_bookings_reliability(self) -> None:
        playbook = synthesize_playbooks(make_signals(cancellation_rate=30, lost_value=4000))[0]

        assert playbook.id == 'bookings_reliability'
        assert playbook.priority == PlaybookPriority.P1
        assert playbook.why == 'Cancellation 30% and no-show 5% are above target.'
        assert playbook.expectedImpactUsd == 1000
        assert len(playbook.steps) == 3

    def test_no_show_alone_triggers_reliability(self) -> None:
        playbook = synthesize_playbooks(make_signals(no_show_rate=15))[0]
        assert playbook.id == 'bookings_reliability'
        assert playbook.expectedImpactUsd == 500

    @pytest.mark.parametrize('delta,fires', [(-10, True), (-9.9, False), (None, False)])
    def test_revenue_recovery_threshold(self, delta, fires: bool) -> None:
        ids = [pb.id for pb in synthesize_playbooks(make_signals(revenue_delta_pct=delta))]
        assert ('revenue_recovery' in ids) is fires

    def test_revenue_recovery_impact(self) -> None:
        playbook = synthesize_playbooks(make_signals(
            revenue_now=5000, revenue_before=10000, revenue_delta_pct=-50,
        ))[0]

        assert playbook.id == 'revenue_recovery'
        assert playbook.why == 'Revenue trend is down -50% vs previous period.'
        assert playbook.expectedImpactUsd == 2000

    def test_data_quality_hardening(self) -> None:
        playbook = synthesize_playbooks(make_signals(data_quality_score=70))[0]

        assert playbook.id == 'data_quality_hardening'
        assert playbook.priority == PlaybookPriority.P2
        assert playbook.expectedImpactUsd == 500

    def test_forecast_gap(self) -> None:
        playbook = synthesize_playbooks(make_signals(revenue_gap=-1234.4))[0]

        assert playbook.id == 'forecast_gap_close'
        assert playbook.owner == 'CEO'
        assert playbook.expectedImpactUsd == 1234
        assert '1234 USD' in playbook.why


class TestActionCenter:

    def test_totals(self) -> None:
        center = build_action_center(make_signals(
            cancellation_rate=30,
            revenue_delta_pct=-20,
            data_quality_score=60,
            revenue_gap=-100,
        ))

        assert [pb.id for pb in center.playbooks] == [
            'bookings_reliability',
            'revenue_recovery',
            'data_quality_hardening',
            'forecast_gap_close',
        ]
        assert center.total == 4
        assert (center.p1, center.p2, center.p3) == (3, 1, 0)
        assert center.expectedImpactUsd == sum(pb.expectedImpactUsd for pb in center.playbooks)

    def test_never_empty(self) -> None:
        center = build_action_center(make_signals())
        assert center.total >= 1
        assert center.p3 == 1
