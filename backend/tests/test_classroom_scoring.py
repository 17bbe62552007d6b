"""
Classroom scoring heuristics.
"""

import pytest

from airmonitor.services import classroom_scoring as scoring


def test_mean_default():
    assert scoring.mean([]) == 0.0
    assert scoring.mean([], 400) == 400
    assert scoring.mean([1, 2, 3]) == 2


def test_temperature_stability_is_population_std():
    assert scoring.temperature_stability([]) == 0.0
    assert scoring.temperature_stability([20, 22]) == pytest.approx(1.0)
    assert scoring.temperature_stability([21, 21, 21]) == 0.0


def test_room_usage_hours_counts_hours_at_500_ppm():
    co2_by_hour = {
        9: [600],
        10: [450],
        11: [520, 480],  # mean exactly 500
    }
    assert scoring.room_usage_hours(co2_by_hour, 8, 18) == pytest.approx(2 / 24 * 10)


def test_efficiency_score_bounds():
    assert scoring.efficiency_score(5, 8, 18) == 50
    assert scoring.efficiency_score(20, 8, 18) == 100
    assert scoring.efficiency_score(5, 18, 8) == 0


@pytest.mark.parametrize("max_co2, expected", [
    (400, 100),
    (1400, 50),
    (5000, 0),
])
def test_ventilation_score(max_co2, expected):
    assert scoring.ventilation_score(max_co2) == expected


@pytest.mark.parametrize("score, rating", [
    (95, "Excellent"),
    (80, "Excellent"),
    (60, "Good"),
    (59.9, "Needs Attention"),
])
def test_hvac_rating(score, rating):
    assert scoring.hvac_rating(score) == rating


@pytest.mark.parametrize("efficiency, ventilation, alerts, status", [
    (90, 90, 2, "excellent"),
    (90, 90, 11, "critical"),
    (70, 70, 4, "good"),
    (90, 90, 3, "good"),
    (50, 90, 0, "needs_attention"),
])
def test_classroom_status(efficiency, ventilation, alerts, status):
    assert scoring.classroom_status(efficiency, ventilation, alerts) == status


def test_recommendations_capped_in_priority_order():
    items = scoring.recommendations(
        efficiency=30,
        ventilation=50,
        operating_co2=1200,
        after_hours_co2=700,
        operating_temp=22,
        after_hours_temp=22.5,
        temp_stability=4,
        alert_count=8,
    )
    assert len(items) == 4
    assert items[0].startswith("Consider schedule optimization")
    assert items[1].startswith("Increase ventilation")
    assert items[2].startswith("Investigate after-hours activity")
    assert items[3].startswith("HVAC system needs attention")


def test_recommendations_for_benchmark_room():
    items = scoring.recommendations(
        efficiency=90,
        ventilation=90,
        operating_co2=600,
        after_hours_co2=400,
        operating_temp=22,
        after_hours_temp=26,
        temp_stability=1,
        alert_count=0,
    )
    assert items == ["Excellent performance - benchmark classroom for expansion"]
