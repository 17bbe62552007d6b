"""
Classroom Scoring

Heuristics used by the classroom report to rank rooms: how much of the
school day a room is used, how well it is ventilated, and what facilities
should look at first.
"""

import math
from typing import Literal

OCCUPIED_CO2_PPM = 500
MAX_RECOMMENDATIONS = 4

ClassroomStatus = Literal["excellent", "good", "needs_attention", "critical"]


def mean(values: list[float], default: float = 0.0) -> float:
    return sum(values) / len(values) if values else default


def temperature_stability(values: list[float]) -> float:
    """Population standard deviation of temperature readings."""
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def room_usage_hours(co2_by_hour: dict[int, list[float]], start: int, end: int) -> float:
    """
    Hours of the school day the room was in use.

    An hour counts as occupied when its mean CO2 reaches 500 ppm. The
    occupied share of the day is scaled onto the operating window.
    """
    occupied = sum(
        1 for values in co2_by_hour.values()
        if values and mean(values) >= OCCUPIED_CO2_PPM
    )
    return (occupied / 24) * (end - start)


def efficiency_score(usage_hours: float, start: int, end: int) -> float:
    window = end - start
    if window <= 0:
        return 0.0
    return min(100.0, max(0.0, usage_hours / window * 100))


def ventilation_score(max_co2: float) -> float:
    """100 at ambient CO2, losing a point for every 20 ppm above it."""
    return max(0.0, 100 - (max_co2 - 400) / 20)


def hvac_rating(score: float) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    return "Needs Attention"


def classroom_status(efficiency: float, ventilation: float, alert_count: int) -> ClassroomStatus:
    if alert_count > 10:
        return "critical"
    if efficiency > 80 and ventilation > 80 and alert_count < 3:
        return "excellent"
    if efficiency > 60 and ventilation > 60 and alert_count < 5:
        return "good"
    return "needs_attention"


def recommendations(
    efficiency: float,
    ventilation: float,
    operating_co2: float,
    after_hours_co2: float,
    operating_temp: float,
    after_hours_temp: float,
    temp_stability: float,
    alert_count: int,
) -> list[str]:
    """Facility recommendations, most important first."""
    items: list[str] = []

    if efficiency < 60:
        items.append("Consider schedule optimization - room underutilized during peak hours")
    if operating_co2 > 1000:
        items.append("Increase ventilation during class hours - CO2 levels elevated")
    if after_hours_co2 > 600:
        items.append("Investigate after-hours activity - unexpected occupancy detected")
    if temp_stability > 3:
        items.append("HVAC system needs attention - temperature fluctuations detected")
    if abs(operating_temp - after_hours_temp) < 1:
        items.append("Energy savings opportunity - similar temps suggest HVAC optimization needed")
    if ventilation < 70:
        items.append("Ventilation system maintenance recommended - poor air circulation")
    if alert_count > 5:
        items.append("Immediate attention required - multiple air quality alerts")
    if efficiency > 80 and ventilation > 80:
        items.append("Excellent performance - benchmark classroom for expansion")

    return items[:MAX_RECOMMENDATIONS]
