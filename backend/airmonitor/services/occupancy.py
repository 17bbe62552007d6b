"""
Occupancy Estimation from CO2

Estimates how many people are in a room from its CO2 trace, taking into
account that CO2 decays exponentially toward outdoor levels once a room
empties:

    C(t) = C_ambient + (C_initial - C_ambient) * e^(-λt)

A falling trace that matches natural decay means the room is emptying.
A rising or elevated trace is converted to people at ~150 ppm per person.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from .timestamp import is_operating_hour, to_campus_time

CO2_AMBIENT = 400           # Outdoor CO2 baseline (ppm)
PPM_PER_PERSON = 150        # Steady-state rise per occupant
VENTILATION_RATE = 0.5      # Air changes per hour
DECAY_CONSTANT = math.log(2) / (VENTILATION_RATE * 60)  # Per minute
TREND_THRESHOLD_PPM = 10
MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.95

Trend = Literal["rising", "falling", "stable"]


@dataclass
class OccupancyReading:
    timestamp: datetime
    co2: float


@dataclass
class OccupancyResult:
    estimated_occupancy: int
    confidence: float
    is_occupied: bool
    co2_trend: Trend


def co2_decay(initial_co2: float, minutes_elapsed: float) -> float:
    """Expected CO2 after an empty room ventilates for the given minutes."""
    decayed = CO2_AMBIENT + (initial_co2 - CO2_AMBIENT) * math.exp(-DECAY_CONSTANT * minutes_elapsed)
    return max(CO2_AMBIENT, decayed)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def detect_occupancy(
    readings: list[OccupancyReading],
    tz_name: str = "UTC",
    operating_hours: tuple[int, int] = (8, 18),
) -> OccupancyResult:
    """
    Estimate occupancy from the two most recent readings.

    Args:
        readings: CO2 readings in any order
        tz_name: Campus timezone used to decide operating hours
        operating_hours: Inclusive (start, end) hour window

    Returns:
        OccupancyResult with people estimate, confidence and CO2 trend
    """
    if len(readings) < 2:
        return OccupancyResult(0, 0.0, False, "stable")

    ordered = sorted(readings, key=lambda r: r.timestamp)
    latest = ordered[-1]
    previous = ordered[-2]

    co2_change = latest.co2 - previous.co2
    minutes = (latest.timestamp - previous.timestamp).total_seconds() / 60

    trend: Trend = "stable"
    if abs(co2_change) > TREND_THRESHOLD_PPM:
        trend = "rising" if co2_change > 0 else "falling"

    if trend == "falling" and minutes > 0:
        expected = co2_decay(previous.co2, minutes)
        actual_rate = (previous.co2 - latest.co2) / minutes
        expected_rate = (previous.co2 - expected) / minutes
        decay_ratio = actual_rate / max(expected_rate, 1)

        if decay_ratio > 0.8:
            # Natural decay: room is emptying
            base = max(0.0, (latest.co2 - CO2_AMBIENT) / PPM_PER_PERSON)
            adjusted = base * (1 - decay_ratio * 0.5)
            return OccupancyResult(
                estimated_occupancy=max(0, _round_half_up(adjusted)),
                confidence=0.8,
                is_occupied=adjusted > 0.5,
                co2_trend=trend,
            )

    hour = to_campus_time(latest.timestamp, tz_name).hour
    in_hours = is_operating_hour(hour, *operating_hours)

    estimate = 0.0
    confidence = 0.5

    if latest.co2 > CO2_AMBIENT + 50:
        co2_factor = max(0.0, (latest.co2 - CO2_AMBIENT) / PPM_PER_PERSON)
        time_multiplier = 1.0 if in_hours else 0.3
        trend_multiplier = {"rising": 1.2, "falling": 0.7}.get(trend, 1.0)
        estimate = co2_factor * time_multiplier * trend_multiplier

        confidence = min(MAX_CONFIDENCE, 0.5 + (latest.co2 - CO2_AMBIENT) / 1000)
        if trend == "rising" and in_hours:
            confidence *= 1.2
        if trend == "falling" and not in_hours:
            confidence *= 1.1

    return OccupancyResult(
        estimated_occupancy=max(0, _round_half_up(estimate)),
        confidence=min(MAX_CONFIDENCE, confidence),
        is_occupied=estimate > 0.5,
        co2_trend=trend,
    )


def enhanced_occupancy_pct(
    readings: list[OccupancyReading],
    room_capacity: int = 30,
    tz_name: str = "UTC",
    operating_hours: tuple[int, int] = (8, 18),
) -> float:
    """
    Average occupancy during operating hours as a percentage of capacity.

    Each reading is evaluated together with the two readings before it so
    that decay after a class ends is not counted as presence.
    """
    if not readings or room_capacity <= 0:
        return 0.0

    in_hours = [
        r for r in readings
        if is_operating_hour(to_campus_time(r.timestamp, tz_name).hour, *operating_hours)
    ]
    if not in_hours:
        return 0.0

    in_hours.sort(key=lambda r: r.timestamp)

    total = 0
    valid = 0
    for i in range(len(in_hours)):
        window = in_hours[max(0, i - 2):i + 1]
        result = detect_occupancy(window, tz_name, operating_hours)
        if result.confidence > MIN_CONFIDENCE:
            total += result.estimated_occupancy
            valid += 1

    if valid == 0:
        return 0.0

    pct = (total / valid) / room_capacity * 100
    return min(100.0, max(0.0, pct))
