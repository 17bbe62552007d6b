"""
Air Quality Index Calculations

Linear interpolation across concentration breakpoint tables.

PM2.5 and PM10 follow the US EPA tables. VOC, HCHO and NOx use simplified
indoor tables that stop at index 300. Above the last band every pollutant
reports the maximum index of 500.

Formula (per band):
    I = (I_high - I_low) / (C_high - C_low) * (C - C_low) + I_low
"""

import math
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Breakpoint:
    """One concentration band of an AQI table."""
    c_low: float
    c_high: float
    i_low: int
    i_high: int


MAX_AQI = 500

PM25_BREAKPOINTS = (
    Breakpoint(0, 12, 0, 50),
    Breakpoint(12.1, 35.4, 51, 100),
    Breakpoint(35.5, 55.4, 101, 150),
    Breakpoint(55.5, 150.4, 151, 200),
    Breakpoint(150.5, 250.4, 201, 300),
    Breakpoint(250.5, 350.4, 301, 400),
    Breakpoint(350.5, 500.4, 401, 500),
)

PM10_BREAKPOINTS = (
    Breakpoint(0, 54, 0, 50),
    Breakpoint(55, 154, 51, 100),
    Breakpoint(155, 254, 101, 150),
    Breakpoint(255, 354, 151, 200),
    Breakpoint(355, 424, 201, 300),
    Breakpoint(425, 504, 301, 400),
    Breakpoint(505, 604, 401, 500),
)

VOC_BREAKPOINTS = (
    Breakpoint(0, 100, 0, 50),
    Breakpoint(101, 200, 51, 100),
    Breakpoint(201, 400, 101, 150),
    Breakpoint(401, 800, 151, 200),
    Breakpoint(801, 1200, 201, 300),
)

HCHO_BREAKPOINTS = (
    Breakpoint(0, 10, 0, 50),
    Breakpoint(11, 30, 51, 100),
    Breakpoint(31, 60, 101, 150),
    Breakpoint(61, 120, 151, 200),
    Breakpoint(121, 200, 201, 300),
)

NOX_BREAKPOINTS = (
    Breakpoint(0, 50, 0, 50),
    Breakpoint(51, 100, 51, 100),
    Breakpoint(101, 200, 101, 150),
    Breakpoint(201, 400, 151, 200),
    Breakpoint(401, 800, 201, 300),
)

# Order matters: ties in dominant_pollutant resolve to the earliest entry
POLLUTANT_TABLES = {
    "pm25": PM25_BREAKPOINTS,
    "pm10": PM10_BREAKPOINTS,
    "hcho": HCHO_BREAKPOINTS,
    "voc": VOC_BREAKPOINTS,
    "nox": NOX_BREAKPOINTS,
}

# (upper bound inclusive, label)
AQI_CATEGORIES = (
    (50, "Good"),
    (100, "Moderate"),
    (150, "Unhealthy for Sensitive Groups"),
    (200, "Unhealthy"),
    (300, "Very Unhealthy"),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def aqi_from_breakpoints(concentration: float, breakpoints: tuple[Breakpoint, ...]) -> int:
    """
    Interpolate an AQI value for a concentration.

    Values that fall between two bands (e.g. PM2.5 of 12.05) take the
    lower index of the band above them.
    """
    if concentration is None or concentration <= 0:
        return 0

    for bp in breakpoints:
        if concentration < bp.c_low:
            # Gap between the previous band's c_high and this band's c_low
            return bp.i_low
        if concentration <= bp.c_high:
            return _round_half_up(
                (bp.i_high - bp.i_low) / (bp.c_high - bp.c_low) * (concentration - bp.c_low) + bp.i_low
            )

    return MAX_AQI


def pm25_aqi(pm25: float) -> int:
    return aqi_from_breakpoints(pm25, PM25_BREAKPOINTS)


def pm10_aqi(pm10: float) -> int:
    return aqi_from_breakpoints(pm10, PM10_BREAKPOINTS)


def voc_aqi(voc: float) -> int:
    return aqi_from_breakpoints(voc, VOC_BREAKPOINTS)


def hcho_aqi(hcho: float) -> int:
    return aqi_from_breakpoints(hcho, HCHO_BREAKPOINTS)


def nox_aqi(nox: float) -> int:
    return aqi_from_breakpoints(nox, NOX_BREAKPOINTS)


def pollutant_aqis(readings: Mapping[str, Optional[float]]) -> dict[str, int]:
    """AQI per pollutant for every pollutant present in a reading map."""
    return {
        pollutant: aqi_from_breakpoints(float(readings[pollutant]), table)
        for pollutant, table in POLLUTANT_TABLES.items()
        if readings.get(pollutant) is not None
    }


def overall_aqi(readings: Mapping[str, Optional[float]]) -> Optional[int]:
    """Highest pollutant AQI, or None when no pollutant was measured."""
    aqis = pollutant_aqis(readings)
    return max(aqis.values()) if aqis else None


def dominant_pollutant(readings: Mapping[str, Optional[float]]) -> Optional[str]:
    """Pollutant responsible for the overall AQI."""
    aqis = pollutant_aqis(readings)
    if not aqis:
        return None
    best = max(aqis.values())
    return next(p for p, value in aqis.items() if value == best)


def aqi_category(aqi: Optional[float]) -> Optional[str]:
    if aqi is None:
        return None
    for upper, label in AQI_CATEGORIES:
        if aqi <= upper:
            return label
    return "Hazardous"


def average_aqi(values: list[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)
