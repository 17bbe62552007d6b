"""
Mock Data Generator

Realistic demo data for Abu Dhabi University: a campus location tree, one
sensor per classroom, readings shaped by the teaching schedule, and alerts.

All randomness goes through a seedable random.Random so demos and tests
are reproducible.
"""

import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional

from . import live_data
from .locations import build_location_tree
from .timestamp import to_campus_time, utc_now

Scenario = Literal["normal", "high_activity", "maintenance", "emergency"]
SCENARIOS = ("normal", "high_activity", "maintenance", "emergency")
ALERT_SCENARIOS = ("lab_incident", "hvac_failure", "maintenance_dust")

CREATED_AT = "2024-01-01T00:00:00+00:00"


@dataclass(frozen=True)
class ScenarioMultipliers:
    activity_level: float
    co2_multiplier: float
    particulate_multiplier: float
    alert_probability: float


FIXED_SCENARIOS = {
    "high_activity": ScenarioMultipliers(1.5, 1.3, 1.2, 0.02),
    "maintenance": ScenarioMultipliers(0.3, 0.8, 2.0, 0.05),
    "emergency": ScenarioMultipliers(0.1, 0.5, 1.8, 0.15),
}

# Weekday hours, first match wins: (first hour, last hour, multiplier)
SCHEDULE = (
    (7, 9, 0.8),    # Arrival
    (9, 12, 1.2),   # Morning classes
    (12, 13, 0.6),  # Lunch break
    (13, 17, 1.1),  # Afternoon classes
    (17, 19, 0.7),  # Departure
    (19, 22, 0.4),  # Evening activities
)
WEEKEND_MULTIPLIER = 0.2
NIGHT_MULTIPLIER = 0.1

# Saturday and Sunday (datetime.weekday)
WEEKEND_DAYS = (5, 6)

# (low, high) ranges per room type
ROOM_PROFILES = {
    "Lecture Hall": {"pm25": (8, 25), "co2": (400, 1200), "temperature": (22, 26), "humidity": (40, 65)},
    "Laboratory": {"pm25": (12, 40), "co2": (450, 1500), "temperature": (20, 28), "humidity": (35, 70)},
    "Classroom": {"pm25": (6, 20), "co2": (380, 900), "temperature": (21, 25), "humidity": (45, 60)},
    "Computer Lab": {"pm25": (10, 30), "co2": (420, 1100), "temperature": (19, 24), "humidity": (40, 55)},
    "Workshop": {"pm25": (25, 80), "co2": (500, 1800), "temperature": (18, 30), "humidity": (30, 75)},
    "Reading Room": {"pm25": (5, 15), "co2": (350, 700), "temperature": (22, 24), "humidity": (50, 60)},
    "Office": {"pm25": (7, 20), "co2": (380, 800), "temperature": (21, 25), "humidity": (45, 65)},
}

HISTORY_SENSORS = ("pm25", "pm10", "co2", "temperature", "humidity", "voc")
SNAPSHOT_SENSORS = HISTORY_SENSORS + ("nox", "hcho", "pm03", "pm1", "pm5")

ALERT_THRESHOLDS = {
    "pm25": {"medium": 25, "high": 50, "critical": 100},
    "pm10": {"medium": 50, "high": 100, "critical": 200},
    "co2": {"medium": 1000, "high": 1500, "critical": 2000},
    "temperature": {"medium": 28, "high": 30, "critical": 35},
    "humidity": {"medium": 70, "high": 80, "critical": 90},
    "voc": {"medium": 0.5, "high": 1.0, "critical": 2.0},
    "nox": {"medium": 0.2, "high": 0.4, "critical": 0.8},
    "hcho": {"medium": 0.1, "high": 0.2, "critical": 0.4},
}

ALERT_MESSAGES = {
    "pm25": {
        "medium": "PM2.5 levels elevated - May affect sensitive individuals",
        "high": "High PM2.5 detected - Consider air filtration",
        "critical": "Critical PM2.5 levels - Immediate action required",
    },
    "pm10": {
        "medium": "PM10 levels elevated - Monitor air quality",
        "high": "High PM10 detected - Check ventilation systems",
        "critical": "Critical PM10 levels - Area evacuation recommended",
    },
    "co2": {
        "medium": "CO2 levels elevated - Increase ventilation",
        "high": "High CO2 detected - Poor air circulation",
        "critical": "Critical CO2 levels - Immediate ventilation required",
    },
    "temperature": {
        "medium": "Temperature above comfort level",
        "high": "High temperature detected - Check HVAC system",
        "critical": "Critical temperature - Cooling system failure",
    },
    "humidity": {
        "medium": "Humidity levels elevated",
        "high": "High humidity - Risk of mold growth",
        "critical": "Critical humidity levels - Dehumidification needed",
    },
    "voc": {
        "medium": "Volatile organic compounds detected",
        "high": "High VOC levels - Check chemical storage",
        "critical": "Critical VOC exposure - Evacuate area",
    },
    "nox": {
        "medium": "Nitrogen oxides detected",
        "high": "High NOx levels - Check equipment",
        "critical": "Critical NOx exposure - Safety concern",
    },
    "hcho": {
        "medium": "Formaldehyde levels elevated",
        "high": "High formaldehyde detected",
        "critical": "Critical formaldehyde levels - Health hazard",
    },
}


# ============================================
# CAMPUS LAYOUT
# ============================================

SITE = {
    "id": "abu-dhabi-university",
    "name": "Abu Dhabi University Main Campus",
    "address": "Al Ain - Abu Dhabi Road, Abu Dhabi, UAE",
    "description": "Main campus of Abu Dhabi University",
    "latitude": 24.4539,
    "longitude": 54.3773,
}

# key → (name, description, floor_count)
BUILDINGS = {
    "academic-1": ("Academic Building 1", "Main academic building with lecture halls and classrooms", 4),
    "engineering": ("Engineering Building", "Dedicated engineering labs and workshops", 3),
    "library": ("Central Library", "Main library with study areas and resources", 5),
    "admin": ("Administration Building", "Administrative offices and student services", 2),
    "student-center": ("Student Center", "Student activities, cafeteria, and recreation facilities", 3),
}

# key → (building key, name, description)
BLOCKS = {
    "academic-1-north": ("academic-1", "North Wing", "Mathematics and Science departments"),
    "academic-1-south": ("academic-1", "South Wing", "Business and Humanities departments"),
    "engineering-lab": ("engineering", "Laboratory Block", "Engineering laboratories and research facilities"),
}

# (floor key, building key, block key, floor number, name, area, rooms)
# rooms: (room number, name, room type, capacity)
FLOORS = (
    ("academic-1-north-gf", "academic-1", "academic-1-north", 0, "Ground Floor - North", 800, (
        ("101", "Lecture Hall 101", "Lecture Hall", 150),
        ("102", "Classroom 102", "Classroom", 40),
        ("103", "Classroom 103", "Classroom", 35),
    )),
    ("academic-1-north-1", "academic-1", "academic-1-north", 1, "First Floor - North", 800, (
        ("201", "Classroom 201", "Classroom", 40),
        ("202", "Computer Lab 202", "Computer Lab", 30),
    )),
    ("academic-1-south-gf", "academic-1", "academic-1-south", 0, "Ground Floor - South", 750, (
        ("104", "Classroom 104", "Classroom", 45),
        ("105", "Lecture Hall 105", "Lecture Hall", 120),
    )),
    ("academic-1-south-1", "academic-1", "academic-1-south", 1, "First Floor - South", 750, (
        ("204", "Classroom 204", "Classroom", 30),
    )),
    ("engineering-lab-gf", "engineering", "engineering-lab", 0, "Ground Floor - Labs", 1200, (
        ("E01", "Chemistry Lab E01", "Laboratory", 25),
        ("E02", "Mechanical Workshop E02", "Workshop", 20),
    )),
    ("engineering-lab-1", "engineering", "engineering-lab", 1, "First Floor - Labs", 1200, (
        ("E11", "Classroom E11", "Classroom", 35),
    )),
    ("library-gf", "library", None, 0, "Ground Floor", 1000, (
        ("L01", "Reading Room L01", "Reading Room", 60),
    )),
    ("library-1", "library", None, 1, "First Floor", 950, (
        ("L11", "Classroom L11", "Classroom", 25),
    )),
    ("admin-gf", "admin", None, 0, "Ground Floor", 600, (
        ("A01", "Registrar Office A01", "Office", 10),
    )),
    ("student-center-1", "student-center", None, 1, "First Floor", 900, (
        ("S11", "Classroom S11", "Classroom", 30),
    )),
)

SENSOR_ROOM_TYPE = "Classroom"


class MockDataGenerator:
    """
    Seedable generator for demo data.

    Args:
        scenario: normal, high_activity, maintenance or emergency
        seed: Seed for the internal random.Random (None = nondeterministic)
        now: Reference time (defaults to the current UTC time)
        tz_name: Campus timezone for schedule hours and weekdays
    """

    def __init__(
        self,
        scenario: Scenario = "normal",
        seed: Optional[int] = None,
        now: Optional[datetime] = None,
        tz_name: str = "Asia/Dubai",
    ):
        if scenario not in SCENARIOS:
            raise ValueError(f"Unknown scenario '{scenario}'")
        self.scenario = scenario
        self.rng = random.Random(seed)
        self.now = now or utc_now()
        self.tz_name = tz_name

    # ---------- time patterns ----------

    def _local(self, when: Optional[datetime]) -> datetime:
        return to_campus_time(when or self.now, self.tz_name)

    def scenario_multipliers(self, when: Optional[datetime] = None) -> ScenarioMultipliers:
        if self.scenario in FIXED_SCENARIOS:
            return FIXED_SCENARIOS[self.scenario]

        local = self._local(when)
        if local.weekday() in WEEKEND_DAYS:
            activity = 0.2
        elif 8 <= local.hour <= 18:
            activity = 1.0
        else:
            activity = 0.3
        return ScenarioMultipliers(activity, 1.0, 1.0, 0.01)

    def schedule_multiplier(self, when: Optional[datetime] = None) -> float:
        local = self._local(when)
        if local.weekday() in WEEKEND_DAYS:
            return WEEKEND_MULTIPLIER
        for first, last, multiplier in SCHEDULE:
            if first <= local.hour <= last:
                return multiplier
        return NIGHT_MULTIPLIER

    # ---------- locations and devices ----------

    def locations(self) -> dict:
        """Flat location rows keyed by table name."""
        buildings = [
            {
                "id": f"building-{key}",
                "site_id": SITE["id"],
                "name": name,
                "description": description,
                "floor_count": floor_count,
                "created_at": CREATED_AT,
            }
            for key, (name, description, floor_count) in BUILDINGS.items()
        ]
        blocks = [
            {
                "id": f"block-{key}",
                "building_id": f"building-{building}",
                "name": name,
                "description": description,
                "created_at": CREATED_AT,
            }
            for key, (building, name, description) in BLOCKS.items()
        ]

        floors = []
        rooms = []
        for key, building, block, number, name, area, floor_rooms in FLOORS:
            floor_id = f"floor-{key}"
            floors.append({
                "id": floor_id,
                "building_id": f"building-{building}",
                "block_id": f"block-{block}" if block else None,
                "floor_number": number,
                "name": name,
                "area_sqm": area,
                "created_at": CREATED_AT,
            })
            for room_number, room_name, room_type, capacity in floor_rooms:
                rooms.append({
                    "id": f"room-{key}-{room_number.lower()}",
                    "floor_id": floor_id,
                    "name": room_name,
                    "room_number": room_number,
                    "room_type": room_type,
                    "capacity": capacity,
                    "created_at": CREATED_AT,
                })

        return {
            "sites": [{**SITE, "created_at": CREATED_AT}],
            "buildings": buildings,
            "blocks": blocks,
            "floors": floors,
            "rooms": rooms,
        }

    def location_tree(self) -> list[dict]:
        rows = self.locations()
        return build_location_tree(
            rows["sites"], rows["buildings"], rows["blocks"],
            rows["floors"], rows["rooms"], self.devices(),
        )

    def devices(self) -> list[dict]:
        """One air quality sensor per classroom."""
        classrooms = [r for r in self.locations()["rooms"] if r["room_type"] == SENSOR_ROOM_TYPE]
        devices = []
        for counter, room in enumerate(classrooms, start=1):
            devices.append({
                "id": f"device-{counter:03d}",
                "name": room["name"],
                "floor_id": room["floor_id"],
                "room_id": room["id"],
                "room_type": room["room_type"],
                "device_type": "air_quality_sensor",
                "status": "online",
                "mac_address": f"00:1B:44:11:3A:{counter:02d}",
                "serial_number": f"ADU{counter:04d}",
                "firmware_version": "2.1.4",
                "installation_date": "2024-01-15",
                "battery_level": self.rng.randint(60, 99),
                "signal_strength": self.rng.randint(-70, -41),
                "calibration_due_date": (self.now + timedelta(days=self.rng.randint(1, 180))).date().isoformat(),
            })
        return devices

    # ---------- readings ----------

    def _uniform(self, bounds: tuple[float, float]) -> float:
        return self.rng.uniform(bounds[0], bounds[1])

    def sensor_reading(self, device: dict, sensor_type: str, timestamp: Optional[datetime] = None) -> dict:
        """One reading shaped by room type, scenario and schedule."""
        timestamp = timestamp or self.now
        profile = ROOM_PROFILES.get(device.get("room_type"), ROOM_PROFILES["Office"])
        m = self.scenario_multipliers(timestamp)
        schedule = self.schedule_multiplier(timestamp)

        if sensor_type == "pm25":
            value = max(0.0, self._uniform(profile["pm25"]) * m.particulate_multiplier * (0.8 + schedule * 0.4))
            unit = "µg/m³"
        elif sensor_type == "pm10":
            low, high = profile["pm25"]
            value = max(0.0, self._uniform((low * 1.5, high * 1.5)) * m.particulate_multiplier * (0.8 + schedule * 0.4))
            unit = "µg/m³"
        elif sensor_type == "co2":
            value = max(350.0, self._uniform(profile["co2"]) * m.co2_multiplier * (0.5 + schedule))
            unit = "ppm"
        elif sensor_type == "temperature":
            month = self._local(timestamp).month - 1
            seasonal = seasonal_offset(month)
            value = self._uniform(profile["temperature"]) + seasonal + (self.rng.random() - 0.5) * 2
            unit = "°C"
        elif sensor_type == "humidity":
            value = max(20.0, min(90.0, self._uniform(profile["humidity"]) + self.rng.uniform(-5, 5)))
            unit = "%"
        elif sensor_type == "voc":
            value = self.rng.random() * 0.5 * m.particulate_multiplier * schedule
            unit = "mg/m³"
        elif sensor_type == "nox":
            value = self.rng.random() * 0.3 * m.particulate_multiplier * schedule
            unit = "mg/m³"
        elif sensor_type == "hcho":
            value = self.rng.random() * 0.2 * m.particulate_multiplier
            unit = "mg/m³"
        elif sensor_type in ("pm03", "pm1", "pm5"):
            scale = {"pm03": 15, "pm1": 20, "pm5": 30}[sensor_type]
            value = self.rng.random() * scale * m.particulate_multiplier * schedule
            unit = "µg/m³"
        else:
            value = self.rng.random() * 100
            unit = "units"

        return {
            "device_id": device["id"],
            "sensor_type": sensor_type,
            "value": round(value, 2),
            "unit": unit,
            "timestamp": timestamp.isoformat(),
        }

    def historical_data(self, device: dict, hours: int = 24) -> list[dict]:
        """Readings every 10 minutes over the last `hours`, oldest first."""
        readings = []
        for step in range(hours * 6, -1, -1):
            timestamp = self.now - timedelta(minutes=10 * step)
            for sensor_type in HISTORY_SENSORS:
                readings.append(self.sensor_reading(device, sensor_type, timestamp))
        return readings

    # ---------- alerts ----------

    def recent_alerts(self, devices: list[dict], count: int = 10) -> list[dict]:
        """Alerts over the last 7 days, newest first. Roughly 70% resolved."""
        if not devices:
            return []

        probability = self.scenario_multipliers().alert_probability
        alerts = []

        for i in range(count):
            device = self.rng.choice(devices)
            sensor_type = self.rng.choice(list(ALERT_THRESHOLDS))
            reading = self.sensor_reading(device, sensor_type)

            if self.rng.random() >= probability:
                continue

            thresholds = ALERT_THRESHOLDS[sensor_type]
            value = reading["value"]
            for severity in ("critical", "high", "medium"):
                if value > thresholds[severity]:
                    break
            else:
                # Push the value over the medium threshold so the alert is coherent
                severity = "medium"
                value = round(thresholds["medium"] + self.rng.random() * 10, 2)

            created_at = self.now - timedelta(seconds=self.rng.random() * 7 * 24 * 3600)
            is_resolved = self.rng.random() < 0.7

            alerts.append({
                "id": f"alert-{int(self.now.timestamp())}-{i}",
                "device_id": device["id"],
                "sensor_type": sensor_type,
                "severity": severity,
                "message": ALERT_MESSAGES[sensor_type][severity],
                "value": value,
                "threshold_value": thresholds[severity],
                "is_resolved": is_resolved,
                "resolved_at": (
                    created_at + timedelta(seconds=self.rng.random() * 24 * 3600)
                ).isoformat() if is_resolved else None,
                "resolved_by": f"user-{self.rng.randint(1, 5)}" if is_resolved else None,
                "created_at": created_at.isoformat(),
            })

        return sorted(alerts, key=lambda a: a["created_at"], reverse=True)

    def scenario_alerts(self, scenario: Optional[str]) -> list[dict]:
        """Scripted alerts for a named incident, or recent alerts otherwise."""
        devices = self.devices()
        if not devices:
            return []

        def device_named(fragment: str) -> str:
            return next((d["id"] for d in devices if fragment in d["name"]), devices[0]["id"])

        def ago(**kwargs) -> str:
            return (self.now - timedelta(**kwargs)).isoformat()

        if scenario == "lab_incident":
            device_id = device_named("Chemistry")
            return [
                {
                    "id": "alert-lab-incident-1", "device_id": device_id, "sensor_type": "voc",
                    "severity": "critical",
                    "message": "Critical VOC exposure detected in Chemistry Lab - Chemical spill suspected",
                    "value": 2.5, "threshold_value": 2.0, "is_resolved": False,
                    "created_at": ago(minutes=30),
                },
                {
                    "id": "alert-lab-incident-2", "device_id": device_id, "sensor_type": "hcho",
                    "severity": "high",
                    "message": "High formaldehyde levels detected in Chemistry Lab",
                    "value": 0.35, "threshold_value": 0.2, "is_resolved": False,
                    "created_at": ago(minutes=25),
                },
            ]

        if scenario == "hvac_failure":
            device_id = device_named("Lecture")
            return [
                {
                    "id": "alert-hvac-failure-1", "device_id": device_id, "sensor_type": "co2",
                    "severity": "high",
                    "message": "High CO2 levels - HVAC system malfunction suspected",
                    "value": 1800, "threshold_value": 1500, "is_resolved": False,
                    "created_at": ago(hours=2),
                },
                {
                    "id": "alert-hvac-failure-2", "device_id": device_id, "sensor_type": "temperature",
                    "severity": "high",
                    "message": "High temperature detected - Cooling system failure",
                    "value": 32, "threshold_value": 30, "is_resolved": False,
                    "created_at": ago(minutes=90),
                },
            ]

        if scenario == "maintenance_dust":
            return [
                {
                    "id": "alert-maintenance-1", "device_id": device_named("Workshop"), "sensor_type": "pm10",
                    "severity": "medium",
                    "message": "Elevated PM10 levels during maintenance activities",
                    "value": 75, "threshold_value": 50, "is_resolved": True,
                    "resolved_at": ago(minutes=30), "resolved_by": "maintenance-team",
                    "created_at": ago(hours=3),
                },
            ]

        return self.recent_alerts(devices, 5)

    # ---------- dashboard ----------

    def dashboard(self) -> dict:
        """Live snapshots plus the campus summary, same shape as the real dashboard."""
        snapshots = []
        for device in self.devices():
            latest = {
                sensor_type: self.sensor_reading(device, sensor_type)
                for sensor_type in SNAPSHOT_SENSORS
            }
            snapshots.append(live_data.build_snapshot(device, latest))

        alerts = self.recent_alerts(self.devices())
        active = sum(1 for a in alerts if not a["is_resolved"])

        return {
            "scenario": self.scenario,
            "summary": live_data.summarize_dashboard(snapshots, active),
            "devices": snapshots,
        }


def seasonal_offset(month_index: int) -> float:
    """Seasonal temperature offset (±3°C) for a zero-based month."""
    return math.sin((month_index - 6) * math.pi / 6) * 3
