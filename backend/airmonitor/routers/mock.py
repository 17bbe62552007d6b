"""
Mock Data Router

Serves generated campus data for demos and frontend development.
Disabled unless MOCK_DATA_ENABLED is set or the request passes mock=true.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies.auth import CurrentUser, get_current_user_optional
from ..services.mock_data import ALERT_SCENARIOS, SCENARIOS, MockDataGenerator
from ..services.supabase import Settings, get_settings

router = APIRouter()


def _generator(
    settings: Settings,
    mock: bool,
    scenario: str = "normal",
    seed: Optional[int] = None,
) -> MockDataGenerator:
    if not (settings.mock_data_enabled or mock):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Mock data is disabled"
        )

    try:
        return MockDataGenerator(scenario=scenario, seed=seed, tz_name=settings.campus_timezone)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{e}. Valid scenarios: {', '.join(SCENARIOS)}"
        )


@router.get("/dashboard")
async def mock_dashboard(
    scenario: str = Query("normal", description=f"One of: {', '.join(SCENARIOS)}"),
    seed: Optional[int] = Query(None, description="Seed for reproducible data"),
    mock: bool = Query(False, description="Force mock data when disabled in settings"),
    current_user: Optional[CurrentUser] = Depends(get_current_user_optional),
    settings: Settings = Depends(get_settings)
):
    """Live snapshots and campus summary for every mock device."""
    return _generator(settings, mock, scenario, seed).dashboard()


@router.get("/locations")
async def mock_locations(
    seed: Optional[int] = Query(None),
    mock: bool = Query(False),
    current_user: Optional[CurrentUser] = Depends(get_current_user_optional),
    settings: Settings = Depends(get_settings)
):
    """Mock campus hierarchy: flat tables plus the nested tree."""
    generator = _generator(settings, mock, seed=seed)
    return {
        **generator.locations(),
        "tree": generator.location_tree(),
    }


@router.get("/alerts")
async def mock_alerts(
    scenario: Optional[str] = Query(None, description=f"One of: {', '.join(ALERT_SCENARIOS)}"),
    seed: Optional[int] = Query(None),
    mock: bool = Query(False),
    current_user: Optional[CurrentUser] = Depends(get_current_user_optional),
    settings: Settings = Depends(get_settings)
):
    """
    Mock alerts.

    A named scenario returns its scripted incident; otherwise recent random alerts.
    """
    if scenario and scenario not in ALERT_SCENARIOS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown alert scenario '{scenario}'. Valid scenarios: {', '.join(ALERT_SCENARIOS)}"
        )
    return _generator(settings, mock, seed=seed).scenario_alerts(scenario)
