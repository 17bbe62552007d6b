"""
Locations Router

Handles the campus location hierarchy:
- Sites (a campus)
- Buildings within a site
- Blocks (optional wings) within a building
- Floors within a building or block
- Rooms within a floor

Plus the nested tree used by the location picker.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, StringConstraints, model_validator
from supabase import Client

from ..dependencies.auth import CurrentUser, get_current_user, require_min_role
from ..services.locations import build_location_tree
from ..services.supabase import get_supabase

router = APIRouter()

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Description = Annotated[str, StringConstraints(max_length=500)]
Address = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


# ============================================
# SCHEMAS - SITES
# ============================================

class SiteCreate(BaseModel):
    """Create site request."""
    name: Name
    address: Optional[Address] = None
    description: Optional[Description] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class SiteUpdate(BaseModel):
    """Update site request. All fields optional."""
    name: Optional[Name] = None
    address: Optional[Address] = None
    description: Optional[Description] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


# ============================================
# SCHEMAS - BUILDINGS
# ============================================

class BuildingCreate(BaseModel):
    """Create building request."""
    site_id: UUID
    name: Name
    description: Optional[Description] = None
    floor_count: Optional[int] = Field(None, ge=1, le=200)


class BuildingUpdate(BaseModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    floor_count: Optional[int] = Field(None, ge=1, le=200)


# ============================================
# SCHEMAS - BLOCKS
# ============================================

class BlockCreate(BaseModel):
    """Create block request."""
    building_id: UUID
    name: Name
    description: Optional[Description] = None


class BlockUpdate(BaseModel):
    name: Optional[Name] = None
    description: Optional[Description] = None


# ============================================
# SCHEMAS - FLOORS
# ============================================

class FloorCreate(BaseModel):
    """
    Create floor request.

    A floor hangs off a building directly or off one of its blocks;
    at least one parent is required.
    """
    building_id: Optional[UUID] = None
    block_id: Optional[UUID] = None
    floor_number: int = Field(..., ge=-10, le=200)
    name: Optional[Name] = None
    area_sqm: Optional[float] = Field(None, ge=0, le=100000)

    @model_validator(mode="after")
    def check_parent(self):
        if self.building_id is None and self.block_id is None:
            raise ValueError("Either building_id or block_id is required")
        return self


class FloorUpdate(BaseModel):
    floor_number: Optional[int] = Field(None, ge=-10, le=200)
    name: Optional[Name] = None
    area_sqm: Optional[float] = Field(None, ge=0, le=100000)


# ============================================
# SCHEMAS - ROOMS
# ============================================

class RoomCreate(BaseModel):
    """Create room request."""
    floor_id: UUID
    name: Name
    description: Optional[Description] = None
    room_number: Optional[str] = Field(None, max_length=50)
    room_type: Optional[str] = Field(None, max_length=50)  # classroom, lab, office...
    capacity: Optional[int] = Field(None, ge=0)
    area_sqm: Optional[float] = Field(None, ge=0, le=100000)


class RoomUpdate(BaseModel):
    name: Optional[Name] = None
    description: Optional[Description] = None
    room_number: Optional[str] = Field(None, max_length=50)
    room_type: Optional[str] = Field(None, max_length=50)
    capacity: Optional[int] = Field(None, ge=0)
    area_sqm: Optional[float] = Field(None, ge=0, le=100000)


# ============================================
# HELPER FUNCTIONS
# ============================================

def _jsonable(data: dict) -> dict:
    """UUIDs go over the wire as strings."""
    return {k: str(v) if isinstance(v, UUID) else v for k, v in data.items()}


def _get_row(db: Client, table: str, row_id: str, label: str) -> dict:
    result = db.table(table).select("*").eq("id", row_id).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} {row_id} not found"
        )
    return result.data[0]


def _require_parent(db: Client, table: str, row_id: Optional[UUID], label: str):
    """Reject a create whose parent row does not exist."""
    if row_id is None:
        return
    result = db.table(table).select("id").eq("id", str(row_id)).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} {row_id} not found"
        )


def _insert_row(db: Client, table: str, data: dict, label: str) -> dict:
    result = db.table(table).insert(_jsonable(data)).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create {label.lower()}"
        )
    return result.data[0]


def _update_row(db: Client, table: str, row_id: str, update: BaseModel, label: str) -> dict:
    existing = _get_row(db, table, row_id, label)

    update_data = update.model_dump(exclude_unset=True)
    if not update_data:
        # Nothing to update
        return existing

    result = db.table(table).update(_jsonable(update_data)).eq("id", row_id).execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update {label.lower()}"
        )
    return result.data[0]


def _delete_row(db: Client, table: str, row_id: str, label: str):
    _get_row(db, table, row_id, label)
    db.table(table).delete().eq("id", row_id).execute()


# ============================================
# ENDPOINTS - TREE
# ============================================

@router.get("/tree")
async def get_location_tree(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """
    Get the full location hierarchy.

    site → buildings → (blocks →) floors → rooms, with a device_count per floor.
    """
    try:
        return build_location_tree(
            sites=db.table("sites").select("*").execute().data or [],
            buildings=db.table("buildings").select("*").execute().data or [],
            blocks=db.table("blocks").select("*").execute().data or [],
            floors=db.table("floors").select("*").execute().data or [],
            rooms=db.table("rooms").select("*").execute().data or [],
            devices=db.table("devices").select("id, floor_id").execute().data or [],
        )
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch location tree: {str(e)}"
        )


# ============================================
# ENDPOINTS - SITES
# ============================================

@router.get("/sites")
async def list_sites(
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """List all sites ordered by name."""
    try:
        result = db.table("sites").select("*").order("name").execute()
        return result.data or []
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch sites: {str(e)}"
        )


@router.get("/sites/{site_id}")
async def get_site(
    site_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        return _get_row(db, "sites", str(site_id), "Site")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch site: {str(e)}"
        )


@router.post("/sites", status_code=status.HTTP_201_CREATED)
async def create_site(
    site: SiteCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """Create a site. Admin or higher."""
    try:
        return _insert_row(db, "sites", site.model_dump(), "Site")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create site: {str(e)}"
        )


@router.patch("/sites/{site_id}")
async def update_site(
    site_id: UUID,
    update: SiteUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        return _update_row(db, "sites", str(site_id), update, "Site")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update site: {str(e)}"
        )


@router.delete("/sites/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_site(
    site_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Delete a site.

    Buildings and everything beneath them cascade in the database.
    """
    try:
        _delete_row(db, "sites", str(site_id), "Site")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete site: {str(e)}"
        )


# ============================================
# ENDPOINTS - BUILDINGS
# ============================================

@router.get("/buildings")
async def list_buildings(
    site_id: Optional[UUID] = Query(None, description="Filter by site"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        query = db.table("buildings").select("*")
        if site_id:
            query = query.eq("site_id", str(site_id))
        result = query.order("name").execute()
        return result.data or []
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch buildings: {str(e)}"
        )


@router.get("/buildings/{building_id}")
async def get_building(
    building_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        return _get_row(db, "buildings", str(building_id), "Building")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch building: {str(e)}"
        )


@router.post("/buildings", status_code=status.HTTP_201_CREATED)
async def create_building(
    building: BuildingCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _require_parent(db, "sites", building.site_id, "Site")
        return _insert_row(db, "buildings", building.model_dump(), "Building")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create building: {str(e)}"
        )


@router.patch("/buildings/{building_id}")
async def update_building(
    building_id: UUID,
    update: BuildingUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        return _update_row(db, "buildings", str(building_id), update, "Building")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update building: {str(e)}"
        )


@router.delete("/buildings/{building_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_building(
    building_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _delete_row(db, "buildings", str(building_id), "Building")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete building: {str(e)}"
        )


# ============================================
# ENDPOINTS - BLOCKS
# ============================================

@router.get("/blocks")
async def list_blocks(
    building_id: Optional[UUID] = Query(None, description="Filter by building"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        query = db.table("blocks").select("*")
        if building_id:
            query = query.eq("building_id", str(building_id))
        result = query.order("name").execute()
        return result.data or []
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch blocks: {str(e)}"
        )


@router.get("/blocks/{block_id}")
async def get_block(
    block_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        return _get_row(db, "blocks", str(block_id), "Block")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch block: {str(e)}"
        )


@router.post("/blocks", status_code=status.HTTP_201_CREATED)
async def create_block(
    block: BlockCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _require_parent(db, "buildings", block.building_id, "Building")
        return _insert_row(db, "blocks", block.model_dump(), "Block")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create block: {str(e)}"
        )


@router.patch("/blocks/{block_id}")
async def update_block(
    block_id: UUID,
    update: BlockUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        return _update_row(db, "blocks", str(block_id), update, "Block")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update block: {str(e)}"
        )


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _delete_row(db, "blocks", str(block_id), "Block")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete block: {str(e)}"
        )


# ============================================
# ENDPOINTS - FLOORS
# ============================================

@router.get("/floors")
async def list_floors(
    building_id: Optional[UUID] = Query(None, description="Filter by building"),
    block_id: Optional[UUID] = Query(None, description="Filter by block"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    """List floors ordered by floor number."""
    try:
        query = db.table("floors").select("*")
        if building_id:
            query = query.eq("building_id", str(building_id))
        if block_id:
            query = query.eq("block_id", str(block_id))
        result = query.order("floor_number").execute()
        return result.data or []
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch floors: {str(e)}"
        )


@router.get("/floors/{floor_id}")
async def get_floor(
    floor_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        return _get_row(db, "floors", str(floor_id), "Floor")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch floor: {str(e)}"
        )


@router.post("/floors", status_code=status.HTTP_201_CREATED)
async def create_floor(
    floor: FloorCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    """
    Create a floor.

    When only block_id is given, building_id is filled from the block.
    When both are given, the block must belong to that building.
    """
    try:
        insert_data = floor.model_dump()

        if floor.block_id is not None:
            block = _get_row(db, "blocks", str(floor.block_id), "Block")
            if insert_data["building_id"] is None:
                insert_data["building_id"] = block["building_id"]
            elif str(insert_data["building_id"]) != str(block["building_id"]):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Block does not belong to the given building"
                )
        else:
            _require_parent(db, "buildings", floor.building_id, "Building")

        if insert_data["name"] is None:
            insert_data["name"] = f"Floor {floor.floor_number}"

        return _insert_row(db, "floors", insert_data, "Floor")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create floor: {str(e)}"
        )


@router.patch("/floors/{floor_id}")
async def update_floor(
    floor_id: UUID,
    update: FloorUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        return _update_row(db, "floors", str(floor_id), update, "Floor")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update floor: {str(e)}"
        )


@router.delete("/floors/{floor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_floor(
    floor_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _delete_row(db, "floors", str(floor_id), "Floor")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete floor: {str(e)}"
        )


# ============================================
# ENDPOINTS - ROOMS
# ============================================

@router.get("/rooms")
async def list_rooms(
    floor_id: Optional[UUID] = Query(None, description="Filter by floor"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        query = db.table("rooms").select("*")
        if floor_id:
            query = query.eq("floor_id", str(floor_id))
        result = query.order("name").execute()
        return result.data or []
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch rooms: {str(e)}"
        )


@router.get("/rooms/{room_id}")
async def get_room(
    room_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Client = Depends(get_supabase)
):
    try:
        return _get_row(db, "rooms", str(room_id), "Room")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to fetch room: {str(e)}"
        )


@router.post("/rooms", status_code=status.HTTP_201_CREATED)
async def create_room(
    room: RoomCreate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _require_parent(db, "floors", room.floor_id, "Floor")
        return _insert_row(db, "rooms", room.model_dump(), "Room")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create room: {str(e)}"
        )


@router.patch("/rooms/{room_id}")
async def update_room(
    room_id: UUID,
    update: RoomUpdate,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        return _update_row(db, "rooms", str(room_id), update, "Room")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update room: {str(e)}"
        )


@router.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: UUID,
    current_user: CurrentUser = Depends(require_min_role("admin")),
    db: Client = Depends(get_supabase)
):
    try:
        _delete_row(db, "rooms", str(room_id), "Room")
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete room: {str(e)}"
        )
