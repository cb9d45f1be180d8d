from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import require_permission
from src.db.session import get_async_session
from src.schemas.catalog import LocationCreate, LocationRead, LocationUpdate
from src.services.catalog import LocationService

router = APIRouter(prefix="/locations", tags=["Locations"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[LocationRead],
    summary="List locations",
    description="List storage locations with their product counts, most recently updated first.",
    dependencies=[Depends(require_permission("CanViewLocations"))],
)
async def list_locations(
    session: AsyncSession = Depends(get_async_session),
    search: Optional[str] = Query(None, description="Substring of the name or description"),
    limit: int = Query(100, ge=1, le=1000, description="Max records"),
    offset: int = Query(0, ge=0, description="Records to skip"),
) -> List[LocationRead]:
    return await LocationService(session).list_locations(search=search, limit=limit, offset=offset)


# PUBLIC_INTERFACE
@router.get(
    "/{location_id}",
    response_model=LocationRead,
    summary="Get location",
    dependencies=[Depends(require_permission("CanViewLocations"))],
)
async def get_location(
    location_id: int = Path(..., description="Location ID"),
    session: AsyncSession = Depends(get_async_session),
) -> LocationRead:
    return await LocationService(session).get_location(location_id)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=LocationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create location",
    dependencies=[Depends(require_permission("CanManageLocations"))],
)
async def create_location(payload: LocationCreate, session: AsyncSession = Depends(get_async_session)) -> LocationRead:
    return await LocationService(session).create_location(payload)


# PUBLIC_INTERFACE
@router.put(
    "/{location_id}",
    response_model=LocationRead,
    summary="Update location",
    dependencies=[Depends(require_permission("CanManageLocations"))],
)
async def update_location(
    payload: LocationUpdate,
    location_id: int = Path(..., description="Location ID"),
    session: AsyncSession = Depends(get_async_session),
) -> LocationRead:
    return await LocationService(session).update_location(location_id, payload)


# PUBLIC_INTERFACE
@router.delete(
    "/{location_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete location",
    description="Delete the location. Products stored there remain, without a location.",
    dependencies=[Depends(require_permission("CanManageLocations"))],
)
async def delete_location(
    location_id: int = Path(..., description="Location ID"),
    session: AsyncSession = Depends(get_async_session),
) -> None:
    await LocationService(session).delete_location(location_id)
