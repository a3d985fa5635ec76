"""
Shared request dependencies.

The auth middleware in front of this service attaches the caller's owner
id as a header; every endpoint takes it from here and threads it through
explicitly.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from binderkeep.config import settings
from binderkeep.db.database import get_session_factory
from binderkeep.services.catalog_service import CatalogService
from binderkeep.services.reservation_service import ReservationService


async def get_owner_id(request: Request) -> str:
    """Owner id attached by the auth middleware. 401 when absent."""
    owner_id = request.headers.get(settings.owner_header, "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.owner_header} header",
        )
    return owner_id


def get_reservation_service(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> ReservationService:
    return ReservationService(session_factory)


def get_catalog_service(
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)],
) -> CatalogService:
    return CatalogService(session_factory)


OwnerId = Annotated[str, Depends(get_owner_id)]
Reservations = Annotated[ReservationService, Depends(get_reservation_service)]
Catalog = Annotated[CatalogService, Depends(get_catalog_service)]
