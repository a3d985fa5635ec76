"""
Folder API endpoints.

Uncategorized and Trash are always listed and cannot be created, renamed
or deleted.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from binderkeep.api.dependencies import Catalog, OwnerId
from binderkeep.api.schemas import OkResponse
from binderkeep.db.database import get_session
from binderkeep.db.folders import list_folders
from binderkeep.models.inventory import Folder

router = APIRouter(prefix="/folders", tags=["folders"])


class FolderCreateRequest(BaseModel):
    name: str = Field(..., examples=["Binder"])
    description: str | None = None


class FolderUpdateRequest(BaseModel):
    """Rename a folder or change its description. Renaming relabels its cards."""

    name: str | None = None
    description: str | None = None


class FolderResponse(BaseModel):
    id: int | None = None
    name: str
    description: str | None = None
    builtin: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_folder(cls, folder: Folder) -> "FolderResponse":
        return cls(
            id=folder.id,
            name=folder.name,
            description=folder.description,
            builtin=folder.builtin,
            created_at=folder.created_at,
        )


@router.get("", response_model=list[FolderResponse])
async def list_user_folders(
    owner_id: OwnerId,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> list[FolderResponse]:
    """Built-in folders first, then the owner's folders by name."""
    return [FolderResponse.from_folder(f) for f in await list_folders(session, owner_id)]


@router.post("", response_model=FolderResponse, status_code=201)
async def create_folder(
    request: FolderCreateRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> FolderResponse:
    """Create a folder. 409 if the name is taken or built in."""
    folder = await catalog.create_folder(owner_id, request.name, description=request.description)
    return FolderResponse.from_folder(folder)


@router.put("/{folder_id}", response_model=FolderResponse)
async def update_folder(
    folder_id: int,
    request: FolderUpdateRequest,
    owner_id: OwnerId,
    catalog: Catalog,
) -> FolderResponse:
    folder = await catalog.update_folder(
        owner_id, folder_id, name=request.name, description=request.description
    )
    return FolderResponse.from_folder(folder)


@router.delete("/{folder_id}", response_model=OkResponse)
async def delete_folder(folder_id: int, owner_id: OwnerId, catalog: Catalog) -> OkResponse:
    """Delete an empty folder."""
    await catalog.delete_folder(owner_id, folder_id)
    return OkResponse()
