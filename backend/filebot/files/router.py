"""FastAPI router for read-only file listing endpoints."""
import logging
from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..catalog.schemas import FileRecord
from ..catalog.store import CatalogStore
from ..errors import CorruptCatalogError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


class UserFilesResponse(BaseModel):
    """Files stored for one user, in upload order."""
    owner_id: int = Field(..., description="Owner user id")
    count: int = Field(..., description="Number of stored files")
    files: List[FileRecord] = Field(default_factory=list)


@router.get("/users/{owner_id}", response_model=UserFilesResponse)
async def list_user_files(owner_id: int):
    """List the files uploaded by a registered user.

    Args:
        owner_id: User id whose files should be listed

    Returns:
        UserFilesResponse with every FileRecord owned by the user

    Raises:
        HTTPException 404: If the user is not registered
        HTTPException 503: If the catalog snapshot is corrupt
    """
    store = CatalogStore.get_instance()
    try:
        if not store.is_user_registered(owner_id):
            raise HTTPException(status_code=404, detail="User not registered")
        files = store.user_files(owner_id)
    except CorruptCatalogError as e:
        logger.error(f"File listing failed: {e}")
        raise HTTPException(status_code=503, detail="Catalog unavailable, repair required")

    return UserFilesResponse(owner_id=owner_id, count=len(files), files=files)
