"""Download endpoint for signed blob links issued by ``LocalObjectStore``."""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from gmbs_portal.common.exceptions import NotFound
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.storage.store import LocalObjectStore

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{signed}")
async def download(signed: str, container: ServiceContainer = Depends(get_container)):
    store = container.store
    if not isinstance(store, LocalObjectStore):
        raise NotFound("File not found")
    path = store.open_signed(signed)
    if path is None:
        raise NotFound("File not found or link expired")
    return FileResponse(path)
