from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from cashflow.uploads import storage
from cashflow.users.auth import get_current_user
from cashflow.users.schemas import CurrentUser


router = APIRouter()


@router.get("/{file_path:path}")
def serve_upload(
    file_path: str,
    current_user: CurrentUser = Depends(get_current_user),
):
    """Stream a stored attachment; callers only reach their own directory."""
    parts = [p for p in file_path.split("/") if p]
    if not parts:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file specified")

    if parts[0] != current_user.email or ".." in parts:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    path = storage.resolve_stored_path("/".join(parts))
    if not path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")

    return FileResponse(
        path,
        media_type=storage.content_type_for(path.name),
        headers={"Content-Disposition": "inline"},
    )
