import os
import re
import shutil
import time
from datetime import datetime
from pathlib import Path

from fastapi import HTTPException, UploadFile, status
from loguru import logger

from cashflow.config import settings


CONTENT_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR).resolve()


def safe_filename(name: str) -> str:
    name = os.path.basename(name or "")
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._")
    return name or "upload"


def content_type_for(path: str) -> str:
    extension = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return CONTENT_TYPES.get(extension, "application/octet-stream")


def resolve_stored_path(url: str) -> Path:
    """Map an attachment url (<email>/<file>) to a path under the upload root."""
    root = upload_root()
    path = (root / url.lstrip("/")).resolve()
    if root not in path.parents:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file path")
    return path


def is_external(url: str) -> bool:
    return "://" in (url or "")


def belongs_to(url: str, email: str) -> bool:
    """True for a stored file under email's own upload directory."""
    if is_external(url):
        return False
    parts = [p for p in url.strip("/").split("/") if p]
    if parts and parts[0] == "uploads":
        parts = parts[1:]
    return len(parts) >= 2 and parts[0] == email and ".." not in parts


def relative_url(url: str) -> str:
    url = url.lstrip("/")
    if url.startswith("uploads/"):
        url = url[len("uploads/"):]
    return url


def max_upload_bytes() -> int:
    return settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024


def save_upload(email: str, file: UploadFile) -> dict:
    # Millisecond prefix keeps concurrent uploads of the same name apart
    filename = f"{int(time.time() * 1000)}-{safe_filename(file.filename)}"
    target_dir = upload_root() / email
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / filename

    with open(target, "wb") as f:
        shutil.copyfileobj(file.file, f)

    size = target.stat().st_size
    if size > max_upload_bytes():
        target.unlink()
        logger.warning(f"Rejected upload {filename} for {email}: {size} bytes")
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.MAX_UPLOAD_SIZE_MB} MB"
        )

    logger.info(f"Stored upload {email}/{filename} ({size} bytes)")

    return {
        "filename": filename,
        "original_name": file.filename,
        "size": size,
        "type": file.content_type,
        "uploaded_at": datetime.utcnow().isoformat(),
        "url": f"{email}/{filename}",
        "path": str(target),
    }


def delete_stored_file(url: str) -> bool:
    try:
        path = resolve_stored_path(url)
        path.unlink()
        return True
    except (OSError, HTTPException) as e:
        logger.warning(f"Could not delete stored file {url}: {e}")
        return False
