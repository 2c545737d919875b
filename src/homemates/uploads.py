"""Spreadsheet upload validation and storage."""

import logging
from pathlib import Path
from uuid import uuid4

from fastapi import HTTPException, UploadFile, status

from homemates import config
from homemates.tabular import SUPPORTED_EXTENSIONS, file_extension

logger = logging.getLogger("homemates-uploads")


async def read_spreadsheet_upload(file: UploadFile) -> bytes:
    """Read an uploaded CSV/Excel file, enforcing type and size limits.

    Raises:
        HTTPException: 415 for other file types, 413 over the size limit,
            400 for an empty file.
    """
    extension = file_extension(file.filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type '{extension or file.filename}'. Upload a CSV or Excel file.",
        )

    content = await file.read(config.MAX_UPLOAD_BYTES + 1)
    if len(content) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {config.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
        )
    if not content.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty",
        )
    return content


async def read_asset_upload(
    file: UploadFile, media_types: dict[str, str], max_bytes: int, label: str
) -> tuple[bytes, str]:
    """Read an image or audio upload.

    Args:
        media_types: Allowed extensions mapped to the media type served back.
        label: Field name used in error messages.

    Returns:
        The bytes and the media type for the file's extension.
    """
    extension = file_extension(file.filename)
    if extension not in media_types:
        allowed = ", ".join(sorted(ext.lstrip(".").upper() for ext in media_types))
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported {label} type '{extension or file.filename}'. Use {allowed}.",
        )

    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"{label.capitalize()} exceeds {max_bytes // (1024 * 1024)} MB limit",
        )
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Uploaded {label} is empty",
        )
    return content, media_types[extension]


def store_upload(content: bytes, filename: str) -> Path:
    """Write upload bytes under UPLOAD_DIR with a unique name."""
    config.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    path = config.UPLOAD_DIR / f"{uuid4().hex}_{Path(filename).name}"
    path.write_bytes(content)
    logger.info(f"Stored upload {filename} at {path}")
    return path


def remove_upload(file_url: str | None) -> None:
    """Delete a stored upload if it lives under UPLOAD_DIR."""
    if not file_url:
        return
    path = Path(file_url)
    try:
        path.resolve().relative_to(config.UPLOAD_DIR.resolve())
    except ValueError:
        logger.warning(f"Refusing to delete {file_url} outside {config.UPLOAD_DIR}")
        return
    path.unlink(missing_ok=True)
