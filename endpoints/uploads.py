from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path
from typing import BinaryIO

from fastapi import HTTPException, UploadFile

from persistence.paths import ensure_dir, upload_url_to_path

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPES = ("application/zip", "application/x-zip-compressed")
CHUNK_SIZE = 1024 * 1024


def require_zip(upload: UploadFile) -> None:
    if (upload.content_type or "") not in ZIP_CONTENT_TYPES:
        logger.warning(
            "File validation failed: %s (expected application/zip, received %s)",
            upload.filename,
            upload.content_type,
        )
        raise HTTPException(status_code=400, detail="Only zip files are allowed")


def require_image(upload: UploadFile) -> None:
    if not (upload.content_type or "").startswith("image/"):
        logger.warning(
            "Image validation failed: %s (expected image/*, received %s)",
            upload.filename,
            upload.content_type,
        )
        raise HTTPException(status_code=400, detail="Only image files are allowed")


def _suffix(filename: str | None) -> str:
    suffix = Path(filename or "").suffix
    # Keep the extension only when it is a plain one (".zip", ".png", ...).
    return suffix if suffix[1:].isalnum() else ""


def _open_part(dest_dir: Path, filename: str) -> tuple[BinaryIO, Path]:
    ensure_dir(dest_dir)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{filename}.", suffix=".part", dir=dest_dir)
    return os.fdopen(fd, "wb"), Path(tmp_name)


def _commit_part(f: BinaryIO, tmp_path: Path, target: Path) -> None:
    with f:
        f.flush()
        os.fsync(f.fileno())
    tmp_path.replace(target)


def _discard_part(f: BinaryIO, tmp_path: Path) -> None:
    try:
        f.close()
    finally:
        tmp_path.unlink(missing_ok=True)


async def save_upload(upload: UploadFile, dest_dir: Path, *, prefix: str, max_bytes: int) -> str:
    """
    Stream `upload` into dest_dir as "<prefix>_<epoch ms>_<random><ext>" and
    return the file name.

    Chunks go to a hidden ".part" file next to the target, which is renamed
    into place only once the whole body is on disk. Oversized uploads are
    rejected with 413; on that or any I/O error the partial file is removed,
    so the target name never points at a truncated file.
    """
    filename = f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}{_suffix(upload.filename)}"
    target = dest_dir / filename
    f, tmp_path = await asyncio.to_thread(_open_part, dest_dir, filename)

    size = 0
    try:
        while True:
            chunk = await upload.read(CHUNK_SIZE)
            if not chunk:
                break
            size += len(chunk)
            if size > max_bytes:
                logger.warning("Upload rejected: %s exceeds %d bytes", upload.filename, max_bytes)
                raise HTTPException(status_code=413, detail=f"File too large (limit {max_bytes} bytes)")
            await asyncio.to_thread(f.write, chunk)
        await asyncio.to_thread(_commit_part, f, tmp_path, target)
    except BaseException:
        await asyncio.to_thread(_discard_part, f, tmp_path)
        raise

    logger.debug("Stored upload %s as %s (%d bytes)", upload.filename, target, size)
    return filename


async def delete_upload(uploads_dir: Path, url_path: str | None) -> None:
    """Remove a previously stored "/uploads/..." file if it is still there."""
    if not url_path:
        return
    path = upload_url_to_path(uploads_dir, url_path)
    if path is None:
        logger.warning("Refusing to delete path outside uploads dir: %s", url_path)
        return
    try:
        await asyncio.to_thread(path.unlink, missing_ok=True)
    except OSError:
        logger.exception("Error deleting upload %s", path)


async def delete_upload_dir(path: Path) -> None:
    await asyncio.to_thread(shutil.rmtree, path, ignore_errors=True)
