# utils/files.py
import os, uuid
from typing import Tuple
from fastapi import HTTPException, UploadFile

from config import UPLOAD_ROOT, MAX_ATTACHMENT_MB

STATIC_BASE_URL = os.getenv("STATIC_BASE_URL", "/" + UPLOAD_ROOT.strip("/"))

MAX_UPLOAD_BYTES = MAX_ATTACHMENT_MB * 1024 * 1024


def _safe_name(name: str) -> str:
    name = os.path.basename(name or "").strip() or "file"
    return name.replace("\\", "_").replace("/", "_")


async def read_capped(file: UploadFile, limit: int = MAX_UPLOAD_BYTES) -> bytes:
    """Read the whole upload, raising 413 once ``limit`` bytes are exceeded."""
    data = bytearray()
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        data.extend(chunk)
        if len(data) > limit:
            raise HTTPException(
                status_code=413,
                detail=f"File '{file.filename}' exceeds {limit // (1024 * 1024)} MB",
            )
    return bytes(data)


async def save_upload(file: UploadFile, subdir: str, limit: int = MAX_UPLOAD_BYTES) -> Tuple[str, str, int]:
    """
    Save the uploaded file under {UPLOAD_ROOT}/{subdir}/<uuid>__orig.ext
    Return (public_url, original_filename, size_bytes)
    """
    folder = os.path.join(UPLOAD_ROOT, subdir)
    os.makedirs(folder, exist_ok=True)

    data = await read_capped(file, limit)
    orig = _safe_name(file.filename)
    fname = f"{uuid.uuid4().hex}__{orig}"
    path = os.path.join(folder, fname)

    with open(path, "wb") as out:
        out.write(data)
    await file.close()

    url = f"{STATIC_BASE_URL}/{subdir}/{fname}"
    return url, orig, len(data)
