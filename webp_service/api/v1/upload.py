"""Browser-facing synchronous conversion API.

Mounted at the root, with the paths the plugin frontend already uses:
  POST /convert-single: one PNG in, one WebP out
  POST /convert-batch: base64 files in JSON, converted files out
  POST /convert-and-zip: same as batch, echoes the game name
  POST /convert-folder-structure: zip in, zip of converted tree out
"""

import os
from typing import Any, List, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from webp_service.config import settings
from webp_service.conversion.batch import ConvertedFile, ZippedFile, convert_archive, convert_batch

router = APIRouter()

# Wired in during lifespan (same pattern as jobs.py)
_converter = None
_store = None


def set_converter(converter):
    global _converter
    _converter = converter


def set_temp_store(store):
    global _store
    _store = store


class BatchRequest(BaseModel):
    # Items are validated one by one in convert_batch
    files: Optional[Any] = None


class ZipRequest(BatchRequest):
    gameName: str = "game"


class BatchResponse(BaseModel):
    success: bool
    files: List[ConvertedFile]
    message: str


class ZipResponse(BaseModel):
    success: bool
    files: List[ZippedFile]
    gameName: str


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """Read an upload in 1 MB chunks, refusing anything over max_bytes."""
    chunks = []
    total = 0
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large (max {max_bytes / (1024 * 1024 * 1024):.1f} GB)",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _require_converter():
    if _converter is None or _store is None:
        raise HTTPException(status_code=503, detail="Converter not ready")
    return _converter


# ---------------------------------------------------------------------------
# POST /convert-single
# ---------------------------------------------------------------------------

@router.post("/convert-single")
async def convert_single(image: Optional[UploadFile] = File(None)):
    """Convert one uploaded image and return it as a WebP attachment."""
    converter = _require_converter()
    if image is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    raw = await read_upload(image, settings.max_upload_bytes)
    webp = await converter.convert(raw)
    stem = os.path.splitext(os.path.basename(image.filename or "image"))[0]
    return Response(
        content=webp,
        media_type="image/webp",
        headers={"Content-Disposition": f'attachment; filename="{stem}.webp"'},
    )


# ---------------------------------------------------------------------------
# POST /convert-batch, /convert-and-zip
# ---------------------------------------------------------------------------

@router.post("/convert-batch", response_model=BatchResponse)
async def convert_batch_files(request: BatchRequest):
    """Convert base64-encoded files; failures are skipped, not reported."""
    converter = _require_converter()
    if not isinstance(request.files, list):
        raise HTTPException(status_code=400, detail="Invalid files data")

    converted = await convert_batch(request.files, converter)
    return BatchResponse(
        success=True,
        files=converted,
        message=f"Converted {len(converted)} files",
    )


@router.post("/convert-and-zip", response_model=ZipResponse)
async def convert_and_zip(request: ZipRequest):
    converter = _require_converter()
    if not isinstance(request.files, list):
        raise HTTPException(status_code=400, detail="Invalid files data")

    converted = await convert_batch(request.files, converter)
    return ZipResponse(
        success=True,
        files=[ZippedFile(path=f.path, data=f.data) for f in converted],
        gameName=request.gameName,
    )


# ---------------------------------------------------------------------------
# POST /convert-folder-structure
# ---------------------------------------------------------------------------

@router.post("/convert-folder-structure")
async def convert_folder_structure(zipFile: Optional[UploadFile] = File(None)):
    """Convert every PNG in an uploaded zip, keeping the folder layout."""
    converter = _require_converter()
    if zipFile is None:
        raise HTTPException(status_code=400, detail="No zip file uploaded")

    data = await read_upload(zipFile, settings.max_upload_bytes)
    archive = await convert_archive(data, converter, _store)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": 'attachment; filename="converted_images.zip"'},
    )
