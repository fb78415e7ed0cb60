"""Synchronous (request-scoped) conversions: batch payloads and whole archives."""

import asyncio
import base64
import binascii
import logging
import os
import re
import tempfile
from typing import Any, List

from pydantic import BaseModel, ValidationError

from webp_service.conversion.archive import create_archive, extract_archive
from webp_service.conversion.quality_search import QualitySearchConverter
from webp_service.conversion.tree_walker import converted_name, walk
from webp_service.errors import ConversionError, FilesystemError
from webp_service.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)

_PNG_SUFFIX = re.compile(r"\.png$", re.IGNORECASE)


class BatchFile(BaseModel):
    path: str
    data: str  # base64


class ConvertedFile(BaseModel):
    path: str
    data: str  # base64
    size: int


class ZippedFile(BaseModel):
    """Item shape returned by /convert-and-zip (no size)."""
    path: str
    data: str  # base64


def webp_path(path: str) -> str:
    """Rewrite a trailing .png (any case) to .webp; other paths are unchanged."""
    return _PNG_SUFFIX.sub(".webp", path)


async def convert_batch(
    files: List[Any],
    converter: QualitySearchConverter,
) -> List[ConvertedFile]:
    """Convert each base64 item; items that fail are logged and left out.

    Items are validated one by one, so a malformed entry (missing path or
    data) is skipped like any other failure instead of rejecting the batch.
    """
    converted: List[ConvertedFile] = []
    for index, entry in enumerate(files):
        try:
            item = BatchFile.model_validate(entry)
        except ValidationError as e:
            logger.error("Error converting item %d: malformed entry (%s)", index, e)
            continue
        try:
            # Lenient like browser base64: whitespace and line breaks are dropped
            raw = base64.b64decode("".join(item.data.split()))
        except (binascii.Error, ValueError) as e:
            logger.error("Error converting %s: invalid base64 (%s)", item.path, e)
            continue
        try:
            webp = await converter.convert(raw)
        except ConversionError as e:
            logger.error("Error converting %s: %s", item.path, e)
            continue
        out_path = webp_path(item.path)
        converted.append(
            ConvertedFile(path=out_path, data=base64.b64encode(webp).decode("ascii"), size=len(webp))
        )
        logger.info("Converted: %s -> %s", item.path, out_path)
    return converted


async def convert_archive(
    data: bytes,
    converter: QualitySearchConverter,
    store: TempResultStore,
) -> bytes:
    """Extract, convert and repackage an archive within one call.

    Works in a private directory under the store's base dir that is removed
    before returning, whatever the outcome.
    """
    loop = asyncio.get_running_loop()
    try:
        os.makedirs(store.base_dir, exist_ok=True)
        work_dir = tempfile.mkdtemp(prefix="sync-", dir=store.base_dir)
    except OSError as e:
        raise FilesystemError(f"Could not create working directory: {e}", original_error=e)

    extract_dir = os.path.join(work_dir, "extracted")
    output_dir = os.path.join(work_dir, "output")

    async def on_convertible(source_path: str, dest_dir: str) -> None:
        with open(source_path, "rb") as f:
            raw = f.read()
        webp = await converter.convert(raw)
        dest_path = os.path.join(dest_dir, converted_name(os.path.basename(source_path)))
        with open(dest_path, "wb") as f:
            f.write(webp)
        logger.info("Converted: %s -> %s", source_path, dest_path)

    try:
        os.makedirs(extract_dir)
        await loop.run_in_executor(None, extract_archive, data, extract_dir)
        await walk(extract_dir, output_dir, on_convertible)
        return await loop.run_in_executor(None, create_archive, output_dir)
    finally:
        store.remove(work_dir)
