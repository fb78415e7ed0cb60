"""Shared fixtures for the conversion service test suite.

Most tests inject a fake encoder so the quality ladder is deterministic: a
fake "PNG" is just a text payload telling the encoder how to behave.

    b"fits-at:50"  -> output fits the ceiling once quality <= 50
    b"never"       -> output never fits
    b"corrupt"     -> encoder raises CodecError
"""

from __future__ import annotations

import io
import zipfile
from typing import Dict, List, Optional

import pytest

from webp_service.conversion.quality_search import QualitySearchConverter
from webp_service.errors import CodecError
from webp_service.jobs.in_process_queue import InProcessQueue
from webp_service.jobs.orchestrator import JobOrchestrator
from webp_service.jobs.registry import JobRegistry
from webp_service.storage.temp_results import TempResultStore

MAX_BYTES = 100
SMALL_OUTPUT = b"WEBP-OK"


class FakeEncoder:
    """Records every (payload, quality) call; output size follows the payload."""

    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, raw: bytes, quality: int) -> bytes:
        self.calls.append((raw, quality))
        if raw == b"corrupt":
            raise CodecError("cannot identify image file")
        if raw.startswith(b"fits-at:"):
            threshold = int(raw.split(b":", 1)[1])
            if quality <= threshold:
                return SMALL_OUTPUT
        return b"x" * (MAX_BYTES + 1)

    def qualities(self, raw: Optional[bytes] = None) -> List[int]:
        return [q for r, q in self.calls if raw is None or r == raw]


def make_zip(entries: Dict[str, Optional[bytes]]) -> bytes:
    """Build a zip in memory. A None value (or trailing '/') makes a directory."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in entries.items():
            if data is None or name.endswith("/"):
                zf.writestr(name.rstrip("/") + "/", b"")
            else:
                zf.writestr(name, data)
    return buf.getvalue()


def read_zip(data: bytes) -> Dict[str, bytes]:
    """Return {name: content} for every file entry (directories end with '/')."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


def png_bytes(size=(16, 16), color=(200, 30, 30, 255)) -> bytes:
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def converter(encoder) -> QualitySearchConverter:
    return QualitySearchConverter(encoder=encoder, max_bytes=MAX_BYTES, start=90, step=10, floor=10)


@pytest.fixture
def store(tmp_path) -> TempResultStore:
    return TempResultStore(str(tmp_path / "jobs"))


@pytest.fixture
def registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture
async def dispatcher():
    queue = InProcessQueue(workers=2)
    await queue.start()
    yield queue
    await queue.stop()


@pytest.fixture
def orchestrator(registry, dispatcher, store, converter) -> JobOrchestrator:
    return JobOrchestrator(
        registry,
        dispatcher,
        store,
        converter,
        cleanup_delay_seconds=0,
        job_ttl_seconds=3600,
        yield_seconds=0,
    )


def bomb_png(width: int = 20000, height: int = 20000) -> bytes:
    """A tiny PNG whose header claims far more pixels than Pillow will open."""
    import struct
    import zlib

    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", ihdr)
        + chunk(b"IDAT", zlib.compress(b"\x00" * 16))
        + chunk(b"IEND", b"")
    )
