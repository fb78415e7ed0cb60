"""Quality-ladder search: re-encode at falling quality until the output fits."""

import asyncio
import logging
from typing import Callable, Iterator, Optional

from webp_service.config import settings
from webp_service.conversion.codec import encode_webp
from webp_service.errors import CompressionFailed

logger = logging.getLogger(__name__)

# Encoder signature: fn(raw_bytes, quality) -> encoded_bytes
Encoder = Callable[[bytes, int], bytes]


def quality_ladder(start: int = 90, step: int = 10, floor: int = 10) -> Iterator[int]:
    """Yield start, start - step, ... down to (and including) floor."""
    quality = start
    while quality >= floor:
        yield quality
        quality -= step


class QualitySearchConverter:
    """Linear search over the quality ladder for an encoding under max_bytes.

    Each encode runs in the default thread executor so a large image does not
    stall the event loop serving status polls.
    """

    def __init__(
        self,
        encoder: Encoder = encode_webp,
        max_bytes: Optional[int] = None,
        start: Optional[int] = None,
        step: Optional[int] = None,
        floor: Optional[int] = None,
    ):
        self._encoder = encoder
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_output_bytes
        self.start = start if start is not None else settings.quality_start
        self.step = step if step is not None else settings.quality_step
        self.floor = floor if floor is not None else settings.quality_floor

    async def convert(self, raw: bytes) -> bytes:
        """Return encoded bytes no larger than max_bytes.

        Raises:
            CompressionFailed: every quality on the ladder was too large.
            CodecError: the encoder rejected the input.
        """
        loop = asyncio.get_running_loop()
        for quality in quality_ladder(self.start, self.step, self.floor):
            data = await loop.run_in_executor(None, self._encoder, raw, quality)
            if len(data) <= self.max_bytes:
                logger.debug("Encoded %d bytes at quality %d", len(data), quality)
                return data
            logger.debug(
                "Quality %d gave %d bytes (limit %d), lowering",
                quality, len(data), self.max_bytes,
            )
        raise CompressionFailed.for_ceiling(self.max_bytes)
