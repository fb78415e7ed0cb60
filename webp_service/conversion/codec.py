"""Pillow-backed WebP encoder."""

import io

from PIL import Image, UnidentifiedImageError

from webp_service.errors import CodecError

WEBP_EXTENSION = ".webp"


def encode_webp(raw: bytes, quality: int) -> bytes:
    """Encode image bytes as lossy WebP at the given quality (0-100)."""
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                # WebP only stores RGB(A); keep alpha for palette/LA images
                has_alpha = "A" in img.getbands() or "transparency" in img.info
                img = img.convert("RGBA" if has_alpha else "RGB")
            buf = io.BytesIO()
            img.save(buf, format="WEBP", quality=quality, lossless=False)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
        SyntaxError,
        EOFError,
    ) as e:
        # SyntaxError: broken PNG chunks while loading; bomb: oversized IHDR
        raise CodecError(f"Could not encode image: {e}", original_error=e)
    return buf.getvalue()
