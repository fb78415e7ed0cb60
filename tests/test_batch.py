import base64
import os

import pytest

from webp_service.conversion.batch import BatchFile, convert_archive, convert_batch, webp_path
from webp_service.errors import ArchiveError

from conftest import SMALL_OUTPUT, make_zip, read_zip


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_webp_path():
    assert webp_path("ui/button.png") == "ui/button.webp"
    assert webp_path("ui/BUTTON.PNG") == "ui/BUTTON.webp"
    assert webp_path("ui/photo.jpg") == "ui/photo.jpg"
    assert webp_path("png/file.png.bak") == "png/file.png.bak"


async def test_convert_batch_skips_failures(converter):
    files = [
        BatchFile(path="a/one.png", data=_b64(b"fits-at:70")),
        BatchFile(path="a/two.png", data=_b64(b"never")),
        BatchFile(path="b/three.png", data="***not base64***"),
        BatchFile(path="b/four.png", data=_b64(b"corrupt")),
    ]

    converted = await convert_batch(files, converter)

    assert [f.path for f in converted] == ["a/one.webp"]
    assert base64.b64decode(converted[0].data) == SMALL_OUTPUT
    assert converted[0].size == len(SMALL_OUTPUT)


async def test_convert_archive_round_trip(converter, store):
    data = make_zip(
        {
            "level1/": None,
            "level1/bg.png": b"fits-at:40",
            "level1/music.ogg": b"\x01\x02\x03",
            "bad.png": b"never",
        }
    )

    entries = read_zip(await convert_archive(data, converter, store))

    files = {name for name in entries if not name.endswith("/")}
    assert files == {"level1/bg.webp", "level1/music.ogg"}
    assert entries["level1/music.ogg"] == b"\x01\x02\x03"
    # Working directory is gone afterwards
    assert os.listdir(store.base_dir) == []


async def test_convert_archive_cleans_up_on_error(converter, store):
    with pytest.raises(ArchiveError):
        await convert_archive(b"garbage", converter, store)
    assert os.listdir(store.base_dir) == []


async def test_convert_batch_skips_malformed_entries(converter):
    files = [
        {"path": "a/no-data.png"},
        {"data": _b64(b"fits-at:90")},
        "just a string",
        {"path": "a/ok.png", "data": _b64(b"fits-at:90")},
    ]

    converted = await convert_batch(files, converter)

    assert [f.path for f in converted] == ["a/ok.webp"]


async def test_convert_batch_accepts_wrapped_base64(converter):
    encoded = _b64(b"fits-at:90")
    wrapped = encoded[:4] + "\n" + encoded[4:8] + " \r\n" + encoded[8:]

    converted = await convert_batch([BatchFile(path="wrapped.png", data=wrapped)], converter)

    assert [f.path for f in converted] == ["wrapped.webp"]
    assert base64.b64decode(converted[0].data) == SMALL_OUTPUT
