import io
import os
import zipfile

import pytest

from webp_service.conversion.archive import create_archive, extract_archive, write_archive
from webp_service.errors import ArchiveError

from conftest import make_zip, read_zip


def test_extract_archive(tmp_path):
    data = make_zip({"a.png": b"A", "dir/": None, "dir/b.txt": b"B"})
    extract_archive(data, str(tmp_path))
    assert (tmp_path / "a.png").read_bytes() == b"A"
    assert (tmp_path / "dir" / "b.txt").read_bytes() == b"B"


def test_extract_corrupt_archive(tmp_path):
    with pytest.raises(ArchiveError):
        extract_archive(b"this is not a zip file", str(tmp_path))


def test_extract_rejects_path_traversal(tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("../evil.txt", b"nope")
    dest = tmp_path / "dest"
    dest.mkdir()
    with pytest.raises(ArchiveError):
        extract_archive(buf.getvalue(), str(dest))
    assert not (tmp_path / "evil.txt").exists()


def test_create_archive_keeps_relative_paths_and_empty_dirs(tmp_path):
    (tmp_path / "sub" / "deeper").mkdir(parents=True)
    (tmp_path / "empty").mkdir()
    (tmp_path / "top.txt").write_bytes(b"top")
    (tmp_path / "sub" / "deeper" / "x.webp").write_bytes(b"x")

    entries = read_zip(create_archive(str(tmp_path)))

    assert entries["top.txt"] == b"top"
    assert entries["sub/deeper/x.webp"] == b"x"
    assert "empty/" in entries
    assert "sub/" in entries


def test_write_archive(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "f.bin").write_bytes(b"\x00\x01")
    target = tmp_path / "out.zip"

    write_archive(str(src), str(target))

    assert read_zip(target.read_bytes()) == {"f.bin": b"\x00\x01"}


def test_write_archive_to_missing_directory(tmp_path):
    with pytest.raises(ArchiveError):
        write_archive(str(tmp_path), os.path.join(str(tmp_path), "missing", "out.zip"))
