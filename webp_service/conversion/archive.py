"""Zip archive extraction and packaging."""

import io
import os
import zipfile

from webp_service.errors import ArchiveError


def extract_archive(data: bytes, dest_dir: str) -> None:
    """Extract a zip held in memory into dest_dir.

    Entries that would land outside dest_dir are rejected.
    """
    dest_root = os.path.realpath(dest_dir)
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            for member in zf.namelist():
                target = os.path.realpath(os.path.join(dest_root, member))
                if target != dest_root and not target.startswith(dest_root + os.sep):
                    raise ArchiveError(f"Archive entry escapes extraction directory: {member}")
            zf.extractall(dest_root)
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Invalid or corrupted zip archive: {e}", original_error=e)
    except (OSError, RuntimeError, NotImplementedError) as e:
        # RuntimeError: encrypted entries; NotImplementedError: unknown compression
        raise ArchiveError(f"Could not extract archive: {e}", original_error=e)


def _pack(zf: zipfile.ZipFile, source_dir: str) -> None:
    for root, dirs, files in os.walk(source_dir):
        dirs.sort()
        rel_root = os.path.relpath(root, source_dir)
        if rel_root != ".":
            # Explicit directory entry keeps directories with no files
            zf.write(root, rel_root.replace(os.sep, "/") + "/")
        for name in sorted(files):
            path = os.path.join(root, name)
            zf.write(path, os.path.relpath(path, source_dir).replace(os.sep, "/"))


def write_archive(source_dir: str, archive_path: str) -> None:
    """Pack every file and directory under source_dir into archive_path."""
    try:
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            _pack(zf, source_dir)
    except OSError as e:
        raise ArchiveError(f"Could not write archive: {e}", original_error=e)


def create_archive(source_dir: str) -> bytes:
    """Pack source_dir into an in-memory zip and return its bytes."""
    buf = io.BytesIO()
    try:
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            _pack(zf, source_dir)
    except OSError as e:
        raise ArchiveError(f"Could not create archive: {e}", original_error=e)
    return buf.getvalue()
