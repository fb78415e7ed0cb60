"""Mirror a directory tree, converting PNGs and copying everything else.

The walk uses an explicit stack of directory iterators instead of recursion,
so entries are visited depth-first in listing order and the only suspension
point is the per-file conversion callback.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterator, List, Tuple

from webp_service.conversion.codec import WEBP_EXTENSION
from webp_service.errors import ConversionError, FilesystemError

logger = logging.getLogger(__name__)

CONVERTIBLE_EXTENSIONS = (".png",)

# Callback: fn(source_path, destination_dir) -> awaitable
OnConvertible = Callable[[str, str], Awaitable[None]]


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    CONVERTIBLE = "convertible"
    PASS_THROUGH = "pass_through"


@dataclass
class FileEntry:
    """One visited path and where its counterpart goes in the mirror."""
    kind: EntryKind
    source_path: str
    dest_path: str
    relative_path: str


def is_convertible(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() in CONVERTIBLE_EXTENSIONS


def converted_name(filename: str) -> str:
    """a/b/Logo.PNG -> a/b/Logo.webp"""
    return os.path.splitext(filename)[0] + WEBP_EXTENSION


def count_convertible(source_dir: str) -> int:
    """Number of convertible files anywhere under source_dir."""
    total = 0
    for _root, _dirs, files in os.walk(source_dir):
        total += sum(1 for f in files if is_convertible(f))
    return total


def _list_dir(path: str) -> List[str]:
    try:
        return os.listdir(path)
    except OSError as e:
        raise FilesystemError(f"Could not list directory {path}: {e}", original_error=e)


def _make_dir(path: str) -> None:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Could not create directory {path}: {e}", original_error=e)


def _copy_file(src: str, dst: str) -> None:
    try:
        shutil.copyfile(src, dst)
    except OSError as e:
        raise FilesystemError(f"Could not copy {src}: {e}", original_error=e)


def _classify(source_root: str, src_dir: str, dst_dir: str, name: str) -> FileEntry:
    src_path = os.path.join(src_dir, name)
    relative = os.path.relpath(src_path, source_root)
    if os.path.isdir(src_path):
        return FileEntry(EntryKind.DIRECTORY, src_path, os.path.join(dst_dir, name), relative)
    if is_convertible(name):
        return FileEntry(
            EntryKind.CONVERTIBLE, src_path, os.path.join(dst_dir, converted_name(name)), relative
        )
    return FileEntry(EntryKind.PASS_THROUGH, src_path, os.path.join(dst_dir, name), relative)


async def walk(source_dir: str, dest_dir: str, on_convertible: OnConvertible) -> None:
    """Mirror source_dir into dest_dir.

    Directories are recreated, convertible files are handed to
    ``on_convertible(source_path, destination_dir)`` and all other files are
    copied byte for byte. A ``ConversionError`` from the callback is logged
    and skipped; filesystem failures raise ``FilesystemError``.
    """
    _make_dir(dest_dir)
    stack: List[Tuple[str, str, Iterator[str]]] = [
        (source_dir, dest_dir, iter(_list_dir(source_dir)))
    ]

    while stack:
        src_dir, dst_dir, names = stack[-1]
        name = next(names, None)
        if name is None:
            stack.pop()
            continue

        entry = _classify(source_dir, src_dir, dst_dir, name)
        if entry.kind is EntryKind.DIRECTORY:
            _make_dir(entry.dest_path)
            stack.append((entry.source_path, entry.dest_path, iter(_list_dir(entry.source_path))))
        elif entry.kind is EntryKind.CONVERTIBLE:
            try:
                await on_convertible(entry.source_path, dst_dir)
            except ConversionError as e:
                logger.warning("Skipping %s: %s", entry.relative_path, e)
        else:
            _copy_file(entry.source_path, entry.dest_path)
