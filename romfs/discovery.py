from __future__ import annotations

import os
from typing import BinaryIO, Iterator, Tuple

from .constants import MAX_CONTENT_LEN
from .errors import ContentTooLarge


def _join(root: str, name: str) -> str:
    return f"{root}/{name}"


def walk_files(root: str) -> Iterator[str]:
    """Yield ``<root>/<relative path>`` for every regular file under ``root``.

    Entries are visited depth first in name order; symbolic links are skipped.
    A trailing separator on ``root`` is trimmed.
    """
    root = os.fspath(root)
    if len(root) > 1:
        root = root.rstrip("/" + os.sep) or root[0]
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        path = _join(root, entry.name)
        if entry.is_dir(follow_symlinks=False):
            yield from walk_files(path)
        elif entry.is_file(follow_symlinks=False):
            yield path


def read_file(path: str) -> bytes:
    size = os.path.getsize(path)
    if size > MAX_CONTENT_LEN:
        raise ContentTooLarge(f"File too big ({size} bytes)", path)
    with open(path, "rb") as fh:
        return fh.read()


def discover_files(root: str) -> Iterator[Tuple[str, bytes]]:
    """Yield (path, content) pairs for the tree under ``root`` in a stable order."""
    for path in walk_files(root):
        yield path, read_file(path)


def read_stream(name: str, stream: BinaryIO) -> Tuple[str, bytes]:
    """Read a single file's content from a binary stream (e.g. stdin)."""
    data = stream.read()
    if len(data) > MAX_CONTENT_LEN:
        raise ContentTooLarge(f"Input too big ({len(data)} bytes)", name)
    return name, data
