from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Union

from .constants import (
    CONTENT_TERMINATOR,
    MAX_CONTENT_LEN,
    MAX_PATH_LEN,
    RECORD_HEADER,
    RECORD_HEADER_SIZE,
)
from .errors import ContentTooLarge, PathTooLong, Truncated


# Record layout (big endian, no padding between records):
#  - content_len u32 (stored content length including the trailing NUL)
#  - path_len u8
#  - path[path_len]
#  - content[content_len] (last byte is NUL)
# A record with content_len == 0 terminates the stream.

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass
class Record:
    path: bytes
    content: memoryview  # view into the stream, terminator excluded
    offset: int
    next_offset: int

    @property
    def size(self) -> int:
        return len(self.content)


def as_path_bytes(path: Union[str, bytes]) -> bytes:
    """Stored form of a path. Undecodable bytes carried as surrogates (as
    ``os.scandir`` yields them) map back to the original bytes."""
    if isinstance(path, str):
        return path.encode("utf-8", "surrogateescape")
    return bytes(path)


def encode_record(path: Union[str, bytes], content: BytesLike) -> bytes:
    """Frame a single (path, content) pair.

    Raises PathTooLong for paths over 255 bytes and ContentTooLarge when the
    content plus its terminator does not fit the 32-bit length field.
    """
    p = as_path_bytes(path)
    if len(p) > MAX_PATH_LEN:
        raise PathTooLong(f"Path exceeds {MAX_PATH_LEN} bytes", p)
    if len(content) > MAX_CONTENT_LEN:
        raise ContentTooLarge(f"Content exceeds {MAX_CONTENT_LEN} bytes", p)
    return RECORD_HEADER.pack(len(content) + 1, len(p)) + p + bytes(content) + CONTENT_TERMINATOR


def decode_record(stream: BytesLike, offset: int = 0) -> Optional[Record]:
    """Decode the record at ``offset``.

    Returns None on the terminator record. The returned content is a view into
    ``stream``; nothing is copied.
    """
    view = stream if isinstance(stream, memoryview) else memoryview(stream)
    end = len(view)
    if offset + RECORD_HEADER_SIZE > end:
        raise Truncated(f"Record header at offset {offset} runs past end of stream ({end} bytes)")
    content_len, path_len = RECORD_HEADER.unpack_from(view, offset)
    if content_len == 0:
        return None
    path_start = offset + RECORD_HEADER_SIZE
    content_start = path_start + path_len
    next_offset = content_start + content_len
    if next_offset > end:
        raise Truncated(
            f"Record at offset {offset} declares {path_len}+{content_len} bytes, "
            f"only {end - path_start} remain"
        )
    return Record(
        path=bytes(view[path_start:content_start]),
        content=view[content_start : next_offset - 1],
        offset=offset,
        next_offset=next_offset,
    )


def iter_records(stream: BytesLike) -> Iterator[Record]:
    """Yield records in stream order, stopping at the terminator."""
    view = stream if isinstance(stream, memoryview) else memoryview(stream)
    offset = 0
    while True:
        rec = decode_record(view, offset)
        if rec is None:
            return
        yield rec
        offset = rec.next_offset


def stream_extent(stream: BytesLike) -> int:
    """Walk the whole stream and return the offset just past the terminator.

    Raises Truncated when a record or the terminator is cut short.
    """
    view = stream if isinstance(stream, memoryview) else memoryview(stream)
    offset = 0
    for rec in iter_records(view):
        offset = rec.next_offset
    return offset + RECORD_HEADER_SIZE
