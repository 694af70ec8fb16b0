from __future__ import annotations

import zlib
from typing import Optional, Union

from .constants import DEFAULT_COMPRESS_LEVEL, INFLATE_CHUNK_SIZE
from .errors import CompressionFailed, CorruptStream, Truncated


class DeflateCodec:
    """zlib-framed deflate, the only compression used by ROM artifacts."""

    def __init__(self, level: Optional[int] = None, chunk_size: int = INFLATE_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.level = DEFAULT_COMPRESS_LEVEL if level is None else level
        self.chunk_size = chunk_size

    def compress(self, data: Union[bytes, bytearray, memoryview]) -> bytes:
        try:
            c = zlib.compressobj(self.level)
            return c.compress(data) + c.flush(zlib.Z_FINISH)
        except (zlib.error, ValueError) as e:
            raise CompressionFailed(f"deflate failed: {e}") from e

    def decompress(self, data: Union[bytes, bytearray, memoryview]) -> bytes:
        """Inflate ``data`` whose decompressed size is unknown.

        Output is produced at most ``chunk_size`` bytes per step into a growing
        buffer until the stream-end marker is seen.
        """
        d = zlib.decompressobj()
        out = bytearray()
        pending = bytes(data)
        try:
            while not d.eof:
                out += d.decompress(pending, self.chunk_size)
                pending = d.unconsumed_tail
                if not pending and not d.eof:
                    # input exhausted; drain whatever inflate still holds
                    out += d.flush()
                    if not d.eof:
                        raise Truncated(f"deflate stream ended early after {len(data)} input bytes")
        except zlib.error as e:
            raise CorruptStream(f"inflate failed: {e}") from e
        if d.unused_data:
            raise CorruptStream(f"{len(d.unused_data)} trailing bytes after deflate stream end")
        return bytes(out)


def compress(data: Union[bytes, bytearray, memoryview], level: Optional[int] = None) -> bytes:
    return DeflateCodec(level).compress(data)


def decompress(data: Union[bytes, bytearray, memoryview], chunk_size: int = INFLATE_CHUNK_SIZE) -> bytes:
    return DeflateCodec(chunk_size=chunk_size).decompress(data)
