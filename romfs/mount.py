from __future__ import annotations

from typing import Iterator, Optional, Tuple, Union

from .codec import decompress
from .constants import ROM_SIGNATURE, TAG_BIN, TAG_ENC, TAG_ENX
from .container import BytesLike, unwrap
from .encryption import Passphrase, decrypt_cbc, decrypt_hardened
from .errors import CorruptStream, InvalidHandle, InvalidPadding, PassphraseRequired, Truncated, WrongPassphrase
from .records import Record, as_path_bytes, decode_record, iter_records, stream_extent


class MountedRom:
    """A mounted raw record stream.

    Created by :func:`mount`, queried with :meth:`lookup`, and released exactly
    once with :meth:`release` (or by leaving a ``with`` block). Lookups only read
    the stream, so one handle may serve several threads until it is released.
    """

    def __init__(self, stream: bytes, tag: bytes):
        self._signature: Optional[bytes] = ROM_SIGNATURE
        self._stream: Optional[bytes] = stream
        self._view: Optional[memoryview] = memoryview(stream)
        self._length = len(stream)
        self.tag = tag

    def __repr__(self) -> str:
        state = "released" if self.released else f"length={self._length}"
        return f"<MountedRom tag={self.tag.decode('ascii')} {state}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.released:
            self.release()

    @property
    def released(self) -> bool:
        return self._view is None

    @property
    def length(self) -> int:
        return self._length

    def _checked_view(self) -> memoryview:
        view = self._view
        if self._signature != ROM_SIGNATURE or view is None or len(view) != self._length:
            raise InvalidHandle("Not a mounted ROM (released or foreign handle)")
        return view

    def lookup(self, path: Union[str, bytes]) -> Optional[memoryview]:
        """Return a view of the content stored under ``path``, or None.

        Linear scan from the start of the stream; the first record whose path
        matches byte for byte wins.
        """
        view = self._checked_view()
        wanted = as_path_bytes(path)
        offset = 0
        while True:
            rec = decode_record(view, offset)
            if rec is None:
                return None
            if rec.path == wanted:
                return rec.content
            offset = rec.next_offset

    def iter_records(self) -> Iterator[Record]:
        return iter_records(self._checked_view())

    def raw_stream(self) -> memoryview:
        return self._checked_view()

    def release(self) -> None:
        self._checked_view()
        self._signature = None
        self._view = None
        self._stream = None


def recover_stream(artifact: BytesLike, passphrase: Optional[Passphrase] = None) -> Tuple[bytes, bytes]:
    """Undo tag, encryption and compression. Returns (tag, raw record stream)."""
    tag, payload = unwrap(artifact)
    if tag == TAG_ENC or tag == TAG_ENX:
        if passphrase is None:
            raise PassphraseRequired(f"{tag.decode('ascii')} artifact requires a passphrase")
        if tag == TAG_ENX:
            compressed = decrypt_hardened(payload, passphrase)
            return tag, decompress(compressed)
        try:
            compressed = decrypt_cbc(payload, passphrase)
        except InvalidPadding as e:
            raise WrongPassphrase("Decryption produced invalid padding; wrong passphrase?") from e
        try:
            return tag, decompress(compressed)
        except (CorruptStream, Truncated) as e:
            raise WrongPassphrase("Decrypted payload does not inflate; wrong passphrase?") from e
    if tag == TAG_BIN:
        return tag, decompress(payload)
    return tag, bytes(payload)


def mount(artifact: BytesLike, passphrase: Optional[Passphrase] = None) -> MountedRom:
    """Recover and validate the raw stream of ``artifact`` and wrap it in a handle."""
    tag, stream = recover_stream(artifact, passphrase)
    stream_extent(stream)
    return MountedRom(stream, tag)


def lookup(handle: MountedRom, path: Union[str, bytes]) -> Optional[memoryview]:
    if not isinstance(handle, MountedRom):
        raise InvalidHandle(f"Expected a mounted ROM, got {type(handle).__name__}")
    return handle.lookup(path)


def release(handle: MountedRom) -> None:
    if not isinstance(handle, MountedRom):
        raise InvalidHandle(f"Expected a mounted ROM, got {type(handle).__name__}")
    handle.release()
