from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Optional, Set, Tuple, Union

from .codec import DeflateCodec
from .constants import MAX_PATH_LEN, TERMINATOR_RECORD
from .container import LiteralOptions, render_literal_source, tag_for, wrap
from .encryption import Passphrase, encrypt_cbc, encrypt_hardened
from .errors import EmptyArchive, InvalidPath, PathTooLong
from .records import BytesLike, as_path_bytes, encode_record


@dataclass
class BuildOptions:
    compress: bool = True
    passphrase: Optional[Passphrase] = None
    hardened: bool = False
    strip_prefix: Optional[Union[str, bytes]] = None
    require_files: bool = False
    compress_level: Optional[int] = None

    def __post_init__(self):
        if self.passphrase is not None and not self.compress:
            raise ValueError("Encrypted artifacts are always compressed; compress=False is not allowed with a passphrase")
        if self.hardened and self.passphrase is None:
            raise ValueError("Hardened encryption requires a passphrase")

    @property
    def encrypted(self) -> bool:
        return self.passphrase is not None

    @property
    def tag(self) -> bytes:
        return tag_for(self.compress, self.encrypted, self.hardened)


class ArchiveBuilder:
    """Accumulates records for one artifact and runs the transform chain.

    Files are framed in the order they are added. ``finalize`` appends the
    terminator record, compresses, encrypts and tags the result. A builder
    produces exactly one artifact.
    """

    def __init__(self, options: Optional[BuildOptions] = None):
        self.options = options or BuildOptions()
        self._buffer = bytearray()
        self._seen: Set[bytes] = set()
        self.file_count = 0
        self.raw_size = 0
        self._artifact: Optional[bytes] = None

    def stored_path(self, path: Union[str, bytes]) -> bytes:
        """Apply prefix stripping and validate the path that will be stored."""
        p = as_path_bytes(path)
        if self.options.strip_prefix:
            prefix = as_path_bytes(self.options.strip_prefix)
            if not p.startswith(prefix):
                raise InvalidPath(f"Path does not start with prefix {prefix!r}", p)
            p = p[len(prefix):]
        if not p:
            raise InvalidPath("Stored path is empty", path)
        if len(p) > MAX_PATH_LEN:
            raise PathTooLong(f"Stored path exceeds {MAX_PATH_LEN} bytes", p)
        return p

    def add_file(self, path: Union[str, bytes], content: BytesLike) -> bytes:
        """Frame one file. Returns the path as stored in the ROM."""
        if self._artifact is not None:
            raise RuntimeError("Archive already finalized")
        stored = self.stored_path(path)
        if stored in self._seen:
            raise InvalidPath("Duplicate path", stored)
        self._buffer += encode_record(stored, content)
        self._seen.add(stored)
        self.file_count += 1
        return stored

    def add_files(self, files: Iterable[Tuple[Union[str, bytes], BytesLike]]) -> int:
        n = 0
        for path, content in files:
            self.add_file(path, content)
            n += 1
        return n

    def finalize(self) -> bytes:
        """Terminate the record stream and apply compression, encryption and the tag."""
        if self._artifact is not None:
            return self._artifact
        if self.options.require_files and self.file_count == 0:
            raise EmptyArchive("No files to archive")
        self._buffer += TERMINATOR_RECORD
        self.raw_size = len(self._buffer)
        data = bytes(self._buffer)
        self._buffer = bytearray()
        if self.options.compress:
            data = DeflateCodec(self.options.compress_level).compress(data)
        if self.options.passphrase is not None:
            if self.options.hardened:
                data = encrypt_hardened(data, self.options.passphrase)
            else:
                data = encrypt_cbc(data, self.options.passphrase)
        self._artifact = wrap(self.options.tag, data)
        return self._artifact

    def render_literal(self, literal: LiteralOptions) -> str:
        return render_literal_source(self.finalize(), literal, passphrase=self.options.passphrase)

    def write(self, dest: Union[str, Path, BinaryIO], literal: Optional[LiteralOptions] = None) -> int:
        """Finalize and write the artifact (or its literal source) to ``dest``.

        ``dest`` is a filesystem path or a binary file object. Paths are written
        through a temporary sibling and renamed into place, so a failed build
        never leaves a partial file. Returns the number of bytes written.
        """
        if literal is not None:
            out = self.render_literal(literal).encode("ascii")
        else:
            out = self.finalize()
        if hasattr(dest, "write"):
            dest.write(out)  # type: ignore[union-attr]
            return len(out)
        write_atomic(Path(dest), out)
        return len(out)


def write_atomic(path: Path, data: bytes) -> None:
    directory = path.parent if str(path.parent) else Path(".")
    fd, temp_name = tempfile.mkstemp(prefix=".romfs-", suffix=".tmp", dir=str(directory))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(temp_name, str(path))
    except OSError:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


def build(
    files: Iterable[Tuple[Union[str, bytes], BytesLike]],
    options: Optional[BuildOptions] = None,
) -> bytes:
    """Build an artifact from ordered (path, content) pairs."""
    builder = ArchiveBuilder(options)
    builder.add_files(files)
    return builder.finalize()
