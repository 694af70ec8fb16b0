"""
romfs: read-only file bundles ("ROMs") that a program can embed and query by path.

A ROM is a flat stream of (path, content) records behind a 3-byte tag:

- ASC: the raw record stream
- BIN: the stream deflated with zlib
- ENC: deflated, then AES-256-CBC keyed by SHA-256(passphrase) with a fixed IV.
  The fixed IV is kept for compatibility with existing artifacts and leaks
  equality of ciphertext prefixes; prefer ENX for new artifacts.
- ENX: deflated, then XChaCha20-Poly1305 keyed by Argon2id(passphrase, salt)

Artifacts can also be rendered as C source for compile-time embedding.
Lookups are a linear scan over the mounted stream; there is no index.

Typical use::

    from romfs import build, mount

    artifact = build([("init.lua", b"print('hi')")])
    with mount(artifact) as rom:
        rom.lookup("init.lua")
"""

from .builder import ArchiveBuilder, BuildOptions, build
from .container import LiteralOptions, parse_literal_source, render_literal_source
from .importer import RomImporter, install, uninstall
from .mount import MountedRom, lookup, mount, release

__version__ = "0.1"

__all__ = [
    "ArchiveBuilder",
    "BuildOptions",
    "LiteralOptions",
    "MountedRom",
    "RomImporter",
    "build",
    "install",
    "lookup",
    "mount",
    "release",
    "parse_literal_source",
    "render_literal_source",
    "uninstall",
]
