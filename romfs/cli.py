from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from romfs.builder import ArchiveBuilder, BuildOptions
from romfs.container import LiteralOptions, parse_literal_source
from romfs.discovery import read_file, read_stream, walk_files
from romfs.errors import PassphraseRequired, RomfsError, WrongPassphrase
from romfs.mount import mount


def _log(msg: str, quiet: bool) -> None:
    if not quiet:
        print(msg, file=sys.stderr)


def _show(path: bytes) -> str:
    return path.decode("utf-8", "backslashreplace")


def _load_artifact(source: str, c_var: Optional[str] = None) -> Tuple[bytes, Optional[bytes]]:
    """Read an artifact from a file (or stdin for ``-``).

    With ``c_var`` the input is literal C source and the artifact (plus any
    embedded passphrase) is recovered from the declarations of that variable.
    """
    raw = sys.stdin.buffer.read() if source == "-" else Path(source).read_bytes()
    if c_var is None:
        return raw, None
    parsed = parse_literal_source(raw.decode("utf-8"), c_var)
    return parsed.artifact, parsed.passphrase


def _mount_cli(source: str, passphrase: Optional[str], c_var: Optional[str]):
    artifact, embedded = _load_artifact(source, c_var)
    return mount(artifact, passphrase if passphrase is not None else embedded)


def cmd_build(
    source: str,
    output: str,
    *,
    passphrase: Optional[str] = None,
    hardened: bool = False,
    prefix: Optional[str] = None,
    compress: bool = True,
    c_var: Optional[str] = None,
    declare_static: bool = False,
    include_passphrase: bool = False,
    quiet: bool = False,
) -> bool:
    """Archive a directory (or a single file from stdin) as a ROM artifact.

    Args:
        source: Directory to archive, or ``-`` to read one file from stdin.
        output: Artifact path. In stdin mode this is the stored file name and
            the artifact goes to stdout.
        passphrase: Encrypt with this passphrase (ENC, or ENX with ``hardened``).
        hardened: Use Argon2id + XChaCha20-Poly1305 instead of the fixed-IV AES mode.
        prefix: Leading text removed from every stored path.
        compress: Deflate the record stream (always on when encrypting).
        c_var: Emit C source declaring this variable instead of a binary artifact.
        declare_static: Declare the C variables ``static``.
        include_passphrase: Also declare ``<c_var>_passphrase``.
        quiet: Suppress progress output.
    """
    options = BuildOptions(compress=compress, passphrase=passphrase, hardened=hardened, strip_prefix=prefix)
    literal = (
        LiteralOptions(c_var, declare_static=declare_static, include_passphrase=include_passphrase)
        if c_var
        else None
    )
    builder = ArchiveBuilder(options)

    if source == "-":
        if prefix and len(prefix) > len(output):
            raise ValueError(f"prefix ({prefix}) is longer than filename ({output})")
        name, data = read_stream(output, sys.stdin.buffer)
        stored = builder.add_file(name, data)
        _log(f"Archiving file: {name} as {_show(stored)} ({len(data)} bytes).", quiet)
        written = builder.write(sys.stdout.buffer, literal)
        sys.stdout.buffer.flush()
        target = "<stdout>"
    else:
        if prefix and len(prefix) > len(source):
            raise ValueError(f"prefix ({prefix}) is longer than source directory ({source})")
        _log(f"Archiving directory: {source}", quiet)
        for path in walk_files(source):
            data = read_file(path)
            stored = builder.add_file(path, data)
            _log(f"Archiving file: {path} as {_show(stored)} ({len(data)} bytes).", quiet)
        written = builder.write(output, literal)
        target = output

    _log(
        f"Done: {builder.file_count} files; raw {builder.raw_size} bytes; "
        f"{options.tag.decode('ascii')} artifact {written} bytes -> {target}",
        quiet,
    )
    return True


def cmd_list(artifact: str, *, passphrase: Optional[str] = None, c_var: Optional[str] = None) -> bool:
    """Print ``<size>\\t<path>`` for every file in the ROM, in stream order."""
    with _mount_cli(artifact, passphrase, c_var) as rom:
        for rec in rom.iter_records():
            print(f"{rec.size}\t{_show(rec.path)}")
    return True


def cmd_cat(artifact: str, path: str, *, passphrase: Optional[str] = None, c_var: Optional[str] = None) -> bool:
    """Write one file's content to stdout. Returns False when the path is absent."""
    with _mount_cli(artifact, passphrase, c_var) as rom:
        content = rom.lookup(path)
        if content is None:
            print(f"Error: {path} not found in ROM", file=sys.stderr)
            return False
        sys.stdout.buffer.write(content)
        sys.stdout.buffer.flush()
    return True


def cmd_info(artifact: str, *, passphrase: Optional[str] = None, c_var: Optional[str] = None) -> bool:
    """Print tag, sizes and file count."""
    data, embedded = _load_artifact(artifact, c_var)
    with mount(data, passphrase if passphrase is not None else embedded) as rom:
        files = sum(1 for _ in rom.iter_records())
        print(f"Tag: {rom.tag.decode('ascii')}")
        print(f"Artifact size: {len(data)}")
        print(f"Stream size: {rom.length}")
        print(f"Files: {files}")
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="romfs",
        description="Build and inspect embeddable ROM filesystem artifacts",
        epilog=(
            "ENC artifacts use a fixed AES IV for compatibility; pass --hardened for "
            "Argon2id + XChaCha20-Poly1305 (ENX)."
        ),
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_build = sub.add_parser("build", help="Archive a directory as a ROM")
    ap_build.add_argument("source", help="Source directory, or '-' to read a single file from stdin")
    ap_build.add_argument("output", help="Output file (stored file name when source is '-')")
    ap_build.add_argument("-c", "--c-var", help="Emit C source declaring this variable")
    ap_build.add_argument("-s", "--static", action="store_true", help="Declare the C variables static (needs -c)")
    ap_build.add_argument(
        "-p", "--include-passphrase", action="store_true", help="Declare <var>_passphrase (needs -c and -e)"
    )
    ap_build.add_argument("-e", "--passphrase", help="Encrypt with this passphrase")
    ap_build.add_argument("--hardened", action="store_true", help="Use Argon2id + XChaCha20-Poly1305 (needs -e)")
    ap_build.add_argument("-x", "--prefix", help="Strip this prefix from stored paths")
    ap_build.add_argument("--no-compress", action="store_true", help="Store the record stream uncompressed (ASC)")
    ap_build.add_argument("--quiet", action="store_true", help="Suppress progress output")

    for name, help_text in (("list", "List ROM contents"), ("info", "Show ROM information")):
        ap_read = sub.add_parser(name, help=help_text)
        ap_read.add_argument("artifact", help="Artifact path ('-' for stdin)")
        ap_read.add_argument("-e", "--passphrase", help="Passphrase for encrypted artifacts")
        ap_read.add_argument("--c-var", help="Read the artifact from C source declaring this variable")

    ap_cat = sub.add_parser("cat", help="Write one file from the ROM to stdout")
    ap_cat.add_argument("artifact", help="Artifact path ('-' for stdin)")
    ap_cat.add_argument("path", help="Path inside the ROM")
    ap_cat.add_argument("-e", "--passphrase", help="Passphrase for encrypted artifacts")
    ap_cat.add_argument("--c-var", help="Read the artifact from C source declaring this variable")

    args = ap.parse_args(argv)
    if args.cmd == "build":
        if (args.static or args.include_passphrase) and not args.c_var:
            ap.error("-s and -p require -c")
        if args.include_passphrase and args.passphrase is None:
            ap.error("-p requires -e")
        if args.hardened and args.passphrase is None:
            ap.error("--hardened requires -e")
        if args.no_compress and args.passphrase is not None:
            ap.error("--no-compress cannot be combined with -e")

    try:
        if args.cmd == "build":
            cmd_build(
                args.source,
                args.output,
                passphrase=args.passphrase,
                hardened=args.hardened,
                prefix=args.prefix,
                compress=not args.no_compress,
                c_var=args.c_var,
                declare_static=args.static,
                include_passphrase=args.include_passphrase,
                quiet=args.quiet,
            )
        elif args.cmd == "list":
            cmd_list(args.artifact, passphrase=args.passphrase, c_var=args.c_var)
        elif args.cmd == "info":
            cmd_info(args.artifact, passphrase=args.passphrase, c_var=args.c_var)
        elif args.cmd == "cat":
            found = cmd_cat(args.artifact, args.path, passphrase=args.passphrase, c_var=args.c_var)
            sys.exit(0 if found else 1)
        else:
            raise RuntimeError("Unknown command")
    except PassphraseRequired:
        print("Error: Artifact is encrypted. Provide --passphrase.", file=sys.stderr)
        sys.exit(2)
    except WrongPassphrase as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(3)
    except (RomfsError, OSError, ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
