from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from .constants import (
    DEFAULT_LINE_WIDTH,
    KNOWN_TAGS,
    LITERAL_HEADER,
    TAG_ASC,
    TAG_BIN,
    TAG_ENC,
    TAG_ENX,
    TAG_SIZE,
)
from .errors import InvalidArtifact, Truncated, UnknownTag


BytesLike = Union[bytes, bytearray, memoryview]


def tag_for(compressed: bool, encrypted: bool, hardened: bool = False) -> bytes:
    """Select the artifact tag. Encryption wins: an encrypted payload is always compressed first."""
    if encrypted:
        return TAG_ENX if hardened else TAG_ENC
    if compressed:
        return TAG_BIN
    return TAG_ASC


def wrap(tag: bytes, payload: BytesLike) -> bytes:
    if tag not in KNOWN_TAGS:
        raise UnknownTag(f"Unknown artifact tag {tag!r}")
    return tag + bytes(payload)


def unwrap(artifact: BytesLike) -> Tuple[bytes, memoryview]:
    """Split an artifact into (tag, payload view)."""
    view = artifact if isinstance(artifact, memoryview) else memoryview(artifact)
    if len(view) < TAG_SIZE + 1:
        raise Truncated(f"Artifact too short ({len(view)} bytes)")
    tag = bytes(view[:TAG_SIZE])
    if tag not in KNOWN_TAGS:
        raise UnknownTag(f"Unknown artifact tag {tag!r}")
    return tag, view[TAG_SIZE:]


# -------- Literal-source (C) rendering --------

_C_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
_SIMPLE_ESCAPES = {
    0x5C: "\\\\",
    0x22: '\\"',
    0x09: "\\t",
}


@dataclass
class LiteralOptions:
    var_name: str
    declare_static: bool = False
    include_passphrase: bool = False
    line_width: int = DEFAULT_LINE_WIDTH

    def __post_init__(self):
        if not _C_IDENT.match(self.var_name):
            raise ValueError(f"Not a valid C identifier: {self.var_name!r}")
        if self.line_width < 0:
            raise ValueError("line_width must be >= 0")


def escape_literal(data: BytesLike, line_width: int = DEFAULT_LINE_WIDTH) -> List[str]:
    """Render bytes as a list of C string literal lines.

    A line is closed once it reaches ``line_width`` columns (0 disables
    wrapping). A printable byte directly after a ``\\xHH`` escape is preceded by
    ``""`` so the compiler cannot read it as a further hex digit.

    Printable bytes, ``?`` included, are copied as is, so a payload holding
    ``??/`` or ``??'`` reads as a trigraph when a compiler has trigraphs enabled.
    """
    lines: List[str] = []
    cur: List[str] = []
    width = 0
    last_was_hex = False
    for c in bytes(data):
        if width == 0:
            cur = ['"']
            width = 1
        if c in _SIMPLE_ESCAPES:
            piece = _SIMPLE_ESCAPES[c]
            last_was_hex = False
        elif 0x20 <= c <= 0x7E:
            piece = chr(c)
            if last_was_hex:
                piece = '""' + piece
            last_was_hex = False
        else:
            piece = "\\x%02X" % c
            last_was_hex = True
        cur.append(piece)
        width += len(piece)
        if line_width and width >= line_width:
            cur.append('"')
            lines.append("".join(cur))
            width = 0
            last_was_hex = False
    if width:
        cur.append('"')
        lines.append("".join(cur))
    return lines


def render_literal_source(
    artifact: BytesLike,
    options: LiteralOptions,
    passphrase: Optional[Union[str, bytes]] = None,
) -> str:
    """Render an artifact as a C source fragment.

    Declares ``<var>_len`` (artifact length, tag included), ``<var>`` (the
    artifact bytes) and, when ``include_passphrase`` is set,
    ``<var>_passphrase``.
    """
    tag, payload = unwrap(artifact)
    var = options.var_name
    static = "static " if options.declare_static else ""
    parts = [LITERAL_HEADER]
    if options.include_passphrase:
        if passphrase is None:
            raise ValueError("include_passphrase requires a passphrase")
        pw = passphrase.encode("utf-8") if isinstance(passphrase, str) else bytes(passphrase)
        pw_literal = "".join(escape_literal(pw, 0)) or '""'
        parts.append(f"{static}const char {var}_passphrase[] = {pw_literal};\n")
    parts.append(f"{static}const size_t {var}_len = {len(artifact)};\n")
    parts.append(f'{static}const char {var}[] = "{tag.decode("ascii")}"')
    for line in escape_literal(payload, options.line_width):
        parts.append("\n" + line)
    parts.append(";\n")
    return "".join(parts)


# -------- Literal-source parsing --------

@dataclass
class LiteralSource:
    var_name: str
    length: int
    artifact: bytes
    passphrase: Optional[bytes] = None


_SIMPLE_UNESCAPES = {
    "n": 0x0A,
    "t": 0x09,
    "r": 0x0D,
    "a": 0x07,
    "b": 0x08,
    "f": 0x0C,
    "v": 0x0B,
    "\\": 0x5C,
    '"': 0x22,
    "'": 0x27,
    "?": 0x3F,
}
_HEX_DIGITS = "0123456789abcdefABCDEF"
_OCT_DIGITS = "01234567"
_SKIP = re.compile(r"(?:\s+|/\*.*?\*/|//[^\n]*)*", re.S)
# declarations start a line; string literal lines start with a quote
_DECL = r"^[ \t]*(?:static\s+)?const\s+"


def _decode_one_literal(text: str, pos: int) -> Tuple[bytes, int]:
    # text[pos] is the opening quote
    out = bytearray()
    i = pos + 1
    n = len(text)
    while True:
        if i >= n or text[i] == "\n":
            raise InvalidArtifact(f"Unterminated string literal at offset {pos}")
        ch = text[i]
        if ch == '"':
            return bytes(out), i + 1
        if ch != "\\":
            out += ch.encode("utf-8")
            i += 1
            continue
        i += 1
        if i >= n:
            raise InvalidArtifact("Dangling backslash in string literal")
        esc = text[i]
        if esc == "x":
            j = i + 1
            while j < n and text[j] in _HEX_DIGITS:
                j += 1
            if j == i + 1:
                raise InvalidArtifact(f"Empty hex escape at offset {i - 1}")
            value = int(text[i + 1 : j], 16)
            if value > 0xFF:
                raise InvalidArtifact(f"Hex escape out of range at offset {i - 1}: \\x{text[i + 1:j]}")
            out.append(value)
            i = j
        elif esc in _OCT_DIGITS:
            j = i
            while j < n and j < i + 3 and text[j] in _OCT_DIGITS:
                j += 1
            value = int(text[i:j], 8)
            if value > 0xFF:
                raise InvalidArtifact(f"Octal escape out of range at offset {i - 1}")
            out.append(value)
            i = j
        elif esc in _SIMPLE_UNESCAPES:
            out.append(_SIMPLE_UNESCAPES[esc])
            i += 1
        else:
            raise InvalidArtifact(f"Unsupported escape \\{esc} at offset {i - 1}")


def decode_string_literals(text: str, pos: int = 0) -> Tuple[bytes, int]:
    """Decode a run of adjacent C string literals starting at ``pos``.

    Each literal is unescaped on its own and the results are concatenated, as
    a C compiler does. Returns (bytes, offset after the last literal).
    """
    out = bytearray()
    pos = _SKIP.match(text, pos).end()
    if pos >= len(text) or text[pos] != '"':
        raise InvalidArtifact(f"Expected a string literal at offset {pos}")
    while pos < len(text) and text[pos] == '"':
        chunk, pos = _decode_one_literal(text, pos)
        out += chunk
        pos = _SKIP.match(text, pos).end()
    return bytes(out), pos


def parse_literal_source(text: str, var_name: str) -> LiteralSource:
    """Recover the artifact (and passphrase, if declared) from rendered C source."""
    name = re.escape(var_name)
    m_len = re.search(_DECL + r"size_t\s+" + name + r"_len\s*=\s*(\d+)\s*;", text, re.M)
    if m_len is None:
        raise InvalidArtifact(f"No {var_name}_len declaration found")
    m_data = re.search(_DECL + r"char\s+" + name + r"\s*\[\s*\]\s*=", text, re.M)
    if m_data is None:
        raise InvalidArtifact(f"No {var_name}[] declaration found")
    artifact, end = decode_string_literals(text, m_data.end())
    if end >= len(text) or text[end] != ";":
        raise InvalidArtifact(f"Declaration of {var_name}[] is not terminated")
    length = int(m_len.group(1))
    if length != len(artifact):
        raise InvalidArtifact(f"{var_name}_len declares {length} bytes, literal holds {len(artifact)}")
    passphrase = None
    m_pw = re.search(_DECL + r"char\s+" + name + r"_passphrase\s*\[\s*\]\s*=", text, re.M)
    if m_pw is not None:
        passphrase, _ = decode_string_literals(text, m_pw.end())
    return LiteralSource(var_name=var_name, length=length, artifact=artifact, passphrase=passphrase)
