from __future__ import annotations

import unittest

from romfs.builder import BuildOptions, build
from romfs.container import (
    LiteralOptions,
    decode_string_literals,
    escape_literal,
    parse_literal_source,
    render_literal_source,
)
from romfs.encryption import _HAS_CRYPTO
from romfs.errors import InvalidArtifact
from romfs.mount import mount


SAMPLE_FILES = [
    ("init.lua", b'print("hello\\tworld")\n'),
    ("bin/blob", bytes(range(256))),
]


class EscapeTests(unittest.TestCase):
    def test_hex_escape_followed_by_hex_digit_is_split(self):
        lines = escape_literal(b"\x01A")
        self.assertEqual(lines, ['"\\x01""A"'])
        decoded, _ = decode_string_literals(lines[0])
        self.assertEqual(decoded, b"\x01A")

    def test_unsplit_hex_escape_absorbs_following_digit(self):
        # what a compiler would read if the literal were not broken
        decoded, _ = decode_string_literals('"\\x01A"')
        self.assertEqual(decoded, b"\x1a")

    def test_simple_escapes(self):
        self.assertEqual(escape_literal(b'a\\b"c\td'), ['"a\\\\b\\"c\\td"'])

    def test_escape_after_hex_needs_no_split(self):
        self.assertEqual(escape_literal(b"\x01\\"), ['"\\x01\\\\"'])
        self.assertEqual(escape_literal(b"\x01\x02"), ['"\\x01\\x02"'])

    def test_non_printable_uses_upper_case_hex(self):
        self.assertEqual(escape_literal(b"\xff\n\x7f"), ['"\\xFF\\x0A\\x7F"'])

    def test_lines_wrap_at_width(self):
        data = b"a" * 200
        lines = escape_literal(data, 79)
        self.assertEqual(len(lines), 3)
        self.assertEqual(lines[0], '"' + "a" * 78 + '"')
        decoded, _ = decode_string_literals("\n".join(lines))
        self.assertEqual(decoded, data)

    def test_line_break_resets_hex_state(self):
        data = b"a" * 74 + b"\x01" + b"A"
        lines = escape_literal(data, 79)
        self.assertEqual(lines, ['"' + "a" * 74 + '\\x01"', '"A"'])
        decoded, _ = decode_string_literals("\n".join(lines))
        self.assertEqual(decoded, data)

    def test_no_wrapping_with_zero_width(self):
        self.assertEqual(len(escape_literal(b"z" * 500, 0)), 1)

    def test_every_byte_value_survives(self):
        data = bytes(range(256)) * 4 + b"\x0f0\x0fF\x00a"
        decoded, _ = decode_string_literals("\n".join(escape_literal(data)))
        self.assertEqual(decoded, data)


class LiteralSourceTests(unittest.TestCase):
    def test_render_and_parse_roundtrip(self):
        artifact = build(SAMPLE_FILES)
        text = render_literal_source(artifact, LiteralOptions("rom"))
        self.assertTrue(text.startswith("/* Auto-generated ROM file"))
        self.assertIn("#include <stddef.h>\n", text)
        self.assertIn(f"const size_t rom_len = {len(artifact)};\n", text)
        self.assertIn('const char rom[] = "BIN"\n"', text)
        self.assertTrue(text.endswith(";\n"))
        self.assertNotIn("static", text)
        self.assertNotIn("rom_passphrase", text)

        parsed = parse_literal_source(text, "rom")
        self.assertEqual(parsed.artifact, artifact)
        self.assertEqual(parsed.length, len(artifact))
        self.assertIsNone(parsed.passphrase)
        with mount(parsed.artifact) as rom:
            self.assertEqual(bytes(rom.lookup("bin/blob")), bytes(range(256)))

    def test_uncompressed_artifact_roundtrip(self):
        artifact = build(SAMPLE_FILES, BuildOptions(compress=False))
        text = render_literal_source(artifact, LiteralOptions("asc_rom", line_width=40))
        self.assertIn('const char asc_rom[] = "ASC"', text)
        self.assertEqual(parse_literal_source(text, "asc_rom").artifact, artifact)

    @unittest.skipUnless(_HAS_CRYPTO, "PyCryptodomex required")
    def test_static_declarations_with_passphrase(self):
        pw = 'se"cret\\'
        artifact = build(SAMPLE_FILES, BuildOptions(passphrase=pw))
        opts = LiteralOptions("rom", declare_static=True, include_passphrase=True)
        text = render_literal_source(artifact, opts, passphrase=pw)
        self.assertIn('static const char rom_passphrase[] = "se\\"cret\\\\";\n', text)
        self.assertIn("static const size_t rom_len = ", text)
        self.assertIn('static const char rom[] = "ENC"', text)

        parsed = parse_literal_source(text, "rom")
        self.assertEqual(parsed.passphrase, pw.encode("utf-8"))
        with mount(parsed.artifact, parsed.passphrase) as rom:
            self.assertEqual(bytes(rom.lookup("init.lua")), SAMPLE_FILES[0][1])

    @unittest.skipUnless(_HAS_CRYPTO, "PyCryptodomex required")
    def test_passphrase_resembling_declarations_roundtrips(self):
        pw = 'x"; const size_t rom_len = 1; const char rom[] = "ASC"; //'
        artifact = build(SAMPLE_FILES, BuildOptions(passphrase=pw))
        text = render_literal_source(artifact, LiteralOptions("rom", include_passphrase=True), passphrase=pw)
        parsed = parse_literal_source(text, "rom")
        self.assertEqual(parsed.artifact, artifact)
        self.assertEqual(parsed.length, len(artifact))
        self.assertEqual(parsed.passphrase, pw.encode("utf-8"))

    def test_include_passphrase_requires_one(self):
        artifact = build(SAMPLE_FILES)
        with self.assertRaises(ValueError):
            render_literal_source(artifact, LiteralOptions("rom", include_passphrase=True))

    def test_invalid_variable_name(self):
        with self.assertRaises(ValueError):
            LiteralOptions("1rom")
        with self.assertRaises(ValueError):
            LiteralOptions("rom-data")

    def test_length_mismatch_detected(self):
        artifact = build(SAMPLE_FILES)
        text = render_literal_source(artifact, LiteralOptions("rom"))
        bad = text.replace(f"rom_len = {len(artifact)};", f"rom_len = {len(artifact) + 1};")
        with self.assertRaises(InvalidArtifact):
            parse_literal_source(bad, "rom")

    def test_missing_declaration(self):
        with self.assertRaises(InvalidArtifact):
            parse_literal_source("int x;", "rom")


if __name__ == "__main__":
    unittest.main()
