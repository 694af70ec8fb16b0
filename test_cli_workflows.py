from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from typing import Dict

from romfs.container import parse_literal_source
from romfs.encryption import _HAS_CRYPTO
from romfs.mount import mount


def _build_fixture_tree(root: Path) -> Dict[str, bytes]:
    files: Dict[str, bytes] = {}
    (root / "lib").mkdir(parents=True)
    files["init.lua"] = b"require 'lib.util'\n"
    files["lib/util.lua"] = b"return { answer = 42 }\n"
    files["lib/blob.bin"] = os.urandom(2048)
    files["empty.txt"] = b""
    for rel, data in files.items():
        (root / rel).write_bytes(data)
    return files


class CLIIntegrationTests(unittest.TestCase):
    def run_cli(self, args, *, expect: int | None = 0, stdin: bytes | None = None):
        cmd = [sys.executable, "-m", "romfs.cli"] + list(args)
        env = os.environ.copy()
        repo_root = Path(__file__).resolve().parent
        existing = env.get("PYTHONPATH", "")
        env["PYTHONPATH"] = str(repo_root) if not existing else f"{repo_root}{os.pathsep}{existing}"
        proc = subprocess.run(
            cmd,
            input=stdin,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
        )
        if expect is not None and proc.returncode != expect:
            raise AssertionError(
                f"CLI exited {proc.returncode}, expected {expect}\nCommand: {' '.join(cmd)}\n"
                f"STDOUT:\n{proc.stdout!r}\nSTDERR:\n{proc.stderr.decode(errors='replace')}"
            )
        return proc

    def make_workspace(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        root = Path(tmp.name)
        src = root / "src"
        files = _build_fixture_tree(src)
        return root, src, files

    def test_build_list_cat_info(self):
        root, src, files = self.make_workspace()
        artifact = root / "out.rom"
        build_proc = self.run_cli(["build", "-x", f"{src}/", f"{src}/", str(artifact)])
        stderr = build_proc.stderr.decode()
        self.assertIn("Archiving directory:", stderr)
        self.assertIn("as lib/util.lua (", stderr)
        self.assertIn("Done: 4 files", stderr)
        self.assertEqual(artifact.read_bytes()[:3], b"BIN")

        listing = self.run_cli(["list", str(artifact)]).stdout.decode().splitlines()
        self.assertEqual(
            listing,
            [f"{len(files[p])}\t{p}" for p in ("empty.txt", "init.lua", "lib/blob.bin", "lib/util.lua")],
        )

        cat = self.run_cli(["cat", str(artifact), "lib/blob.bin"])
        self.assertEqual(cat.stdout, files["lib/blob.bin"])

        missing = self.run_cli(["cat", str(artifact), "nope.lua"], expect=1)
        self.assertIn(b"not found", missing.stderr)

        info = self.run_cli(["info", str(artifact)]).stdout.decode()
        self.assertIn("Tag: BIN", info)
        self.assertIn("Files: 4", info)

    def test_build_without_prefix_keeps_source_path(self):
        root, src, files = self.make_workspace()
        artifact = root / "out.rom"
        self.run_cli(["build", "--quiet", str(src), str(artifact)])
        with mount(artifact.read_bytes()) as rom:
            self.assertEqual(bytes(rom.lookup(f"{src}/init.lua")), files["init.lua"])

    def test_uncompressed_build(self):
        root, src, _ = self.make_workspace()
        artifact = root / "out.rom"
        self.run_cli(["build", "--quiet", "--no-compress", "-x", f"{src}/", f"{src}/", str(artifact)])
        self.assertEqual(artifact.read_bytes()[:3], b"ASC")

    def test_single_file_from_stdin(self):
        proc = self.run_cli(["build", "--quiet", "-", "piped.txt"], stdin=b"from stdin")
        self.assertEqual(proc.stdout[:3], b"BIN")
        with mount(proc.stdout) as rom:
            self.assertEqual(bytes(rom.lookup("piped.txt")), b"from stdin")

    def test_literal_source_output(self):
        root, src, files = self.make_workspace()
        out_c = root / "rom_src.c"
        self.run_cli(["build", "--quiet", "-c", "rom", "-x", f"{src}/", f"{src}/", str(out_c)])
        text = out_c.read_text()
        self.assertIn("const size_t rom_len = ", text)
        parsed = parse_literal_source(text, "rom")
        with mount(parsed.artifact) as rom:
            self.assertEqual(bytes(rom.lookup("lib/util.lua")), files["lib/util.lua"])
        cat = self.run_cli(["cat", "--c-var", "rom", str(out_c), "init.lua"])
        self.assertEqual(cat.stdout, files["init.lua"])

    @unittest.skipUnless(_HAS_CRYPTO, "PyCryptodomex required")
    def test_encrypted_workflow(self):
        root, src, files = self.make_workspace()
        artifact = root / "enc.rom"
        self.run_cli(["build", "--quiet", "-e", "pw", "-x", f"{src}/", f"{src}/", str(artifact)])
        self.assertEqual(artifact.read_bytes()[:3], b"ENC")

        no_pw = self.run_cli(["list", str(artifact)], expect=2)
        self.assertIn(b"Provide --passphrase", no_pw.stderr)
        self.run_cli(["list", "-e", "wrong", str(artifact)], expect=3)
        cat = self.run_cli(["cat", "-e", "pw", str(artifact), "init.lua"])
        self.assertEqual(cat.stdout, files["init.lua"])

    @unittest.skipUnless(_HAS_CRYPTO, "PyCryptodomex required")
    def test_literal_source_with_embedded_passphrase(self):
        root, src, files = self.make_workspace()
        out_c = root / "rom_src.c"
        self.run_cli(
            ["build", "--quiet", "-c", "rom", "-s", "-p", "-e", "pw", "-x", f"{src}/", f"{src}/", str(out_c)]
        )
        text = out_c.read_text()
        self.assertIn('static const char rom_passphrase[] = "pw";', text)
        self.assertIn('static const char rom[] = "ENC"', text)
        cat = self.run_cli(["cat", "--c-var", "rom", str(out_c), "lib/util.lua"])
        self.assertEqual(cat.stdout, files["lib/util.lua"])

    def test_usage_errors(self):
        root, src, _ = self.make_workspace()
        out = str(root / "x.rom")
        self.run_cli(["build", "-s", str(src), out], expect=2)
        self.run_cli(["build", "-c", "rom", "-p", str(src), out], expect=2)
        self.run_cli(["build", "--hardened", str(src), out], expect=2)
        self.run_cli(["build", "--no-compress", "-e", "pw", str(src), out], expect=2)
        self.assertFalse(Path(out).exists())

    def test_invalid_artifact_reported(self):
        root, _, _ = self.make_workspace()
        bogus = root / "bogus.rom"
        bogus.write_bytes(b"NOPE-not-a-rom")
        proc = self.run_cli(["info", str(bogus)], expect=2)
        self.assertIn(b"Unknown artifact tag", proc.stderr)


if __name__ == "__main__":
    unittest.main()
