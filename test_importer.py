from __future__ import annotations

import importlib
import sys
import unittest

from romfs import RomImporter, build, install, mount, uninstall


MODULES = [
    ("romfs_demo_pkg/__init__.py", b"VALUE = 21\n"),
    ("romfs_demo_pkg/mod.py", b"from . import VALUE\nDOUBLE = VALUE * 2\n"),
    ("romfs_demo_top.py", b"NAME = 'top'\n"),
    ("scripts/romfs_demo_rooted.py", b"ROOTED = True\n"),
]


class RomImporterTests(unittest.TestCase):
    def setUp(self):
        self.rom = mount(build(MODULES))
        self.addCleanup(self._cleanup)
        self.importers = []

    def _cleanup(self):
        for imp in self.importers:
            uninstall(imp)
        for name in list(sys.modules):
            if name.startswith("romfs_demo_"):
                del sys.modules[name]
        if not self.rom.released:
            self.rom.release()

    def test_imports_modules_and_packages(self):
        self.importers.append(install(self.rom))
        top = importlib.import_module("romfs_demo_top")
        self.assertEqual(top.NAME, "top")
        mod = importlib.import_module("romfs_demo_pkg.mod")
        self.assertEqual(mod.DOUBLE, 42)
        pkg = sys.modules["romfs_demo_pkg"]
        self.assertEqual(pkg.__spec__.origin, "rom:romfs_demo_pkg/__init__.py")

    def test_missing_module_falls_through(self):
        self.importers.append(install(self.rom))
        with self.assertRaises(ModuleNotFoundError):
            importlib.import_module("romfs_demo_missing")

    def test_root_directory(self):
        self.importers.append(install(self.rom, root="scripts/"))
        rooted = importlib.import_module("romfs_demo_rooted")
        self.assertTrue(rooted.ROOTED)

    def test_released_rom_finds_nothing(self):
        importer = RomImporter(self.rom)
        self.rom.release()
        self.assertIsNone(importer.find_spec("romfs_demo_top"))

    def test_uninstall_removes_finder(self):
        importer = install(self.rom)
        self.assertIn(importer, sys.meta_path)
        uninstall(importer)
        self.assertNotIn(importer, sys.meta_path)


if __name__ == "__main__":
    unittest.main()
