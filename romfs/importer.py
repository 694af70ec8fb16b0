"""Import Python modules straight out of a mounted ROM.

``import pkg.mod`` resolves to ``pkg/mod/__init__.py`` or ``pkg/mod.py`` inside
the ROM (optionally below a root directory). Modules that are not in the ROM
are left to the rest of ``sys.meta_path``.
"""

from __future__ import annotations

import importlib.abc
import importlib.util
import sys
from typing import Optional

from .mount import MountedRom


class RomImporter(importlib.abc.MetaPathFinder, importlib.abc.Loader):
    def __init__(self, handle: MountedRom, root: Optional[str] = None):
        self.handle = handle
        self.root = root.strip("/") if root else ""

    def __repr__(self) -> str:
        return f"<RomImporter {self.handle!r} root={self.root!r}>"

    def _candidates(self, fullname: str):
        base = fullname.replace(".", "/")
        if self.root:
            base = f"{self.root}/{base}"
        yield f"{base}/__init__.py", True
        yield f"{base}.py", False

    def find_spec(self, fullname, path=None, target=None):
        if self.handle.released:
            return None
        for rom_path, is_pkg in self._candidates(fullname):
            if self.handle.lookup(rom_path) is None:
                continue
            spec = importlib.util.spec_from_loader(
                fullname, self, origin=f"rom:{rom_path}", is_package=is_pkg
            )
            spec.loader_state = rom_path
            return spec
        return None

    def create_module(self, spec):
        return None

    def exec_module(self, module):
        spec = module.__spec__
        source = self.handle.lookup(spec.loader_state)
        if source is None:
            raise ImportError(f"{spec.loader_state} vanished from ROM", name=spec.name)
        code = compile(bytes(source), spec.origin, "exec")
        exec(code, module.__dict__)


def install(handle: MountedRom, root: Optional[str] = None) -> RomImporter:
    importer = RomImporter(handle, root)
    sys.meta_path.append(importer)
    return importer


def uninstall(importer: RomImporter) -> None:
    if importer in sys.meta_path:
        sys.meta_path.remove(importer)
