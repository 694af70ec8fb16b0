from __future__ import annotations

from typing import Optional, Union


class RomfsError(Exception):
    """Base class for romfs-specific errors."""


# Build-time input validation
class InvalidInput(RomfsError):
    def __init__(self, message: str, path: Optional[Union[str, bytes]] = None):
        if path is not None:
            shown = path.decode("utf-8", "backslashreplace") if isinstance(path, bytes) else path
            message = f"{message}: {shown}"
        super().__init__(message)
        self.path = path


class ContentTooLarge(InvalidInput):
    pass


class InvalidPath(InvalidInput):
    pass


class PathTooLong(InvalidPath):
    pass


class EmptyArchive(InvalidInput):
    pass


class CompressionFailed(RomfsError):
    pass


# Artifact / stream structure
class InvalidArtifact(RomfsError):
    pass


class UnknownTag(InvalidArtifact):
    pass


class Truncated(InvalidArtifact):
    pass


class CorruptStream(InvalidArtifact):
    pass


# Encryption
class EncryptionError(InvalidArtifact):
    pass


class InvalidCiphertext(EncryptionError):
    pass


class InvalidPadding(EncryptionError):
    pass


class WrongPassphrase(EncryptionError):
    pass


class PassphraseRequired(RomfsError):
    pass


# Handle misuse
class InvalidHandle(RomfsError):
    pass
