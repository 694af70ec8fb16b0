from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from typing import Union

try:  # pragma: no cover - availability depends on environment
    from Cryptodome.Cipher import AES, ChaCha20_Poly1305  # type: ignore
    _HAS_CRYPTODOME = True
except ImportError:  # pragma: no cover
    AES = None  # type: ignore
    ChaCha20_Poly1305 = None  # type: ignore
    _HAS_CRYPTODOME = False

try:  # pragma: no cover - availability depends on environment
    from argon2.low_level import Type as _ArgonType, hash_secret_raw as _argon_hash  # type: ignore
    _HAS_ARGON2 = True
except ImportError:  # pragma: no cover
    _ArgonType = None  # type: ignore
    _argon_hash = None  # type: ignore
    _HAS_ARGON2 = False

from .constants import (
    AES_BLOCK_SIZE,
    ARGON_MEMORY_COST_KIB,
    ARGON_PARALLELISM,
    ARGON_TIME_COST,
    ENX_HEADER,
    ENX_NONCE_SIZE,
    ENX_SALT_SIZE,
    ENX_TAG_SIZE,
    FILLER_SIZE,
    FIXED_IV,
    KEY_SIZE,
)
from .errors import InvalidArtifact, InvalidCiphertext, InvalidPadding, WrongPassphrase


Passphrase = Union[str, bytes]


def _passphrase_bytes(passphrase: Passphrase) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return bytes(passphrase)


def _require_cryptodome() -> None:
    if not _HAS_CRYPTODOME:
        raise RuntimeError("PyCryptodomex is required for encrypted ROM support")


# -------- ENC: SHA-256 key, AES-256-CBC, fixed IV --------

def derive_key(passphrase: Passphrase) -> bytes:
    """SHA-256 of the passphrase bytes. Recomputed on every call, never cached."""
    return hashlib.sha256(_passphrase_bytes(passphrase)).digest()


def pad_length(n: int) -> int:
    """Padding byte value for a buffer of ``n`` bytes: 1..16, never 0."""
    return AES_BLOCK_SIZE - (n % AES_BLOCK_SIZE)


def encrypt_cbc(plaintext: Union[bytes, bytearray, memoryview], passphrase: Passphrase) -> bytes:
    """Encrypt as the ENC payload.

    Layout before encryption: 16 filler bytes, the plaintext, then PKCS#7
    padding. Filler and padding share the same byte value.
    """
    _require_cryptodome()
    total = FILLER_SIZE + len(plaintext)
    pad = pad_length(total)
    buf = bytearray([pad]) * (total + pad)
    buf[FILLER_SIZE:total] = plaintext
    cipher = AES.new(derive_key(passphrase), AES.MODE_CBC, iv=FIXED_IV)
    return cipher.encrypt(bytes(buf))


def decrypt_cbc(ciphertext: Union[bytes, bytearray, memoryview], passphrase: Passphrase) -> bytes:
    """Reverse :func:`encrypt_cbc`: decrypt, strip the padding, drop the filler."""
    _require_cryptodome()
    n = len(ciphertext)
    if n < FILLER_SIZE:
        raise InvalidCiphertext(f"Encrypted payload too short ({n} bytes)")
    if n % AES_BLOCK_SIZE:
        raise InvalidCiphertext(f"Encrypted payload is not a multiple of {AES_BLOCK_SIZE} bytes ({n} bytes)")
    cipher = AES.new(derive_key(passphrase), AES.MODE_CBC, iv=FIXED_IV)
    plain = cipher.decrypt(bytes(ciphertext))
    pad = plain[-1]
    if pad == 0 or pad > AES_BLOCK_SIZE or pad > n:
        raise InvalidPadding(f"Bad padding value {pad}")
    if plain[n - pad :] != bytes([pad]) * pad:
        raise InvalidPadding("Padding bytes are inconsistent")
    body_end = n - pad
    if body_end < FILLER_SIZE:
        raise InvalidPadding("Padding overlaps the filler block")
    return plain[FILLER_SIZE:body_end]


# -------- ENX: Argon2id key, XChaCha20-Poly1305 --------

@dataclass
class EncryptionParams:
    salt: bytes
    time_cost: int
    memory_cost_kib: int
    parallelism: int

    def pack(self) -> bytes:
        return ENX_HEADER.pack(self.salt, self.time_cost, self.memory_cost_kib, self.parallelism)

    @classmethod
    def unpack(cls, header: bytes) -> "EncryptionParams":
        salt, time_cost, memory_cost_kib, parallelism = ENX_HEADER.unpack(header)
        return cls(salt=salt, time_cost=time_cost, memory_cost_kib=memory_cost_kib, parallelism=parallelism)


class EncryptionContext:
    """Hardened-mode key holder.

    The key is derived with Argon2id from the passphrase and a random salt; the
    payload is sealed with XChaCha20-Poly1305 under a random nonce, with the
    parameter header as associated data.
    """

    def __init__(self, key: bytes, params: EncryptionParams):
        self.key = key
        self.params = params

    @staticmethod
    def _derive(passphrase: Passphrase, params: EncryptionParams) -> bytes:
        if not (_HAS_CRYPTODOME and _argon_hash is not None and _ArgonType is not None):
            raise RuntimeError("argon2-cffi and PyCryptodomex are required for hardened encryption")
        return _argon_hash(
            _passphrase_bytes(passphrase),
            params.salt,
            time_cost=params.time_cost,
            memory_cost=params.memory_cost_kib,
            parallelism=params.parallelism,
            hash_len=KEY_SIZE,
            type=_ArgonType.ID,
        )

    @classmethod
    def create(cls, passphrase: Passphrase) -> "EncryptionContext":
        params = EncryptionParams(
            salt=os.urandom(ENX_SALT_SIZE),
            time_cost=ARGON_TIME_COST,
            memory_cost_kib=ARGON_MEMORY_COST_KIB,
            parallelism=ARGON_PARALLELISM,
        )
        return cls(cls._derive(passphrase, params), params)

    @classmethod
    def from_params(cls, passphrase: Passphrase, params: EncryptionParams) -> "EncryptionContext":
        if (
            params.time_cost != ARGON_TIME_COST
            or params.memory_cost_kib != ARGON_MEMORY_COST_KIB
            or params.parallelism != ARGON_PARALLELISM
        ):
            raise InvalidArtifact("Unsupported Argon2 parameters in artifact")
        return cls(cls._derive(passphrase, params), params)

    def seal(self, plaintext: Union[bytes, bytearray, memoryview]) -> bytes:
        header = self.params.pack()
        nonce = os.urandom(ENX_NONCE_SIZE)
        cipher = ChaCha20_Poly1305.new(key=self.key, nonce=nonce)
        cipher.update(header)
        ciphertext, tag = cipher.encrypt_and_digest(bytes(plaintext))
        return header + nonce + ciphertext + tag

    def open(self, payload: Union[bytes, bytearray, memoryview]) -> bytes:
        payload = bytes(payload)
        hdr_len = ENX_HEADER.size
        nonce = payload[hdr_len : hdr_len + ENX_NONCE_SIZE]
        tag = payload[-ENX_TAG_SIZE:]
        ciphertext = payload[hdr_len + ENX_NONCE_SIZE : -ENX_TAG_SIZE]
        cipher = ChaCha20_Poly1305.new(key=self.key, nonce=nonce)
        cipher.update(payload[:hdr_len])
        try:
            return cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError as e:
            raise WrongPassphrase("Authentication failed; wrong passphrase or corrupted payload") from e


def encrypt_hardened(plaintext: Union[bytes, bytearray, memoryview], passphrase: Passphrase) -> bytes:
    return EncryptionContext.create(passphrase).seal(plaintext)


def decrypt_hardened(payload: Union[bytes, bytearray, memoryview], passphrase: Passphrase) -> bytes:
    if len(payload) < ENX_HEADER.size + ENX_NONCE_SIZE + ENX_TAG_SIZE:
        raise InvalidCiphertext(f"Hardened payload too short ({len(payload)} bytes)")
    params = EncryptionParams.unpack(bytes(payload[: ENX_HEADER.size]))
    return EncryptionContext.from_params(passphrase, params).open(payload)


_HAS_CRYPTO = _HAS_CRYPTODOME
_HAS_HARDENED = bool(_HAS_ARGON2 and _HAS_CRYPTODOME)
