import struct


# Artifact tags (3 ASCII bytes in front of every artifact payload)
TAG_ASC = b"ASC"   # raw record stream, no transform
TAG_BIN = b"BIN"   # deflate-compressed record stream
TAG_ENC = b"ENC"   # compressed, then AES-256-CBC with the fixed IV
TAG_ENX = b"ENX"   # compressed, then Argon2id + XChaCha20-Poly1305 (hardened mode)

TAG_SIZE = 3
KNOWN_TAGS = (TAG_ASC, TAG_BIN, TAG_ENC, TAG_ENX)
ENCRYPTED_TAGS = (TAG_ENC, TAG_ENX)


# Record framing: u32 big-endian content length (incl. trailing NUL), u8 path length
RECORD_HEADER = struct.Struct(">IB")
RECORD_HEADER_SIZE = RECORD_HEADER.size  # 5
TERMINATOR_RECORD = b"\x00" * RECORD_HEADER_SIZE
CONTENT_TERMINATOR = b"\x00"

MAX_PATH_LEN = 0xFF
MAX_RECORD_LEN = 0xFFFFFFFF
MAX_CONTENT_LEN = MAX_RECORD_LEN - 1


# Compression
INFLATE_CHUNK_SIZE = 1024 * 1024  # 1 MiB
DEFAULT_COMPRESS_LEVEL = -1  # zlib Z_DEFAULT_COMPRESSION


# ENC mode: AES-256-CBC keyed by SHA-256(passphrase).
# The IV is a fixed constant shared by every artifact; identical plaintext prefixes
# encrypted under the same passphrase produce identical ciphertext prefixes.
# It is kept for compatibility with existing ENC artifacts. Use ENX for new ones.
AES_BLOCK_SIZE = 16
FILLER_SIZE = 16
FIXED_IV = bytes(range(16))  # 00 01 02 ... 0f
KEY_SIZE = 32


# ENX mode (hardened)
ENX_SALT_SIZE = 16
ENX_NONCE_SIZE = 24
ENX_TAG_SIZE = 16
ENX_HEADER = struct.Struct("<16sIII")  # salt, time_cost, memory_cost_kib, parallelism
ARGON_TIME_COST = 3
ARGON_MEMORY_COST_KIB = 64 * 1024  # 64 MiB
ARGON_PARALLELISM = 4


# Mounted handle signature
ROM_SIGNATURE = b"ROM"


# Literal-source rendering
DEFAULT_LINE_WIDTH = 79
LITERAL_HEADER = "/* Auto-generated ROM file, created by romfs. */\n\n#include <stddef.h>\n"
