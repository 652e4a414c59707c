"""Table-driven CRC32 used for cfg.bin entry and key names.

Reflected polynomial 0xEDB88320, register seeded with 0xFFFFFFFF and
complemented on output. This is the value the format stores in entry
headers and key-table records.
"""

POLYNOMIAL = 0xEDB88320
SEED = 0xFFFFFFFF


def _build_table():
    table = []
    for i in range(256):
        entry = i
        for _ in range(8):
            if entry & 1:
                entry = (entry >> 1) ^ POLYNOMIAL
            else:
                entry >>= 1
        table.append(entry)
    return table


_TABLE = _build_table()


def crc32(data: bytes) -> int:
    """Compute the CRC32 of a byte string."""
    value = SEED
    for b in data:
        value = (value >> 8) ^ _TABLE[(b ^ value) & 0xFF]
    return value ^ 0xFFFFFFFF


def name_crc32(name: str, encoding: str = "utf-8") -> int:
    """Hash an entry name as it is stored in the key table."""
    return crc32(name.encode(encoding, errors="surrogateescape"))
