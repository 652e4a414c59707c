"""Sequential little-endian reader/writer over an in-memory buffer."""

import struct
from typing import Optional

from services.cfgbin_editor.errors import OutOfBounds


def round_up(value: int, alignment: int) -> int:
    """Round value up to the next multiple of alignment."""
    return (value + alignment - 1) // alignment * alignment


class ByteCursor:
    """Position-tracking cursor used by every cfg.bin section codec.

    A cursor built from existing bytes reads; a cursor built without data
    writes by appending. Writes at an earlier position overwrite in place
    (used to back-fill headers once section sizes are known).
    """

    def __init__(self, data: Optional[bytes] = None):
        self.writing = data is None
        self._buf = bytearray(data) if data is not None else bytearray()
        self.pos = 0

    def __len__(self) -> int:
        return len(self._buf)

    def tell(self) -> int:
        return self.pos

    def seek(self, pos: int):
        if pos < 0 or pos > len(self._buf):
            raise OutOfBounds(pos, 0, len(self._buf))
        self.pos = pos

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    # ── reading ──

    def _require(self, size: int):
        if self.pos + size > len(self._buf):
            raise OutOfBounds(self.pos, size, len(self._buf))

    def read(self, size: int) -> bytes:
        self._require(size)
        chunk = bytes(self._buf[self.pos : self.pos + size])
        self.pos += size
        return chunk

    def _unpack(self, fmt: str, size: int):
        self._require(size)
        value = struct.unpack_from(fmt, self._buf, self.pos)[0]
        self.pos += size
        return value

    def read_u8(self) -> int:
        return self._unpack("<B", 1)

    def read_u16(self) -> int:
        return self._unpack("<H", 2)

    def read_u32(self) -> int:
        return self._unpack("<I", 4)

    def read_i32(self) -> int:
        return self._unpack("<i", 4)

    def read_f32(self) -> float:
        return self._unpack("<f", 4)

    def read_cstring(self, end: Optional[int] = None) -> bytes:
        """Read bytes up to a null terminator and step past it.

        Args:
            end: Exclusive upper bound for the scan (defaults to buffer end).
                A string that runs into the bound without a terminator is
                returned as-is.
        """
        limit = len(self._buf) if end is None else min(end, len(self._buf))
        if self.pos > limit:
            raise OutOfBounds(self.pos, 1, limit)
        null_idx = self._buf.find(b"\x00", self.pos, limit)
        if null_idx < 0:
            raw = bytes(self._buf[self.pos : limit])
            self.pos = limit
            return raw
        raw = bytes(self._buf[self.pos : null_idx])
        self.pos = null_idx + 1
        return raw

    # ── writing ──

    def write(self, data: bytes):
        end = self.pos + len(data)
        if self.pos == len(self._buf):
            self._buf.extend(data)
        else:
            if end > len(self._buf):
                raise OutOfBounds(self.pos, len(data), len(self._buf))
            self._buf[self.pos : end] = data
        self.pos = end

    def write_u8(self, value: int):
        self.write(struct.pack("<B", value))

    def write_u16(self, value: int):
        self.write(struct.pack("<H", value))

    def write_u32(self, value: int):
        self.write(struct.pack("<I", value))

    def write_i32(self, value: int):
        self.write(struct.pack("<i", value))

    def write_f32(self, value: float):
        self.write(struct.pack("<f", value))

    def write_cstring(self, raw: bytes):
        self.write(raw + b"\x00")

    def patch_u32(self, offset: int, value: int):
        """Overwrite a u32 at an absolute offset without moving the cursor."""
        if offset + 4 > len(self._buf):
            raise OutOfBounds(offset, 4, len(self._buf))
        struct.pack_into("<I", self._buf, offset, value)

    # ── alignment ──

    def align_to(self, alignment: int, pad_byte: int = 0xFF):
        """Advance to the next multiple of alignment.

        Writing cursors fill the gap with pad_byte; reading cursors skip it.
        """
        target = round_up(self.pos, alignment)
        gap = target - self.pos
        if gap == 0:
            return
        if self.writing:
            self.write(bytes([pad_byte]) * gap)
        else:
            self._require(gap)
            self.pos = target
