"""Footer codec.

Footer layout:
  [4B magic 0x62327401 (01 74 32 62)]
  [1B marker, 0xFE]
  [1B version]
  [1B encoding flag: 0 = Shift-JIS, anything else = UTF-8]
  [3B trailer]
  [0xFF padding to 16]
"""

from services.cfgbin_editor.byte_cursor import ByteCursor
from services.cfgbin_editor.errors import InvalidFooter, OutOfBounds
from services.cfgbin_editor.models import FOOTER_MAGIC, PAD_BYTE, SECTION_ALIGNMENT, Footer


def decode_footer(cursor: ByteCursor) -> Footer:
    start = cursor.tell()
    try:
        magic = cursor.read_u32()
        if magic != FOOTER_MAGIC:
            raise InvalidFooter(f"Bad footer magic 0x{magic:08X} at 0x{start:X}")
        return Footer(
            magic=magic,
            marker=cursor.read_u8(),
            version=cursor.read_u8(),
            encoding_flag=cursor.read_u8(),
            trailer=cursor.read(3),
        )
    except OutOfBounds as e:
        raise InvalidFooter(f"Truncated footer at 0x{start:X}") from e


def encode_footer(cursor: ByteCursor, footer: Footer):
    """Write the footer with the flag recorded at decode time, then pad."""
    cursor.write_u32(footer.magic)
    cursor.write_u8(footer.marker)
    cursor.write_u8(footer.version)
    cursor.write_u8(footer.encoding_flag)
    cursor.write(footer.trailer)
    cursor.align_to(SECTION_ALIGNMENT, PAD_BYTE)
