"""Verification tests for the cfg.bin codec.

Sample files are synthesized by cfgbin_samples.build_cfgbin, a separate
struct-based writer, and checked against the decoder and both encoders.
"""

import os
import struct
import sys
import zlib

import pytest

# Add src to path so we can import the modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from services.cfgbin_editor.address_patcher import encode_nnk
from services.cfgbin_editor.byte_cursor import ByteCursor, round_up
from services.cfgbin_editor.container import Container
from services.cfgbin_editor.crc32 import crc32, name_crc32
from services.cfgbin_editor.entry_codec import pack_types, unpack_types
from services.cfgbin_editor.errors import (
    CfgBinError,
    InvalidFooter,
    MalformedHeader,
    OutOfBounds,
    UnmatchedField,
)
from services.cfgbin_editor.models import (
    Footer,
    ResolvedName,
    TextEncoding,
    UnresolvedName,
    Variable,
    VariableType,
    annotate_depth,
)
from services.cfgbin_editor.text_fields import apply_edits, extract_nnk, extract_standard

from cfgbin_samples import SAMPLE_RECORDS, build_cfgbin, sample_cfgbin


# Layout of sample_cfgbin(): five entries end at 0x80, the string table is
# 31 bytes (padded to 0xA0), the key table is 0x70 bytes, footer at 0x110.
_STRING_REF_ADDRESSES = [0x28, 0x2C, 0x3C, 0x40, 0x54, 0x7C]
_TEXT_ADDRESSES = [0x28, 0x2C, 0x3C, 0x54, 0x7C]


def _section_offsets(data: bytes):
    """(string_table_offset, key_table_offset, footer_offset) of an encoded file."""
    string_table_offset, string_table_length = struct.unpack_from("<II", data, 4)
    key_offset = round_up(string_table_offset + string_table_length, 16)
    key_length = struct.unpack_from("<I", data, key_offset)[0]
    return string_table_offset, key_offset, key_offset + key_length


# ---------------------------------------------------------------------------
# CRC32 / byte cursor
# ---------------------------------------------------------------------------


def test_crc32_vectors():
    assert crc32(b"") == 0
    assert crc32(b"123456789") == 0xCBF43926
    for name in (b"TEXT_INFO", b"TEXT_INFO_BEGIN", b"PTREE", "テキスト".encode("cp932")):
        assert crc32(name) == zlib.crc32(name)
    assert name_crc32("TEXT_INFO") == zlib.crc32(b"TEXT_INFO")
    print("  PASS: test_crc32_vectors")


def test_byte_cursor_reads_little_endian():
    cursor = ByteCursor(bytes.fromhex("0102 03040506 ffffffff 0000c03f") + b"ab\x00c")
    assert cursor.read_u16() == 0x0201
    assert cursor.read_u32() == 0x06050403
    assert cursor.read_i32() == -1
    assert cursor.read_f32() == 1.5
    assert cursor.read_cstring() == b"ab"
    assert cursor.tell() == 17
    # Unterminated string stops at the end of the buffer
    assert cursor.read_cstring() == b"c"
    with pytest.raises(OutOfBounds):
        cursor.read_u8()


def test_byte_cursor_alignment():
    writer = ByteCursor()
    writer.write_u8(0x12)
    writer.align_to(4)
    writer.write_u32(7)
    writer.align_to(16)
    assert writer.getvalue() == b"\x12\xff\xff\xff\x07\x00\x00\x00" + b"\xff" * 8
    # Already aligned: nothing written
    writer.align_to(16)
    assert len(writer) == 16

    reader = ByteCursor(writer.getvalue())
    reader.read_u8()
    reader.align_to(4)
    assert reader.read_u32() == 7

    short = ByteCursor(b"\x00\x00")
    short.read_u8()
    with pytest.raises(OutOfBounds):
        short.align_to(4)


def test_byte_cursor_patch():
    writer = ByteCursor()
    writer.write(b"\x00" * 8)
    writer.patch_u32(4, 0x11223344)
    assert writer.getvalue() == b"\x00" * 4 + b"\x44\x33\x22\x11"
    with pytest.raises(OutOfBounds):
        writer.patch_u32(6, 1)


# ---------------------------------------------------------------------------
# Type descriptor
# ---------------------------------------------------------------------------


def test_type_descriptor_padding():
    """Descriptor plus padding always ends the entry header on 4 bytes."""
    s, i, f = VariableType.STRING, VariableType.INT, VariableType.FLOAT
    assert pack_types([]) == b"\xff\xff\xff"
    assert pack_types([i]) == b"\x01\xff\xff"
    assert pack_types([i, s, s, f]) == b"\x81\xff\xff"
    assert pack_types([i, i, i, i, s]) == b"\x55\x00\xff"
    assert pack_types([i] * 12) == b"\x55\x55\x55"
    assert pack_types([i] * 13) == b"\x55\x55\x55\x01" + b"\xff" * 3
    assert unpack_types(b"\x31", 3) == [i, s, VariableType.UNKNOWN]


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def test_decode_sample():
    container = Container.decode(sample_cfgbin())

    header = container.header
    assert header.entry_count == 6
    assert header.string_table_offset == 0x80
    assert header.string_table_length == 31
    assert header.string_table_count == 4
    assert container.encoding == TextEncoding.UTF8
    assert container.unresolved == []

    names = [e.name_text for e in container.entries]
    assert names == [name for name, _ in SAMPLE_RECORDS]
    assert [e.offset for e in container.entries] == [0x10, 0x1C, 0x30, 0x48, 0x5C, 0x64]

    second = container.entries[2]
    assert [v.var_type for v in second.variables] == [
        VariableType.INT,
        VariableType.STRING,
        VariableType.STRING,
        VariableType.FLOAT,
    ]
    assert second.variables[0].value == 101
    assert second.variables[1].text == "A"
    assert second.variables[1].offset == 6
    assert second.variables[2].text is None
    assert second.variables[2].offset == -1
    assert second.variables[3].value == 1.5

    unknown = container.entries[3].variables[2]
    assert unknown.var_type == VariableType.UNKNOWN
    assert unknown.word == 0xDEADBEEF

    end = container.entries[4]
    assert end.is_end_marker
    assert end.type_descriptor == b"\xff\xff\xff"

    assert second.variables[1].raw == b"A"
    assert container.strings.raw_at(8) == b"Line one\nLine two"
    assert container.strings.raw_at(27) == b"ail"
    print("  PASS: test_decode_sample")


def test_scope_annotation():
    container = Container.decode(sample_cfgbin())
    assert [e.scope for e in container.entries] == ["begin", None, None, None, "end", None]
    depths = [depth for depth, _ in annotate_depth(container.entries)]
    assert depths == [0, 1, 1, 1, 0, 0]


def test_decode_unresolved_name():
    data = sample_cfgbin(omit_keys=("TEXT_CONFIG",))
    container = Container.decode(data)

    last = container.entries[-1]
    assert isinstance(last.name, UnresolvedName)
    assert last.name_text is None
    assert last.display_name == f"0x{zlib.crc32(b'TEXT_CONFIG'):08X}"
    assert container.unresolved == [last.crc32]
    # Still round-trips and is not added to the key table
    assert container.encode_standard() == data


def test_extra_names_resolve_without_joining_key_table():
    data = sample_cfgbin(omit_keys=("TEXT_CONFIG",))
    container = Container.decode(data, extra_names=["SOMETHING_ELSE", "TEXT_CONFIG"])

    assert container.entries[-1].name == ResolvedName("TEXT_CONFIG")
    assert container.unresolved == []
    assert container.encode_standard() == data


def test_decode_errors():
    data = sample_cfgbin()

    with pytest.raises(MalformedHeader):
        Container.decode(data[:12])

    bad_footer = bytearray(data)
    bad_footer[0x110] = 0x00
    with pytest.raises(InvalidFooter):
        Container.decode(bytes(bad_footer))

    truncated = data[:0x118]
    with pytest.raises(InvalidFooter):
        Container.decode(truncated)

    bad_offset = bytearray(data)
    struct.pack_into("<I", bad_offset, 4, 0x10000)
    with pytest.raises(MalformedHeader):
        Container.decode(bytes(bad_offset))

    bad_ref = bytearray(data)
    struct.pack_into("<i", bad_ref, 0x28, 0x1000)
    with pytest.raises(OutOfBounds):
        Container.decode(bytes(bad_ref))

    too_many = bytearray(data)
    struct.pack_into("<I", too_many, 0, 7)
    with pytest.raises(MalformedHeader):
        Container.decode(bytes(too_many))


# ---------------------------------------------------------------------------
# Standard rebuild
# ---------------------------------------------------------------------------


def test_standard_round_trip():
    data = sample_cfgbin()
    assert Container.decode(data).encode_standard() == data
    print("  PASS: test_standard_round_trip")


def test_standard_round_trip_shift_jis():
    records = [
        ("TEXT_BEGIN", []),
        ("TEXT", [("i", 1), ("s", "こんにちは"), ("s", "ｶﾀｶﾅ")]),
        ("TEXT", [("i", 2), ("s", "こんにちは")]),
        ("TEXT_END", []),
    ]
    data = build_cfgbin(records, encoding_flag=0)
    container = Container.decode(data)

    assert container.encoding == TextEncoding.SHIFT_JIS
    assert container.footer.encoding_flag == 0
    assert container.entries[1].variables[1].text == "こんにちは"
    assert container.encode_standard() == data


def test_standard_round_trip_keeps_encoding_flag_and_orphan_keys():
    data = sample_cfgbin(encoding_flag=5, extra_keys=("UNUSED_KEY", "ANOTHER"))
    container = Container.decode(data)

    assert container.encoding == TextEncoding.UTF8
    assert container.key_table.resolve(zlib.crc32(b"UNUSED_KEY")) == "UNUSED_KEY"
    assert container.encode_standard() == data


def test_standard_dedups_equal_strings():
    """Two references to separate "A" slots end up sharing one offset."""
    records = [("TEXT", [("s", "A")]), ("TEXT", [("s", "A")])]
    data = build_cfgbin(records, dedup=False)
    container = Container.decode(data)
    assert [e.variables[0].offset for e in container.entries] == [0, 2]
    assert container.header.string_table_count == 2

    rebuilt = Container.decode(container.encode_standard())
    assert [e.variables[0].offset for e in rebuilt.entries] == [0, 0]
    assert rebuilt.header.string_table_count == 1
    assert rebuilt.header.string_table_length == 2


def test_standard_encode_with_edits():
    container = Container.decode(sample_cfgbin())
    changed = apply_edits(container, {0: "A", 4: "Hello"})
    assert changed == 2

    rebuilt = Container.decode(container.encode_standard())
    fields = extract_standard(rebuilt)
    assert [f.value for f in fields] == ["A", "A", "A", "Line one\nLine two", "Hello"]

    # Equal post-edit text shares one offset
    offsets = {}
    for entry in rebuilt.entries:
        for _, var in entry.string_variables():
            if var.text is not None:
                offsets.setdefault(var.text, set()).add(var.offset)
    assert all(len(found) == 1 for found in offsets.values())
    assert offsets["A"] == {0}
    assert rebuilt.header.string_table_count == 3
    assert rebuilt.entries[2].variables[2].text is None


def test_empty_string_is_kept_distinct_from_null():
    container = Container.decode(sample_cfgbin())
    apply_edits(container, {1: ""})

    rebuilt = Container.decode(container.encode_standard())
    var = rebuilt.entries[1].variables[2]
    assert var.text == ""
    assert var.offset != -1


def test_standard_sections_are_aligned():
    container = Container.decode(sample_cfgbin())
    apply_edits(container, {0: "A much longer greeting than before", 3: "x"})
    data = container.encode_standard()

    string_table_offset, key_offset, footer_offset = _section_offsets(data)
    assert string_table_offset % 16 == 0
    assert key_offset % 16 == 0
    assert footer_offset % 16 == 0
    assert len(data) % 16 == 0
    assert data[footer_offset : footer_offset + 4] == b"\x01\x74\x32\x62"


def test_build_container_in_memory():
    """A container assembled through create_entry encodes like a real file."""
    container = Container(footer=Footer(encoding_flag=1))
    container.create_entry("TEXT_INFO_BEGIN", [Variable.of_int(3)])
    container.create_entry(
        "TEXT_INFO", [Variable.of_int(100), Variable.of_string("Hello"), Variable.of_string("A")]
    )
    container.create_entry(
        "TEXT_INFO",
        [
            Variable.of_int(101),
            Variable.of_string("A"),
            Variable.of_string(None),
            Variable.of_float(1.5),
        ],
    )
    container.create_entry(
        "TEXT_INFO",
        [Variable.of_int(102), Variable.of_string("Line one\nLine two"), Variable.of_unknown(0xDEADBEEF)],
    )
    container.create_end_entry("TEXT_INFO_END")
    container.create_entry(
        "TEXT_CONFIG",
        [Variable.of_int(1), Variable.of_int(2), Variable.of_int(3), Variable.of_int(4), Variable.of_string("tail")],
    )

    assert container.encode_standard() == sample_cfgbin()


def test_descriptor_bits_preserved():
    """Unused 2-bit slots in the last descriptor byte survive a rebuild."""
    data = bytearray(sample_cfgbin())
    # Entry 1 has 3 params; set the unused 4th slot of its descriptor byte
    assert data[0x1C + 5] == 0x01
    data[0x1C + 5] = 0x01 | (0x3 << 6)
    data = bytes(data)
    container = Container.decode(data)
    assert len(container.entries[1].variables) == 3
    assert container.encode_standard() == data


# ---------------------------------------------------------------------------
# Text field index
# ---------------------------------------------------------------------------


def test_extract_standard():
    fields = extract_standard(Container.decode(sample_cfgbin()))
    assert [f.sequence_index for f in fields] == [0, 1, 2, 3, 4]
    assert [f.value for f in fields] == ["Hello", "A", "A", "Line one\nLine two", "tail"]
    assert [f.entry_name for f in fields] == ["TEXT_INFO"] * 4 + ["TEXT_CONFIG"]
    assert [f.variable_index for f in fields] == [1, 2, 1, 1, 4]


def test_extract_nnk_addresses():
    fields = extract_nnk(Container.decode(sample_cfgbin()))
    assert [f.absolute_address for f in fields] == _TEXT_ADDRESSES
    assert fields[0].value == "Hello"


def test_unmatched_edit_leaves_container_untouched():
    container = Container.decode(sample_cfgbin())
    with pytest.raises(UnmatchedField):
        apply_edits(container, {0: "changed", 99: "nope"})
    assert extract_standard(container)[0].value == "Hello"

    with pytest.raises(UnmatchedField):
        apply_edits(container, {0x30: "nope"}, mode="nnk")
    # The null reference at 0x40 is not an addressable text field
    with pytest.raises(UnmatchedField):
        apply_edits(container, {0x40: "nope"}, mode="nnk")


# ---------------------------------------------------------------------------
# Address patcher (nnk)
# ---------------------------------------------------------------------------


def test_nnk_round_trip_without_edits():
    data = sample_cfgbin()
    assert encode_nnk(Container.decode(data)) == data


def test_nnk_patches_string_table_only():
    data = sample_cfgbin()
    container = Container.decode(data)
    apply_edits(container, {0x28: "Hello there"}, mode="nnk")
    patched = encode_nnk(container)

    # Header: entry count and string table offset unchanged, length/count updated
    assert struct.unpack_from("<IIII", patched, 0) == (6, 0x80, 43, 5)

    # Only the edited reference changes; it points past the original pool
    for pos in range(0x10, 0x80):
        if pos not in range(0x28, 0x2C):
            assert patched[pos] == data[pos], f"entry byte 0x{pos:X} changed"
    assert struct.unpack_from("<i", patched, 0x28)[0] == 31
    assert patched[0x80 : 0x80 + 31] == data[0x80 : 0x80 + 31]
    assert patched[0x80 + 31 : 0x80 + 43] == b"Hello there\x00"

    # Key table and footer copied verbatim, shifted by the larger table
    assert patched[0xB0:] == data[0xA0:]

    string_table_offset, key_offset, footer_offset = _section_offsets(patched)
    assert (string_table_offset, key_offset, footer_offset) == (0x80, 0xB0, 0x120)

    rebuilt = Container.decode(patched)
    assert [f.value for f in extract_standard(rebuilt)] == [
        "Hello there",
        "A",
        "A",
        "Line one\nLine two",
        "tail",
    ]
    assert [f.absolute_address for f in extract_nnk(rebuilt)] == _TEXT_ADDRESSES


def test_nnk_unedited_entries_keep_their_bytes():
    data = sample_cfgbin()
    container = Container.decode(data)
    apply_edits(container, {0x28: "Hello there", 0x54: "Short"}, mode="nnk")
    patched = encode_nnk(container)

    bounds = [e.offset for e in container.entries] + [container.header.string_table_offset]
    edited = {1, 3}
    for index in range(len(container.entries)):
        start, end = bounds[index], bounds[index + 1]
        if index not in edited:
            assert patched[start:end] == data[start:end], f"entry {index} changed"

    # Entry 2 shares "A" with entry 1 and still points at the original slot
    assert struct.unpack_from("<i", patched, 0x3C)[0] == 6
    rebuilt = Container.decode(patched)
    assert [f.value for f in extract_nnk(rebuilt)] == ["Hello there", "A", "A", "Short", "tail"]


def test_nnk_reuses_existing_slots():
    data = sample_cfgbin()
    container = Container.decode(data)
    apply_edits(container, {0x54: "x", 0x7C: "A"}, mode="nnk")
    patched = encode_nnk(container)

    rebuilt = Container.decode(patched)
    # Only "x" is new; "A" reuses its slot and old strings stay in place
    assert rebuilt.header.string_table_count == 5
    assert rebuilt.header.string_table_length == 31 + len(b"x\x00")
    assert patched[0x80 : 0x80 + 31] == data[0x80 : 0x80 + 31]
    assert [f.value for f in extract_nnk(rebuilt)] == ["Hello", "A", "A", "x", "A"]
    assert rebuilt.entries[5].variables[4].offset == rebuilt.entries[1].variables[2].offset


def test_nnk_null_edit_writes_null_reference():
    container = Container.decode(sample_cfgbin())
    container.entries[1].variables[1].text = None
    patched = encode_nnk(container)

    assert struct.unpack_from("<i", patched, 0x28)[0] == -1
    rebuilt = Container.decode(patched)
    assert rebuilt.entries[1].variables[1].text is None
    assert rebuilt.header.string_table_length == 31


# ---------------------------------------------------------------------------
# Shift-JIS byte preservation
# ---------------------------------------------------------------------------

# cp932 decodes several byte sequences to the same character
_SJIS_RECORDS = [
    ("TEXT", [("s", b"\x87\x90")]),  # NEC row 13 form of U+2252
    ("TEXT", [("s", b"\x81\xe0")]),  # JIS form of U+2252
    ("TEXT", [("s", b"\xee\xe0")]),  # NEC-selected IBM form of U+9AD9
]


def test_shift_jis_duplicate_code_points_round_trip():
    data = build_cfgbin(_SJIS_RECORDS, encoding_flag=0)
    container = Container.decode(data)

    texts = [e.variables[0].text for e in container.entries]
    assert texts == ["≒", "≒", "髙"]
    assert container.encode_standard() == data
    assert encode_nnk(container) == data
    # Equal text from different bytes keeps separate slots
    assert container.header.string_table_count == 3


def test_shift_jis_edit_keeps_other_strings_bytes():
    data = build_cfgbin(_SJIS_RECORDS, encoding_flag=0)
    new_text = "新しい"

    container = Container.decode(data)
    apply_edits(container, {1: new_text})
    rebuilt = Container.decode(container.encode_standard())
    assert [e.variables[0].raw for e in rebuilt.entries] == [
        b"\x87\x90",
        new_text.encode("cp932"),
        b"\xee\xe0",
    ]

    container = Container.decode(data)
    address = extract_nnk(container)[1].absolute_address
    apply_edits(container, {address: new_text}, mode="nnk")
    patched = encode_nnk(container)
    assert patched[0x10:address] == data[0x10:address]
    rebuilt = Container.decode(patched)
    assert [e.variables[0].raw for e in rebuilt.entries] == [
        b"\x87\x90",
        new_text.encode("cp932"),
        b"\xee\xe0",
    ]


def test_nnk_requires_decoded_layout():
    container = Container()
    container.create_entry("TEXT", [Variable.of_string("A")])
    with pytest.raises(CfgBinError):
        encode_nnk(container)

    decoded = Container.decode(sample_cfgbin())
    decoded.create_entry("TEXT_INFO", [Variable.of_string("new")])
    with pytest.raises(CfgBinError):
        encode_nnk(decoded)


if __name__ == "__main__":
    tests = [
        test_crc32_vectors,
        test_byte_cursor_reads_little_endian,
        test_byte_cursor_alignment,
        test_byte_cursor_patch,
        test_type_descriptor_padding,
        test_decode_sample,
        test_scope_annotation,
        test_decode_unresolved_name,
        test_extra_names_resolve_without_joining_key_table,
        test_decode_errors,
        test_standard_round_trip,
        test_standard_round_trip_shift_jis,
        test_standard_round_trip_keeps_encoding_flag_and_orphan_keys,
        test_standard_dedups_equal_strings,
        test_standard_encode_with_edits,
        test_empty_string_is_kept_distinct_from_null,
        test_standard_sections_are_aligned,
        test_build_container_in_memory,
        test_descriptor_bits_preserved,
        test_extract_standard,
        test_extract_nnk_addresses,
        test_unmatched_edit_leaves_container_untouched,
        test_nnk_round_trip_without_edits,
        test_nnk_patches_string_table_only,
        test_nnk_unedited_entries_keep_their_bytes,
        test_nnk_reuses_existing_slots,
        test_nnk_null_edit_writes_null_reference,
        test_nnk_requires_decoded_layout,
        test_shift_jis_duplicate_code_points_round_trip,
        test_shift_jis_edit_keeps_other_strings_bytes,
    ]

    print(f"Running {len(tests)} cfg.bin codec tests...\n")
    passed = 0
    failed = 0
    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            failed += 1
            print(f"  FAIL: {test.__name__}: {e}")

    print(f"\n{'='*50}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed:
        sys.exit(1)
