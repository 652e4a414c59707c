"""Address patcher ("nnk" mode): rewrite only the string table.

Strategy:
  1. Start from the source string table, every string at its old offset
  2. Keep the reference word of every String variable whose text was not
     edited; append edited text (reusing an existing slot with the same
     bytes)
  3. Copy the source bytes up to the string table, writing each edited
     reference's new offset at the address it was read from
  4. Append the table, padded to 16
  5. Copy the key table and footer verbatim (shifted if the table grew)
     and update the header's string table length and count

Entry bytes other than edited String references are never touched.
Strings that no reference uses any more stay in the table.
"""

from services.cfgbin_editor.byte_cursor import ByteCursor
from services.cfgbin_editor.container import Container
from services.cfgbin_editor.errors import CfgBinError
from services.cfgbin_editor.models import NULL_OFFSET, PAD_BYTE, SECTION_ALIGNMENT
from services.cfgbin_editor.string_table import StringTable, StringTableBuilder


def encode_nnk(container: Container) -> bytes:
    """Patch the container's source buffer with its current text.

    Raises:
        CfgBinError: The container was not decoded from a buffer, or its
            entry list no longer matches the source layout
    """
    source = container.source
    if source is None:
        raise CfgBinError("In-place patching needs a container decoded from a file")
    if len(container.entries) != container.header.entry_count:
        raise CfgBinError(
            f"Entry count changed ({container.header.entry_count} -> "
            f"{len(container.entries)}); use standard mode to rebuild"
        )

    encoding = container.encoding
    strings = container.strings or StringTable(b"", encoding)
    builder = StringTableBuilder.from_table(strings)

    references = []
    for entry in container.entries:
        for _, var in entry.string_variables():
            if var.address is None:
                raise CfgBinError(
                    f"String variable of {entry.display_name} has no source address; "
                    "use standard mode to rebuild"
                )
            if var.text is None:
                offset = NULL_OFFSET
            elif var.text_unchanged(encoding):
                continue
            else:
                offset = builder.add(var.encoded_text(encoding))
            if offset != var.offset:
                references.append((var.address, offset))

    string_table_offset = container.header.string_table_offset
    cursor = ByteCursor()
    cursor.write(source[:string_table_offset])
    for address, offset in references:
        cursor.patch_u32(address, offset & 0xFFFFFFFF)

    builder.write(cursor)
    cursor.align_to(SECTION_ALIGNMENT, PAD_BYTE)
    cursor.write(source[container.key_table_offset:])

    cursor.patch_u32(8, builder.length)
    cursor.patch_u32(12, builder.count)
    return cursor.getvalue()
