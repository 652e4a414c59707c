"""Text field index: one explicit pass over the entries per extraction.

Standard mode numbers fields 0..N-1 in entry order. NNK mode keys them by
the absolute file address of their 4-byte String reference.
"""

from typing import Dict, List, Mapping

from constants import MODE_NNK, MODE_STANDARD
from services.cfgbin_editor.container import Container
from services.cfgbin_editor.errors import UnmatchedField
from services.cfgbin_editor.models import TextField


def _walk(container: Container, require_address: bool) -> List[TextField]:
    fields = []
    for entry_index, entry in enumerate(container.entries):
        for variable_index, var in entry.string_variables():
            if var.text is None:
                continue
            if require_address and var.address is None:
                continue
            fields.append(
                TextField(
                    sequence_index=len(fields),
                    absolute_address=var.address if var.address is not None else -1,
                    entry_name=entry.name_text,
                    variable_index=variable_index,
                    value=var.text,
                    entry_index=entry_index,
                )
            )
    return fields


def extract_standard(container: Container) -> List[TextField]:
    """Every non-null String variable, in entry order."""
    return _walk(container, require_address=False)


def extract_nnk(container: Container) -> List[TextField]:
    """Every non-null String variable that has a source address, by address."""
    return sorted(_walk(container, require_address=True), key=lambda f: f.absolute_address)


def extract(container: Container, mode: str) -> List[TextField]:
    if mode == MODE_NNK:
        return extract_nnk(container)
    return extract_standard(container)


def field_key(text_field: TextField, mode: str) -> int:
    """The key edits use to address a field in the given mode."""
    if mode == MODE_NNK:
        return text_field.absolute_address
    return text_field.sequence_index


def apply_edits(container: Container, edits: Mapping[int, str], mode: str = MODE_STANDARD) -> int:
    """Write edited text into the container.

    Args:
        container: Container to modify
        edits: Sequence index (standard) or absolute address (nnk) -> new text
        mode: "standard" or "nnk"

    Returns:
        Number of fields whose text changed

    Raises:
        UnmatchedField: An edit key is not in the current extraction. Nothing
            is modified in that case.
    """
    index: Dict[int, TextField] = {field_key(f, mode): f for f in extract(container, mode)}

    unknown = [key for key in edits if key not in index]
    if unknown:
        label = "address" if mode == MODE_NNK else "index"
        shown = ", ".join(
            f"0x{key:08X}" if mode == MODE_NNK else str(key) for key in sorted(unknown)[:5]
        )
        raise UnmatchedField(f"{len(unknown)} edit(s) reference unknown {label}: {shown}")

    changed = 0
    for key, value in edits.items():
        text_field = index[key]
        var = container.entries[text_field.entry_index].variables[text_field.variable_index]
        if var.text != value:
            var.text = value
            changed += 1
    return changed
