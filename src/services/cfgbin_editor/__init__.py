"""cfg.bin Text Editor service.

Decodes Level-5 style cfg.bin containers, exposes their embedded strings as
text fields, and re-encodes edited text either by full rebuild (standard)
or by patching the string table in place (nnk).
"""

from .models import (  # noqa: F401
    Entry,
    Footer,
    Header,
    ResolvedName,
    TextEncoding,
    TextField,
    UnresolvedName,
    Variable,
    VariableType,
    annotate_depth,
)
from .errors import (  # noqa: F401
    CfgBinError,
    InvalidFooter,
    KeyCountMismatch,
    LineCountMismatch,
    MalformedHeader,
    OutOfBounds,
    UnmatchedField,
)
from .crc32 import crc32, name_crc32  # noqa: F401
from .container import Container  # noqa: F401
from .address_patcher import encode_nnk  # noqa: F401
from .text_fields import apply_edits, extract_nnk, extract_standard  # noqa: F401
from .editor import CfgBinEditor, EditResult  # noqa: F401
