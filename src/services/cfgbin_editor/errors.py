"""Exceptions raised by the cfg.bin codec and text exchange layer."""


class CfgBinError(Exception):
    """Base class for every fatal cfg.bin condition."""
    pass


class MalformedHeader(CfgBinError):
    """Raised when the container structure is not a valid cfg.bin."""
    pass


class InvalidFooter(MalformedHeader):
    """Raised when the trailing magic marker is missing."""
    pass


class OutOfBounds(CfgBinError):
    """Raised when a read or write would run past the end of the buffer."""

    def __init__(self, position: int, size: int, length: int):
        self.position = position
        self.size = size
        self.length = length
        super().__init__(
            f"Access of {size} byte(s) at 0x{position:X} exceeds buffer length 0x{length:X}"
        )


class UnmatchedField(CfgBinError):
    """Raised when an edit references an index or address that was not extracted."""
    pass


class LineCountMismatch(CfgBinError):
    """Raised when a TXT update does not have one line per text field."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"TXT has {actual} line(s), expected {expected}")


class KeyCountMismatch(CfgBinError):
    """Raised when NNK JSON keys differ from the extracted address set."""

    def __init__(self, missing, unexpected):
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        super().__init__(
            f"NNK JSON address keys do not match: {len(self.missing)} missing, "
            f"{len(self.unexpected)} unexpected"
        )
