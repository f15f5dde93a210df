"""Exception types raised while reading and writing manifest packages.

Every error here is fatal to a run. Library code raises them and the
command-line interface maps them to exit codes.
"""


class ManifestError(Exception):
    """Base class for all manifest processing errors."""


class FormatError(ManifestError, ValueError):
    """Manifest bytes do not match the expected layout."""


class UnsupportedFormat(FormatError):
    """Manifest is valid but uses a variant this tool cannot read."""


class ChecksumMismatch(FormatError):
    """A side-band data stream does not belong to its manifest.

    Attributes:
        stream: Name of the offending stream (e.g. "instance", "relocation")
        expected: Checksum declared by the manifest header
        actual: Checksum found at the start of the stream
    """

    def __init__(self, stream: str, expected: int, actual: int | None) -> None:
        self.stream = stream
        self.expected = expected
        self.actual = actual
        found = "nothing" if actual is None else f"0x{actual:08X}"
        super().__init__(
            f"Checksum mismatch with {stream} data: expected 0x{expected:08X}, found {found}"
        )


class TruncatedStream(FormatError):
    """A side-band stream ended before a declared chunk was fully read."""


class ManifestIOError(ManifestError, OSError):
    """A manifest, stream, or output file could not be read or written."""


class InvalidReport(ManifestError, ValueError):
    """A run report does not match the report schema."""
