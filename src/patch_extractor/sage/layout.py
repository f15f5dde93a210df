"""Binary layout of manifest packages.

Fixed-size records are packed with ``struct`` using natural alignment and
no framing; a reader must know which record it expects. Variable-length
name data is stored as NUL-terminated single-byte text (latin-1, so every
byte value survives a read and rewrite).

Structure of a ``.manifest`` file:
  - ManifestHeader (48 bytes)
  - AssetEntry table (44 bytes x AssetCount)
  - Asset reference buffer (8 bytes per reference)
  - External manifest name buffer ([tag][name][NUL] ...)
  - Asset name buffer ([name][NUL] ...)
  - Source file name buffer ([name][NUL] ...)

Each side-band stream (``.bin``, ``.relo``, ``.imp``) starts with a 4 byte
checksum followed by the concatenated chunk data of every asset, in
entry table order.
"""

import struct
from dataclasses import astuple, dataclass
from enum import Enum, IntEnum
from typing import ClassVar

from ..errors import FormatError


class ByteOrder(Enum):
    """Byte order prefix for struct packing/unpacking."""

    BIG_ENDIAN = ">"
    LITTLE_ENDIAN = "<"

    @classmethod
    def select(cls, big_endian: bool) -> "ByteOrder":
        return cls.BIG_ENDIAN if big_endian else cls.LITTLE_ENDIAN


class ManifestTag(IntEnum):
    """Provenance tag of an external manifest name."""

    LOCAL = 0
    PATCH = 2


# Side-band streams start with a checksum, data follows
STREAM_DATA_START = 4

MANIFEST_VERSION = 5

# Written into unlinked manifests in place of a real stream checksum
UNLINKED_STREAM_CHECKSUM = 0x1337C0DE

# Names are raw bytes on disk, one character per byte
NAME_ENCODING = "latin-1"


class _Record:
    """Mixin for fixed-layout records backed by a struct format.

    Subclasses are dataclasses whose field order matches ``FORMAT``.
    """

    FORMAT: ClassVar[str]

    @classmethod
    def size(cls) -> int:
        return struct.calcsize("<" + cls.FORMAT)

    def pack(self, big_endian: bool = False) -> bytes:
        """Encode the record as exactly ``size()`` bytes."""
        order = ByteOrder.select(big_endian)
        return struct.pack(order.value + self.FORMAT, *astuple(self))

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0, big_endian: bool = False):
        """Decode one record from ``data`` at ``offset``.

        Raises:
            FormatError: If fewer than ``size()`` bytes are available
        """
        size = cls.size()
        if offset < 0 or len(data) - offset < size:
            raise FormatError(
                f"{cls.__name__} needs {size} bytes at offset {offset}, "
                f"only {max(len(data) - offset, 0)} available"
            )
        order = ByteOrder.select(big_endian)
        return cls(*struct.unpack_from(order.value + cls.FORMAT, data, offset))


@dataclass
class ManifestHeader(_Record):
    """Header at the start of every manifest file."""

    FORMAT: ClassVar[str] = "??HII9i"

    is_big_endian: bool = False
    is_linked: bool = False
    version: int = MANIFEST_VERSION
    stream_checksum: int = 0
    all_types_hash: int = 0
    asset_count: int = 0
    total_instance_data_size: int = 0
    max_instance_chunk_size: int = 0
    max_relocation_chunk_size: int = 0
    max_imports_chunk_size: int = 0
    asset_reference_buffer_size: int = 0
    external_manifest_name_buffer_size: int = 0
    asset_name_buffer_size: int = 0
    source_file_name_buffer_size: int = 0


@dataclass
class AssetEntry(_Record):
    """One row of the asset table.

    ``asset_reference_offset`` is a byte offset into the reference buffer;
    name offsets are byte offsets into their name buffers.
    """

    FORMAT: ClassVar[str] = "4I7i"

    type_id: int = 0
    instance_id: int = 0
    type_hash: int = 0
    instance_hash: int = 0
    asset_reference_offset: int = 0
    asset_reference_count: int = 0
    name_offset: int = 0
    source_file_name_offset: int = 0
    instance_data_size: int = 0
    relocation_data_size: int = 0
    imports_data_size: int = 0


@dataclass(frozen=True)
class AssetReference(_Record):
    """Identity of an asset referenced by another asset."""

    FORMAT: ClassVar[str] = "II"

    type_id: int = 0
    instance_id: int = 0


@dataclass
class AssetHeader(_Record):
    """Header of a standalone ``.asset`` file, followed by its chunk data."""

    FORMAT: ClassVar[str] = "4I3iI"

    type_id: int = 0
    instance_id: int = 0
    type_hash: int = 0
    instance_hash: int = 0
    instance_data_size: int = 0
    relocation_data_size: int = 0
    imports_data_size: int = 0
    zero: int = 0


def read_name(buffer: bytes, offset: int) -> str:
    """Read a NUL-terminated name starting at ``offset``.

    Raises:
        FormatError: If the offset is out of range or no terminator follows
    """
    if offset < 0 or offset >= len(buffer):
        raise FormatError(f"Name offset {offset} outside buffer of {len(buffer)} bytes")
    end = buffer.find(b"\0", offset)
    if end == -1:
        raise FormatError(f"Unterminated name at offset {offset}")
    return buffer[offset:end].decode(NAME_ENCODING)


def _encode_name(name: str) -> bytes:
    try:
        encoded = name.encode(NAME_ENCODING)
    except UnicodeEncodeError as e:
        raise FormatError(f"Name is not single-byte text: {name!r}") from e
    if b"\0" in encoded:
        raise FormatError(f"Name contains a NUL byte: {name!r}")
    return encoded + b"\0"


class NameBuffer:
    """Builder for the asset name and source file name buffers."""

    def __init__(self) -> None:
        self._data = bytearray()

    def add_name(self, name: str) -> int:
        """Append a name and return the offset it was written at."""
        offset = len(self._data)
        self._data += _encode_name(name)
        return offset

    def __len__(self) -> int:
        return len(self._data)

    def to_bytes(self) -> bytes:
        return bytes(self._data)


class ReferencedManifestBuffer:
    """Builder for the external manifest name buffer."""

    def __init__(self) -> None:
        self._data = bytearray()

    def add_manifest(self, name: str, tag: ManifestTag = ManifestTag.LOCAL) -> None:
        self._data.append(int(tag))
        self._data += _encode_name(name)

    def __len__(self) -> int:
        return len(self._data)

    def to_bytes(self) -> bytes:
        return bytes(self._data)


def parse_referenced_manifests(buffer: bytes) -> list[tuple[ManifestTag, str]]:
    """Split an external manifest name buffer into (tag, name) pairs.

    Raises:
        FormatError: On an unknown tag or an unterminated name
    """
    result: list[tuple[ManifestTag, str]] = []
    pos = 0
    while pos < len(buffer):
        try:
            tag = ManifestTag(buffer[pos])
        except ValueError:
            raise FormatError(
                f"Unknown external manifest tag {buffer[pos]} at offset {pos}"
            ) from None
        name = read_name(buffer, pos + 1)
        result.append((tag, name))
        pos += len(name) + 2
    return result


class AssetReferenceBuffer:
    """Builder for the asset reference buffer."""

    def __init__(self, big_endian: bool = False) -> None:
        self._data = bytearray()
        self._big_endian = big_endian

    def add_references(self, references) -> tuple[int, int]:
        """Append references and return their (byte offset, count)."""
        offset = len(self._data)
        count = 0
        for reference in references:
            self._data += reference.pack(self._big_endian)
            count += 1
        return offset, count

    def __len__(self) -> int:
        return len(self._data)

    def to_bytes(self) -> bytes:
        return bytes(self._data)


def read_references(
    buffer: bytes, offset: int, count: int, big_endian: bool = False
) -> tuple[AssetReference, ...]:
    """Read ``count`` references starting at byte ``offset``.

    Raises:
        FormatError: If the slice does not fit in the buffer
    """
    size = AssetReference.size()
    if count < 0 or offset < 0 or offset + count * size > len(buffer):
        raise FormatError(
            f"Asset references [{offset}, +{count}] outside buffer of {len(buffer)} bytes"
        )
    return tuple(
        AssetReference.unpack(buffer, offset + i * size, big_endian) for i in range(count)
    )


__all__ = [
    "ByteOrder",
    "ManifestTag",
    "STREAM_DATA_START",
    "MANIFEST_VERSION",
    "UNLINKED_STREAM_CHECKSUM",
    "NAME_ENCODING",
    "ManifestHeader",
    "AssetEntry",
    "AssetReference",
    "AssetHeader",
    "read_name",
    "NameBuffer",
    "ReferencedManifestBuffer",
    "parse_referenced_manifests",
    "AssetReferenceBuffer",
    "read_references",
]
