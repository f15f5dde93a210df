"""Manifest package reader.

A manifest package is a ``.manifest`` file plus three side-band streams
with the same base name next to it:

  - ``<name>.bin``  instance data
  - ``<name>.relo`` relocation data
  - ``<name>.imp``  imports data

Only linked packages are supported: per-asset stream offsets are not
stored, they are the running sum of the chunk sizes of every earlier
entry in table order. Offsets are computed once at load time; chunk data
is read on demand and never cached.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from ..errors import ChecksumMismatch, FormatError, ManifestIOError, TruncatedStream, UnsupportedFormat
from ..scanner import sanitize_filename
from .layout import (
    STREAM_DATA_START,
    AssetEntry,
    AssetReference,
    ManifestHeader,
    ManifestTag,
    parse_referenced_manifests,
    read_name,
    read_references,
)

logger = logging.getLogger(__name__)

# Prefix of every derived asset path, stripped when writing patch output
ASSET_PATH_PREFIX = "data/"

CONTENT_DATA_EXTENSION = ".cdata"

# (stream name, file suffix) in chunk order
STREAMS = (
    ("instance", ".bin"),
    ("relocation", ".relo"),
    ("imports", ".imp"),
)


def _read_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ManifestIOError(f"Cannot read {path}: {e}") from e


@dataclass(frozen=True)
class Chunk:
    """The three raw data buffers backing one asset."""

    instance: bytes = b""
    relocation: bytes = b""
    imports: bytes = b""


@dataclass(frozen=True)
class Asset:
    """An asset entry resolved against its manifest's buffers.

    Attributes:
        index: Position in the manifest's entry table
        manifest: Owning manifest, used for chunk and content data reads
        qualified_name: ``TypeName:InstanceName``
        source: Source file the asset was built from
        references: Identities of the assets this one points at
        linked_*_offset: Absolute offsets into the side-band streams
    """

    index: int
    manifest: "Manifest" = field(repr=False, compare=False)
    type_id: int
    instance_id: int
    type_hash: int
    instance_hash: int
    qualified_name: str
    source: str
    references: tuple[AssetReference, ...]
    instance_data_size: int
    relocation_data_size: int
    imports_data_size: int
    linked_instance_offset: int
    linked_relocation_offset: int
    linked_imports_offset: int

    @property
    def key(self) -> tuple[int, int]:
        """Logical identity of the asset within a manifest."""
        return (self.type_id, self.instance_id)

    @property
    def type_name(self) -> str:
        if ":" in self.qualified_name:
            return self.qualified_name.split(":", 1)[0]
        return f"{self.type_id:08x}"

    @property
    def instance_name(self) -> str:
        if ":" in self.qualified_name:
            return self.qualified_name.split(":", 1)[1]
        return self.qualified_name

    @property
    def file_base_path(self) -> str:
        """Path of the asset relative to its manifest directory, without extension."""
        path = PurePosixPath(
            sanitize_filename(self.type_name), sanitize_filename(self.instance_name)
        )
        return ASSET_PATH_PREFIX + str(path)

    @property
    def content_data_path(self) -> str:
        return self.file_base_path + CONTENT_DATA_EXTENSION

    def get_chunk(self) -> Chunk:
        return self.manifest.get_chunk(self)

    def get_content_data(self) -> bytes | None:
        return self.manifest.get_content_data(self)

    def references_asset(self, key: tuple[int, int]) -> bool:
        return any((ref.type_id, ref.instance_id) == key for ref in self.references)

    def __str__(self) -> str:
        return self.qualified_name


class Manifest:
    """A loaded manifest package.

    Example:
        >>> manifest = Manifest(Path("maps/map_mp_2/map.manifest"))
        >>> for asset in manifest.assets:
        ...     chunk = asset.get_chunk()
    """

    def __init__(self, path: Path | str):
        """Load and validate a manifest package.

        Args:
            path: Path to the ``.manifest`` file

        Raises:
            ManifestIOError: If the manifest or one of its streams is unreadable
            UnsupportedFormat: If the manifest is not linked
            ChecksumMismatch: If a stream does not carry the manifest's checksum
            FormatError: If the entry table or buffers do not fit the file
        """
        self.path = Path(path)
        self.directory = self.path.parent
        self.name = self.path.stem

        data = _read_file(self.path)
        if not data:
            raise FormatError(f"Empty manifest: {self.path}")

        # Packages are always decoded little-endian. The IsBigEndian flag is
        # carried through but never switches the decoding.
        self.header = ManifestHeader.unpack(data)
        if self.header.is_big_endian:
            logger.debug("%s is flagged big-endian, decoding as little-endian", self.path)

        if not self.header.is_linked:
            raise UnsupportedFormat(
                f"{self.path}: only linked streams are supported, "
                "there should not be any unlinked streams out there"
            )

        self._validate_streams()

        entries, buffers = self._split(data)
        reference_buffer, external_buffer, name_buffer, source_buffer = buffers

        assets: list[Asset] = []
        instance_offset = relocation_offset = imports_offset = STREAM_DATA_START
        for index, entry in enumerate(entries):
            assets.append(
                Asset(
                    index=index,
                    manifest=self,
                    type_id=entry.type_id,
                    instance_id=entry.instance_id,
                    type_hash=entry.type_hash,
                    instance_hash=entry.instance_hash,
                    qualified_name=read_name(name_buffer, entry.name_offset),
                    source=read_name(source_buffer, entry.source_file_name_offset),
                    references=read_references(
                        reference_buffer,
                        entry.asset_reference_offset,
                        entry.asset_reference_count,
                    ),
                    instance_data_size=entry.instance_data_size,
                    relocation_data_size=entry.relocation_data_size,
                    imports_data_size=entry.imports_data_size,
                    linked_instance_offset=instance_offset,
                    linked_relocation_offset=relocation_offset,
                    linked_imports_offset=imports_offset,
                )
            )
            instance_offset += entry.instance_data_size
            relocation_offset += entry.relocation_data_size
            imports_offset += entry.imports_data_size
        self.assets: tuple[Asset, ...] = tuple(assets)

        self.patch_manifest: str | None = None
        external: list[str] = []
        for tag, manifest_name in parse_referenced_manifests(external_buffer):
            if tag == ManifestTag.PATCH:
                self.patch_manifest = manifest_name
            else:
                external.append(manifest_name)
        self.external_manifests: tuple[str, ...] = tuple(external)

        logger.debug(
            "Loaded %s: %d assets, %d external manifests",
            self.path, len(self.assets), len(self.external_manifests),
        )

    @property
    def is_linked(self) -> bool:
        return self.header.is_linked

    @property
    def stream_checksum(self) -> int:
        return self.header.stream_checksum

    @property
    def all_types_hash(self) -> int:
        return self.header.all_types_hash

    @property
    def asset_count(self) -> int:
        return self.header.asset_count

    def stream_path(self, suffix: str) -> Path:
        return self.directory / (self.name + suffix)

    def _validate_streams(self) -> None:
        for stream_name, suffix in STREAMS:
            path = self.stream_path(suffix)
            try:
                with path.open("rb") as f:
                    prefix = f.read(STREAM_DATA_START)
            except OSError as e:
                raise ManifestIOError(f"Cannot read {stream_name} stream {path}: {e}") from e

            actual = None
            if len(prefix) == STREAM_DATA_START:
                actual = int.from_bytes(prefix, "little")
            if actual != self.stream_checksum:
                raise ChecksumMismatch(stream_name, self.stream_checksum, actual)

    def _split(self, data: bytes) -> tuple[list[AssetEntry], tuple[bytes, bytes, bytes, bytes]]:
        """Decode the entry table and cut the four trailing buffers."""
        header = self.header
        sizes = (
            header.asset_reference_buffer_size,
            header.external_manifest_name_buffer_size,
            header.asset_name_buffer_size,
            header.source_file_name_buffer_size,
        )
        if header.asset_count < 0 or any(size < 0 for size in sizes):
            raise FormatError(f"{self.path}: negative count or buffer size in header")

        offset = ManifestHeader.size()
        entry_size = AssetEntry.size()
        expected = offset + header.asset_count * entry_size + sum(sizes)
        if expected != len(data):
            raise FormatError(
                f"{self.path}: header describes {expected} bytes, file has {len(data)}"
            )

        entries = []
        for _ in range(header.asset_count):
            entries.append(AssetEntry.unpack(data, offset))
            offset += entry_size

        buffers = []
        for size in sizes:
            buffers.append(data[offset:offset + size])
            offset += size
        return entries, tuple(buffers)

    def get_chunk(self, asset: Asset) -> Chunk:
        """Read the three chunk buffers of an asset from the side-band streams.

        Raises:
            ManifestIOError: If a stream cannot be read
            TruncatedStream: If a stream ends before the declared size
        """
        parts = []
        for (stream_name, suffix), offset, size in zip(
            STREAMS,
            (asset.linked_instance_offset, asset.linked_relocation_offset, asset.linked_imports_offset),
            (asset.instance_data_size, asset.relocation_data_size, asset.imports_data_size),
        ):
            path = self.stream_path(suffix)
            try:
                with path.open("rb") as f:
                    f.seek(offset)
                    buffer = f.read(size)
            except OSError as e:
                raise ManifestIOError(f"Cannot read {stream_name} stream {path}: {e}") from e

            if len(buffer) != size:
                raise TruncatedStream(
                    f"{path}: {asset.qualified_name} declares {size} bytes of {stream_name} "
                    f"data at offset {offset}, only {len(buffer)} available"
                )
            parts.append(buffer)

        return Chunk(*parts)

    def get_content_data(self, asset: Asset) -> bytes | None:
        """Return the asset's standalone content data, or None if it has none."""
        path = self.directory / asset.content_data_path
        if not path.is_file():
            return None
        return _read_file(path)

    def __str__(self) -> str:
        return str(self.path)
