"""Patch manifest serialization.

Rebuilds every variable-length buffer and offset table from a reconciled
asset set and writes:

  - ``<output_dir>/<name>.manifest`` the unlinked patch manifest
  - ``<output_dir>/<name>/<Type>/<Instance>.asset`` per asset, an
    AssetHeader followed by its instance, relocation and imports data
  - ``<output_dir>/<name>/<Type>/<Instance>.cdata`` per asset that has
    standalone content data

Everything is encoded in memory before the first file is written.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import FormatError, ManifestIOError
from .sage.layout import (
    MANIFEST_VERSION,
    UNLINKED_STREAM_CHECKSUM,
    AssetEntry,
    AssetHeader,
    AssetReferenceBuffer,
    ManifestHeader,
    NameBuffer,
    ReferencedManifestBuffer,
)
from .sage.manifest import ASSET_PATH_PREFIX
from .scanner import validate_path_safety

if TYPE_CHECKING:
    from .filtering import FilterAsset

logger = logging.getLogger(__name__)


@dataclass
class PatchManifest:
    """An encoded-in-memory patch manifest."""

    header: ManifestHeader
    entries: list[AssetEntry] = field(default_factory=list)
    asset_reference_buffer: bytes = b""
    external_manifest_name_buffer: bytes = b""
    asset_name_buffer: bytes = b""
    source_file_name_buffer: bytes = b""

    def to_bytes(self) -> bytes:
        parts = [self.header.pack()]
        parts.extend(entry.pack() for entry in self.entries)
        parts.append(self.asset_reference_buffer)
        parts.append(self.external_manifest_name_buffer)
        parts.append(self.asset_name_buffer)
        parts.append(self.source_file_name_buffer)
        return b"".join(parts)


def build_patch_manifest(assets: Sequence["FilterAsset"]) -> PatchManifest:
    """Rebuild the header, entry table, and buffers for ``assets``, in order.

    Raises:
        ValueError: If ``assets`` is empty
    """
    if not assets:
        raise ValueError("Cannot build a patch manifest without assets")

    reference_buffer = AssetReferenceBuffer()
    name_buffer = NameBuffer()
    source_file_name_buffer = NameBuffer()
    # External manifest references are not carried over into the patch
    referenced_manifests = ReferencedManifestBuffer()

    entries = []
    total_instance_data_size = 0
    max_instance = max_relocation = max_imports = 0

    for filter_asset in assets:
        asset = filter_asset.asset
        reference_offset, reference_count = reference_buffer.add_references(asset.references)
        total_instance_data_size += asset.instance_data_size
        max_instance = max(max_instance, asset.instance_data_size)
        max_relocation = max(max_relocation, asset.relocation_data_size)
        max_imports = max(max_imports, asset.imports_data_size)

        entries.append(
            AssetEntry(
                type_id=asset.type_id,
                instance_id=asset.instance_id,
                type_hash=asset.type_hash,
                instance_hash=asset.instance_hash,
                asset_reference_offset=reference_offset,
                asset_reference_count=reference_count,
                name_offset=name_buffer.add_name(asset.qualified_name),
                source_file_name_offset=source_file_name_buffer.add_name(asset.source),
                instance_data_size=asset.instance_data_size,
                relocation_data_size=asset.relocation_data_size,
                imports_data_size=asset.imports_data_size,
            )
        )

    header = ManifestHeader(
        is_big_endian=False,
        is_linked=False,
        version=MANIFEST_VERSION,
        stream_checksum=UNLINKED_STREAM_CHECKSUM,
        all_types_hash=assets[0].asset.manifest.all_types_hash,
        asset_count=len(entries),
        total_instance_data_size=total_instance_data_size,
        max_instance_chunk_size=max_instance,
        max_relocation_chunk_size=max_relocation,
        max_imports_chunk_size=max_imports,
        asset_reference_buffer_size=len(reference_buffer),
        external_manifest_name_buffer_size=len(referenced_manifests),
        asset_name_buffer_size=len(name_buffer),
        source_file_name_buffer_size=len(source_file_name_buffer),
    )

    return PatchManifest(
        header=header,
        entries=entries,
        asset_reference_buffer=reference_buffer.to_bytes(),
        external_manifest_name_buffer=referenced_manifests.to_bytes(),
        asset_name_buffer=name_buffer.to_bytes(),
        source_file_name_buffer=source_file_name_buffer.to_bytes(),
    )


def encode_asset_file(filter_asset: "FilterAsset") -> bytes:
    """Encode a standalone ``.asset`` file: header then the three chunk buffers."""
    asset = filter_asset.asset
    header = AssetHeader(
        type_id=asset.type_id,
        instance_id=asset.instance_id,
        type_hash=asset.type_hash,
        instance_hash=asset.instance_hash,
        instance_data_size=asset.instance_data_size,
        relocation_data_size=asset.relocation_data_size,
        imports_data_size=asset.imports_data_size,
    )
    chunk = filter_asset.chunk
    return b"".join((header.pack(), chunk.instance, chunk.relocation, chunk.imports))


def _strip_prefix(path: str) -> str:
    if not path.startswith(ASSET_PATH_PREFIX):
        raise FormatError(f"Asset path {path!r} does not start with {ASSET_PATH_PREFIX!r}")
    return path[len(ASSET_PATH_PREFIX):]


def asset_output_paths(filter_asset: "FilterAsset", base_dir: Path) -> tuple[Path, Path]:
    """Return the ``.asset`` and content data output paths of an asset.

    Raises:
        FormatError: If a derived path would leave ``base_dir``
    """
    asset = filter_asset.asset
    asset_path = base_dir / (_strip_prefix(asset.file_base_path) + ".asset")
    content_path = base_dir / _strip_prefix(asset.content_data_path)
    for path in (asset_path, content_path):
        try:
            validate_path_safety(path, base_dir)
        except ValueError as e:
            raise FormatError(str(e)) from e
    return asset_path, content_path


def _write_file(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise ManifestIOError(f"Cannot write {path}: {e}") from e


def write_patch(assets: Sequence["FilterAsset"], output_dir: Path, name: str = "patch") -> Path | None:
    """Write a patch manifest and the per-asset files for ``assets``.

    Args:
        assets: Reconciled assets, in the order they should be written
        output_dir: Directory receiving the manifest and asset directory
        name: Base name of the manifest and of the asset directory

    Returns:
        Path of the written manifest, or None if ``assets`` is empty

    Raises:
        ManifestIOError: If an output file or directory cannot be written
        FormatError: If an asset path cannot be mapped into the output, or
            two assets map to the same output file
    """
    if not assets:
        logger.info("No shared assets, nothing to write.")
        return None

    output_dir = Path(output_dir)
    base_dir = output_dir / name
    manifest_path = output_dir / f"{name}.manifest"

    manifest_bytes = build_patch_manifest(assets).to_bytes()
    files: list[tuple[Path, bytes]] = []
    owners: dict[Path, str] = {}
    for filter_asset in assets:
        asset_path, content_path = asset_output_paths(filter_asset, base_dir)
        qualified_name = filter_asset.asset.qualified_name
        # Sanitizing can map distinct names onto one file
        if asset_path in owners:
            raise FormatError(
                f"Assets {owners[asset_path]!r} and {qualified_name!r} both map to {asset_path}"
            )
        owners[asset_path] = qualified_name
        files.append((asset_path, encode_asset_file(filter_asset)))
        if filter_asset.content_data is not None:
            files.append((content_path, filter_asset.content_data))

    logger.info("Committing manifest '%s'.", manifest_path)
    for path, data in files:
        _write_file(path, data)
    _write_file(manifest_path, manifest_bytes)

    return manifest_path
