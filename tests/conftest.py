"""Shared fixtures for building manifest packages on disk."""

from dataclasses import dataclass
from pathlib import Path

import pytest

from patch_extractor.hashing import fast_hash
from patch_extractor.sage.layout import (
    AssetEntry,
    AssetReference,
    AssetReferenceBuffer,
    ManifestHeader,
    ManifestTag,
    NameBuffer,
    ReferencedManifestBuffer,
)

DEFAULT_CHECKSUM = 0xCAFEBABE
DEFAULT_ALL_TYPES_HASH = 0x0BADF00D


@dataclass
class AssetSpec:
    """Description of one asset to place in a test manifest."""

    name: str
    instance: bytes = b"instance"
    relocation: bytes = b""
    imports: bytes = b""
    references: tuple[tuple[int, int], ...] = ()
    source: str = "art/source.xml"
    content_data: bytes | None = None
    type_id: int | None = None
    instance_id: int | None = None
    type_hash: int = 0x11111111
    instance_hash: int = 0x22222222

    @property
    def key(self) -> tuple[int, int]:
        type_name, _, instance_name = self.name.partition(":")
        type_id = self.type_id if self.type_id is not None else fast_hash(type_name)
        instance_id = self.instance_id if self.instance_id is not None else fast_hash(instance_name)
        return type_id, instance_id


def build_manifest_bytes(
    assets: list[AssetSpec],
    checksum: int = DEFAULT_CHECKSUM,
    linked: bool = True,
    all_types_hash: int = DEFAULT_ALL_TYPES_HASH,
    external: tuple[tuple[ManifestTag, str], ...] = (),
) -> bytes:
    references = AssetReferenceBuffer()
    names = NameBuffer()
    sources = NameBuffer()
    externals = ReferencedManifestBuffer()
    for tag, manifest_name in external:
        externals.add_manifest(manifest_name, tag)

    entries = []
    for spec in assets:
        type_id, instance_id = spec.key
        ref_offset, ref_count = references.add_references(
            AssetReference(t, i) for t, i in spec.references
        )
        entries.append(
            AssetEntry(
                type_id=type_id,
                instance_id=instance_id,
                type_hash=spec.type_hash,
                instance_hash=spec.instance_hash,
                asset_reference_offset=ref_offset,
                asset_reference_count=ref_count,
                name_offset=names.add_name(spec.name),
                source_file_name_offset=sources.add_name(spec.source),
                instance_data_size=len(spec.instance),
                relocation_data_size=len(spec.relocation),
                imports_data_size=len(spec.imports),
            )
        )

    header = ManifestHeader(
        is_big_endian=False,
        is_linked=linked,
        version=5,
        stream_checksum=checksum,
        all_types_hash=all_types_hash,
        asset_count=len(entries),
        total_instance_data_size=sum(len(a.instance) for a in assets),
        max_instance_chunk_size=max((len(a.instance) for a in assets), default=0),
        max_relocation_chunk_size=max((len(a.relocation) for a in assets), default=0),
        max_imports_chunk_size=max((len(a.imports) for a in assets), default=0),
        asset_reference_buffer_size=len(references),
        external_manifest_name_buffer_size=len(externals),
        asset_name_buffer_size=len(names),
        source_file_name_buffer_size=len(sources),
    )
    return b"".join(
        [header.pack()]
        + [entry.pack() for entry in entries]
        + [references.to_bytes(), externals.to_bytes(), names.to_bytes(), sources.to_bytes()]
    )


def write_package(
    directory: Path,
    assets: list[AssetSpec],
    checksum: int = DEFAULT_CHECKSUM,
    **kwargs,
) -> Path:
    """Write ``map.manifest`` with its three streams and any content data files."""
    directory.mkdir(parents=True, exist_ok=True)
    manifest_path = directory / "map.manifest"
    manifest_path.write_bytes(build_manifest_bytes(assets, checksum=checksum, **kwargs))

    prefix = checksum.to_bytes(4, "little")
    (directory / "map.bin").write_bytes(prefix + b"".join(a.instance for a in assets))
    (directory / "map.relo").write_bytes(prefix + b"".join(a.relocation for a in assets))
    (directory / "map.imp").write_bytes(prefix + b"".join(a.imports for a in assets))

    for spec in assets:
        if spec.content_data is None:
            continue
        type_name, _, instance_name = spec.name.partition(":")
        path = directory / "data" / type_name / f"{instance_name}.cdata"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(spec.content_data)

    return manifest_path


@pytest.fixture
def write_map(tmp_path):
    """Factory writing a map package under ``tmp_path/maps/<name>``."""

    def _write(name: str, assets: list[AssetSpec], **kwargs) -> Path:
        return write_package(tmp_path / "maps" / name, assets, **kwargs)

    return _write


@pytest.fixture
def maps_root(tmp_path) -> Path:
    root = tmp_path / "maps"
    root.mkdir(exist_ok=True)
    return root
