"""Cross-map asset reconciliation.

Manifests are fed one at a time. The first one seeds the running set,
every later one can only narrow it: an asset survives only if every map
carries it with the same type and instance id and byte-identical chunk
data. The order of the first manifest is kept throughout.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .hashing import fast_hash
from .sage.manifest import Asset, Manifest
from .scanner import find_map_manifests
from .writer import write_patch

logger = logging.getLogger(__name__)

# Types that are always specific to one map and never go into a patch
RESERVED_TYPE_NAMES = ("GameScriptList", "TerrainTextureAtlas", "GameMap")
RESERVED_TYPE_IDS = frozenset(fast_hash(name) for name in RESERVED_TYPE_NAMES)


class DiscardReason(str, Enum):
    """Why an asset was left out of the patch."""

    MAP_SPECIFIC = "map-specific"
    DIFFERENT_VERSION = "different-version"
    NOT_IN_ALL_STREAMS = "not-in-all-streams"
    NEW_NOT_IN_ALL_STREAMS = "new-not-in-all-streams"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    DiscardReason.MAP_SPECIFIC: "manual map specific",
    DiscardReason.DIFFERENT_VERSION: "different version",
    DiscardReason.NOT_IN_ALL_STREAMS: "not in all streams",
    DiscardReason.NEW_NOT_IN_ALL_STREAMS: "not in all streams",
}


@dataclass(frozen=True)
class Discard:
    """A narrowing decision taken while processing one manifest."""

    qualified_name: str
    type_id: int
    instance_id: int
    reason: DiscardReason
    manifest: str


@dataclass(frozen=True)
class DanglingReference:
    """A kept asset that points at an asset which was just discarded."""

    discarded: str
    referenced_by: str


class FilterAsset:
    """An asset with its chunk data loaded and fingerprinted.

    Attributes:
        asset: The source asset
        chunk: Instance, relocation, and imports data
        content_data: Standalone content data, None if the asset has none
        instance_hash, relocation_hash, imports_hash: Chunk fingerprints
    """

    def __init__(self, asset: Asset):
        self.asset = asset
        self.chunk = asset.get_chunk()
        self.content_data = asset.get_content_data()
        self.instance_hash = fast_hash(self.chunk.instance)
        self.relocation_hash = fast_hash(self.chunk.relocation)
        self.imports_hash = fast_hash(self.chunk.imports)

    @property
    def key(self) -> tuple[int, int]:
        return self.asset.key

    @property
    def fingerprints(self) -> tuple[int, int, int]:
        return (self.instance_hash, self.relocation_hash, self.imports_hash)

    def same_content(self, other: "FilterAsset") -> bool:
        return self.fingerprints == other.fingerprints

    def __str__(self) -> str:
        return str(self.asset)

    def __repr__(self) -> str:
        return f"FilterAsset({self.asset.qualified_name!r}, {self.instance_hash:08X})"


class FilterManifest:
    """Running intersection of the assets shared by several manifests.

    Example:
        >>> patch = FilterManifest.from_directory(Path("maps"))
        >>> if patch.commit_manifest(Path("maps")):
        ...     print(f"{len(patch)} shared assets")
    """

    def __init__(self, reserved_type_ids: frozenset[int] = RESERVED_TYPE_IDS):
        self.reserved_type_ids = reserved_type_ids
        self.manifest_count = 0
        self.discarded: list[Discard] = []
        self.dangling_references: list[DanglingReference] = []
        self._assets: list[FilterAsset] = []

    @classmethod
    def from_directory(cls, root_path: Path, **kwargs) -> "FilterManifest":
        """Reconcile the manifests of every map directory under ``root_path``.

        Args:
            root_path: Directory containing one subdirectory per map
            **kwargs: Passed to the constructor

        Returns:
            The reconciled set after the last manifest
        """
        result = cls(**kwargs)
        for manifest_path in find_map_manifests(root_path):
            logger.info("Loading '%s'.", manifest_path)
            result.add_manifest(Manifest(manifest_path))
        return result

    @property
    def assets(self) -> tuple[FilterAsset, ...]:
        return tuple(self._assets)

    def __len__(self) -> int:
        return len(self._assets)

    def __iter__(self):
        return iter(self._assets)

    def add_manifest(self, manifest: Manifest) -> None:
        """Narrow the running set with one more manifest."""
        candidates = [asset for asset in manifest.assets if asset.instance_data_size > 0]
        if self.manifest_count == 0:
            self._seed(manifest, candidates)
        else:
            self._narrow(manifest, candidates)
        self.manifest_count += 1
        logger.debug("%d assets remain after %s", len(self._assets), manifest)

    def _discard(self, asset: Asset, reason: DiscardReason, manifest: Manifest) -> None:
        if reason is DiscardReason.NEW_NOT_IN_ALL_STREAMS:
            logger.info("Discarding new asset %s, %s.", asset.qualified_name, reason.description)
        else:
            logger.info("Discarding asset %s, %s.", asset.qualified_name, reason.description)
        self.discarded.append(
            Discard(
                qualified_name=asset.qualified_name,
                type_id=asset.type_id,
                instance_id=asset.instance_id,
                reason=reason,
                manifest=str(manifest),
            )
        )

    def _seed(self, manifest: Manifest, candidates: list[Asset]) -> None:
        for asset in candidates:
            if asset.type_id in self.reserved_type_ids:
                self._discard(asset, DiscardReason.MAP_SPECIFIC, manifest)
                continue
            self._assets.append(FilterAsset(asset))

    def _narrow(self, manifest: Manifest, candidates: list[Asset]) -> None:
        unmatched: dict[tuple[int, int], Asset] = {}
        for asset in candidates:
            unmatched.setdefault(asset.key, asset)

        kept: list[FilterAsset] = []
        for idx, current in enumerate(self._assets):
            other = unmatched.pop(current.key, None)
            if other is None:
                self._discard(current.asset, DiscardReason.NOT_IN_ALL_STREAMS, manifest)
                self._warn_referrers(current, kept + self._assets[idx + 1:])
                continue

            if not current.same_content(FilterAsset(other)):
                self._discard(current.asset, DiscardReason.DIFFERENT_VERSION, manifest)
                continue

            kept.append(current)

        self._assets = kept

        for asset in unmatched.values():
            self._discard(asset, DiscardReason.NEW_NOT_IN_ALL_STREAMS, manifest)

    def _warn_referrers(self, discarded: FilterAsset, remaining: list[FilterAsset]) -> None:
        for referrer in remaining:
            if referrer.asset.references_asset(discarded.key):
                logger.warning(
                    "WARNING: Discarded asset %s is referenced by %s.",
                    discarded.asset.qualified_name,
                    referrer.asset.qualified_name,
                )
                self.dangling_references.append(
                    DanglingReference(
                        discarded=discarded.asset.qualified_name,
                        referenced_by=referrer.asset.qualified_name,
                    )
                )

    def commit_manifest(self, output_dir: Path, name: str = "patch") -> bool:
        """Write the patch manifest and per-asset files.

        Args:
            output_dir: Directory receiving ``<name>.manifest`` and ``<name>/``
            name: Base name of the patch manifest

        Returns:
            False if there was nothing to write
        """
        return write_patch(self._assets, output_dir, name) is not None
