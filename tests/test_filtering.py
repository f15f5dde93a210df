"""Tests for cross-map asset reconciliation."""

import itertools
import logging

import pytest

from conftest import AssetSpec
from patch_extractor.filtering import (
    DanglingReference,
    DiscardReason,
    FilterAsset,
    FilterManifest,
)
from patch_extractor.hashing import fast_hash
from patch_extractor.sage.manifest import Manifest


def names(patch: FilterManifest) -> list[str]:
    return [fa.asset.qualified_name for fa in patch.assets]


def reasons(patch: FilterManifest) -> dict[str, DiscardReason]:
    return {d.qualified_name: d.reason for d in patch.discarded}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def shared():
    return AssetSpec(name="Texture:Shared", instance=b"SHARED", relocation=b"R1", imports=b"I1")


@pytest.fixture
def first_map_assets(shared):
    return [
        AssetSpec(name="GameMap:Map1", instance=b"MAP-ONE"),
        AssetSpec(name="Model:Rock", instance=b"ROCK"),
        shared,
        AssetSpec(name="GameScriptList:Scripts", instance=b"SCRIPTS"),
        AssetSpec(name="TerrainTextureAtlas:Atlas", instance=b"ATLAS"),
        AssetSpec(name="Audio:Wind", instance=b"WIND", content_data=b"wav"),
        AssetSpec(name="Stub:Empty", instance=b""),
    ]


# ============================================================================
# Tests
# ============================================================================

class TestFilterAsset:
    """Tests for fingerprinting one asset."""

    def test_fingerprints_each_chunk(self, write_map, shared):
        manifest = Manifest(write_map("a", [shared]))
        filter_asset = FilterAsset(manifest.assets[0])

        assert filter_asset.fingerprints == (
            fast_hash(b"SHARED"),
            fast_hash(b"R1"),
            fast_hash(b"I1"),
        )
        assert filter_asset.key == shared.key
        assert filter_asset.content_data is None

    def test_loads_content_data(self, write_map):
        spec = AssetSpec(name="Audio:Wind", instance=b"WIND", content_data=b"wav")
        manifest = Manifest(write_map("a", [spec]))
        assert FilterAsset(manifest.assets[0]).content_data == b"wav"


class TestSingleManifest:
    """Tests for seeding from the first manifest."""

    def test_seed_keeps_order_and_drops_reserved_and_empty(self, write_map, first_map_assets):
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", first_map_assets)))

        assert names(patch) == ["Model:Rock", "Texture:Shared", "Audio:Wind"]
        assert patch.manifest_count == 1

    def test_reserved_types_recorded_as_map_specific(self, write_map, first_map_assets):
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", first_map_assets)))

        assert reasons(patch) == {
            "GameMap:Map1": DiscardReason.MAP_SPECIFIC,
            "GameScriptList:Scripts": DiscardReason.MAP_SPECIFIC,
            "TerrainTextureAtlas:Atlas": DiscardReason.MAP_SPECIFIC,
        }

    def test_seed_logs_discards(self, write_map, first_map_assets, caplog):
        patch = FilterManifest()
        with caplog.at_level(logging.INFO, logger="patch_extractor"):
            patch.add_manifest(Manifest(write_map("a", first_map_assets)))

        assert "Discarding asset GameMap:Map1, manual map specific." in caplog.messages

    def test_empty_first_manifest_stays_empty(self, write_map, shared):
        """Test that a later manifest never re-seeds an emptied set."""
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [AssetSpec(name="GameMap:Only", instance=b"x")])))
        patch.add_manifest(Manifest(write_map("b", [shared])))

        assert len(patch) == 0
        assert reasons(patch)["Texture:Shared"] == DiscardReason.NEW_NOT_IN_ALL_STREAMS


class TestNarrowing:
    """Tests for narrowing with later manifests."""

    def test_asset_missing_from_later_map_is_discarded(self, write_map, shared):
        rock = AssetSpec(name="Model:Rock", instance=b"ROCK")
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [rock, shared])))
        patch.add_manifest(Manifest(write_map("b", [shared])))

        assert names(patch) == ["Texture:Shared"]
        assert reasons(patch) == {"Model:Rock": DiscardReason.NOT_IN_ALL_STREAMS}

    @pytest.mark.parametrize("chunk", ["instance", "relocation", "imports"])
    def test_content_divergence_in_any_chunk(self, write_map, shared, chunk):
        changed = AssetSpec(
            name=shared.name,
            instance=shared.instance,
            relocation=shared.relocation,
            imports=shared.imports,
        )
        setattr(changed, chunk, getattr(shared, chunk) + b"!")

        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [shared])))
        patch.add_manifest(Manifest(write_map("b", [changed])))

        assert len(patch) == 0
        assert reasons(patch) == {"Texture:Shared": DiscardReason.DIFFERENT_VERSION}

    def test_content_data_is_not_fingerprinted(self, write_map, shared):
        with_data = AssetSpec(
            name=shared.name,
            instance=shared.instance,
            relocation=shared.relocation,
            imports=shared.imports,
            content_data=b"extra",
        )
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [shared])))
        patch.add_manifest(Manifest(write_map("b", [with_data])))

        assert names(patch) == ["Texture:Shared"]

    def test_new_assets_are_logged_never_added(self, write_map, shared, caplog):
        newcomer = AssetSpec(name="Model:Newcomer", instance=b"NEW")
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [shared])))
        with caplog.at_level(logging.INFO, logger="patch_extractor"):
            patch.add_manifest(Manifest(write_map("b", [newcomer, shared])))

        assert names(patch) == ["Texture:Shared"]
        assert reasons(patch) == {"Model:Newcomer": DiscardReason.NEW_NOT_IN_ALL_STREAMS}
        assert "Discarding new asset Model:Newcomer, not in all streams." in caplog.messages

    def test_reserved_types_not_excluded_after_first(self, write_map, shared):
        """Test that later maps only match, reserved types are reported as new."""
        game_map = AssetSpec(name="GameMap:Map2", instance=b"MAP-TWO")
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [shared])))
        patch.add_manifest(Manifest(write_map("b", [shared, game_map])))

        assert reasons(patch) == {"GameMap:Map2": DiscardReason.NEW_NOT_IN_ALL_STREAMS}

    def test_empty_assets_in_later_map_do_not_match(self, write_map, shared):
        empty_copy = AssetSpec(name=shared.name, instance=b"")
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [shared])))
        patch.add_manifest(Manifest(write_map("b", [empty_copy])))

        assert len(patch) == 0
        assert reasons(patch) == {"Texture:Shared": DiscardReason.NOT_IN_ALL_STREAMS}

    def test_order_of_first_map_is_kept(self, write_map):
        specs = [AssetSpec(name=f"Model:M{i}", instance=bytes([i + 1])) for i in range(5)]
        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", specs)))
        patch.add_manifest(Manifest(write_map("b", list(reversed(specs)))))

        assert names(patch) == [f"Model:M{i}" for i in range(5)]

    def test_membership_independent_of_map_order(self, write_map):
        a = AssetSpec(name="Model:A", instance=b"A")
        b = AssetSpec(name="Model:B", instance=b"B")
        c = AssetSpec(name="Model:C", instance=b"C")
        b_changed = AssetSpec(name="Model:B", instance=b"B2")
        maps = {
            "one": [a, b, c],
            "two": [c, a, b],
            "three": [a, b_changed, c],
        }
        manifests = {name: Manifest(write_map(name, specs)) for name, specs in maps.items()}

        results = set()
        for order in itertools.permutations(manifests):
            patch = FilterManifest()
            for name in order:
                patch.add_manifest(manifests[name])
            results.add(frozenset(names(patch)))

        assert results == {frozenset({"Model:A", "Model:C"})}


class TestDanglingReferences:
    """Tests for warnings about references to discarded assets."""

    def test_single_warning_for_referencing_asset(self, write_map, caplog):
        target = AssetSpec(name="Texture:Target", instance=b"T")
        user = AssetSpec(name="Model:User", instance=b"U", references=(target.key,))
        bystander = AssetSpec(name="Model:Bystander", instance=b"B")

        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [user, target, bystander])))
        with caplog.at_level(logging.WARNING, logger="patch_extractor"):
            patch.add_manifest(Manifest(write_map("b", [user, bystander])))

        assert patch.dangling_references == [
            DanglingReference(discarded="Texture:Target", referenced_by="Model:User")
        ]
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Model:User" in warnings[0].getMessage()
        assert "Texture:Target" in warnings[0].getMessage()
        assert names(patch) == ["Model:User", "Model:Bystander"]

    def test_referrer_later_in_order_is_found(self, write_map):
        target = AssetSpec(name="Texture:Target", instance=b"T")
        user = AssetSpec(name="Model:User", instance=b"U", references=(target.key,))

        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [target, user])))
        patch.add_manifest(Manifest(write_map("b", [user])))

        assert patch.dangling_references == [
            DanglingReference(discarded="Texture:Target", referenced_by="Model:User")
        ]

    def test_divergent_content_does_not_warn(self, write_map):
        target = AssetSpec(name="Texture:Target", instance=b"T")
        changed = AssetSpec(name="Texture:Target", instance=b"T2")
        user = AssetSpec(name="Model:User", instance=b"U", references=(target.key,))

        patch = FilterManifest()
        patch.add_manifest(Manifest(write_map("a", [user, target])))
        patch.add_manifest(Manifest(write_map("b", [user, changed])))

        assert patch.dangling_references == []


class TestFromDirectory:
    """Tests for reconciling a directory of maps."""

    def test_skips_directories_without_manifest(self, write_map, maps_root, shared):
        write_map("a", [shared])
        (maps_root / "notes").mkdir()
        write_map("b", [shared])

        patch = FilterManifest.from_directory(maps_root)

        assert patch.manifest_count == 2
        assert names(patch) == ["Texture:Shared"]

    def test_empty_root(self, maps_root):
        patch = FilterManifest.from_directory(maps_root)
        assert patch.manifest_count == 0
        assert len(patch) == 0
