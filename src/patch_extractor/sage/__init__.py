"""Manifest package format support."""

from .layout import (
    AssetEntry,
    AssetHeader,
    AssetReference,
    ByteOrder,
    ManifestHeader,
    ManifestTag,
)
from .manifest import Asset, Chunk, Manifest

__all__ = [
    "Asset",
    "AssetEntry",
    "AssetHeader",
    "AssetReference",
    "ByteOrder",
    "Chunk",
    "Manifest",
    "ManifestHeader",
    "ManifestTag",
]
