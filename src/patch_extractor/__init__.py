"""Patch Extractor.

This package merges the asset manifests of several maps into a single
patch manifest holding only the assets that every map carries unchanged.
"""

# Core library interface
from .pipeline import PatchPipeline, build_report, write_report
from .filtering import Discard, DiscardReason, DanglingReference, FilterAsset, FilterManifest
from .writer import build_patch_manifest, write_patch

# Manifest format
from .sage import Asset, AssetEntry, AssetReference, Chunk, Manifest, ManifestHeader
from .hashing import fast_hash

# Errors
from .errors import (
    ChecksumMismatch,
    FormatError,
    InvalidReport,
    ManifestError,
    ManifestIOError,
    TruncatedStream,
    UnsupportedFormat,
)

# Reports
from .core import PatchReport, validate_report

from .cli import main

__version__ = "0.1.0"

__all__ = [
    # Primary library interface
    "PatchPipeline",
    "FilterManifest",
    "FilterAsset",
    "Discard",
    "DiscardReason",
    "DanglingReference",
    "build_patch_manifest",
    "write_patch",
    "build_report",
    "write_report",
    # Manifest format
    "Manifest",
    "Asset",
    "Chunk",
    "ManifestHeader",
    "AssetEntry",
    "AssetReference",
    "fast_hash",
    # Errors
    "ManifestError",
    "FormatError",
    "UnsupportedFormat",
    "ChecksumMismatch",
    "TruncatedStream",
    "ManifestIOError",
    "InvalidReport",
    # Reports
    "PatchReport",
    "validate_report",
    "main",
]
