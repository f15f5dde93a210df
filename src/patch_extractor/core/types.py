"""Type definitions for patch reports.

This module defines TypedDict classes that mirror the JSON schema structure
defined in schemas/patch_report.schema.json.
"""

from typing import TypedDict


class ReportAsset(TypedDict):
    """An asset written to the patch manifest."""

    qualified_name: str  # "TypeName:InstanceName"
    type_id: int
    instance_id: int
    instance_data_size: int
    relocation_data_size: int
    imports_data_size: int
    has_content_data: bool  # Whether a .cdata file was written


class ReportDiscard(TypedDict):
    """An asset left out of the patch."""

    qualified_name: str
    reason: str  # One of the DiscardReason values
    manifest: str  # Manifest being processed when the asset was dropped


class ReportDanglingReference(TypedDict):
    """A kept asset that referenced an asset which was discarded."""

    discarded: str
    referenced_by: str


class PatchReport(TypedDict):
    """Summary of one patch extraction run."""

    patch_manifest: str | None  # Path of the written manifest, None if nothing was written
    map_count: int  # Number of manifests reconciled
    asset_count: int
    assets: list[ReportAsset]
    discarded: list[ReportDiscard]
    dangling_references: list[ReportDanglingReference]
