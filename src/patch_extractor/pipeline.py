"""Patch extraction pipeline.

This module provides the main interface for turning a directory of
per-map manifest packages into one patch manifest. It ties together map
discovery, reconciliation, writing, and report generation.
"""

import json
import logging
from pathlib import Path

from .core.types import PatchReport, ReportAsset, ReportDanglingReference, ReportDiscard
from .core.validator import validate_report
from .errors import ManifestIOError
from .filtering import FilterManifest
from .writer import write_patch

logger = logging.getLogger(__name__)


class PatchPipeline:
    """Main interface for patch manifest generation.

    Example:
        >>> pipeline = PatchPipeline(Path('/maps'))
        >>> report = pipeline.run()
        >>> print(report['asset_count'])
    """

    def __init__(self, root_path: Path, output_dir: Path | None = None, name: str = "patch"):
        """Initialize the pipeline.

        Args:
            root_path: Directory containing one subdirectory per map
            output_dir: Where the patch is written (defaults to root_path)
            name: Base name of the patch manifest and its asset directory
        """
        self.root_path = Path(root_path)
        self.output_dir = Path(output_dir) if output_dir is not None else self.root_path
        self.name = name

    def reconcile(self) -> FilterManifest:
        """Load every map manifest in directory order and narrow the shared set."""
        return FilterManifest.from_directory(self.root_path)

    def commit(self, patch: FilterManifest) -> Path | None:
        """Write the reconciled set. Returns None when there was nothing to write."""
        return write_patch(patch.assets, self.output_dir, self.name)

    def run(self) -> PatchReport:
        """Reconcile, write, and summarize.

        Returns:
            Report dictionary conforming to the patch report schema
        """
        patch = self.reconcile()
        manifest_path = self.commit(patch)
        logger.info("%d assets shared by %d maps.", len(patch), patch.manifest_count)
        return build_report(patch, manifest_path)


def build_report(patch: FilterManifest, manifest_path: Path | None) -> PatchReport:
    """Summarize a reconciliation run as a JSON-ready dictionary."""
    assets = [
        ReportAsset(
            qualified_name=fa.asset.qualified_name,
            type_id=fa.asset.type_id,
            instance_id=fa.asset.instance_id,
            instance_data_size=fa.asset.instance_data_size,
            relocation_data_size=fa.asset.relocation_data_size,
            imports_data_size=fa.asset.imports_data_size,
            has_content_data=fa.content_data is not None,
        )
        for fa in patch.assets
    ]
    discarded = [
        ReportDiscard(
            qualified_name=discard.qualified_name,
            reason=discard.reason.value,
            manifest=discard.manifest,
        )
        for discard in patch.discarded
    ]
    dangling = [
        ReportDanglingReference(discarded=ref.discarded, referenced_by=ref.referenced_by)
        for ref in patch.dangling_references
    ]
    return PatchReport(
        patch_manifest=str(manifest_path) if manifest_path is not None else None,
        map_count=patch.manifest_count,
        asset_count=len(assets),
        assets=assets,
        discarded=discarded,
        dangling_references=dangling,
    )


def write_report(report: PatchReport, path: Path) -> None:
    """Validate a report against its schema and write it as JSON.

    Raises:
        InvalidReport: If the report does not match the schema
        ManifestIOError: If the file cannot be written
    """
    validate_report(report)
    try:
        with Path(path).open("w", encoding="utf-8") as f:
            json.dump(report, f, indent=2)
            f.write("\n")
    except OSError as e:
        raise ManifestIOError(f"Cannot write report {path}: {e}") from e
