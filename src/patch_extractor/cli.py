"""Command-line interface for the patch extractor.

This module provides the CLI entry point for merging the manifests of
several map directories into one patch manifest.
"""

import argparse
import logging
import sys
from pathlib import Path

from .pipeline import PatchPipeline, write_report

EXIT_OK = 0
EXIT_MISSING_ARGUMENT = -1
EXIT_PATH_NOT_FOUND = -2
EXIT_PROCESSING_ERROR = -3


def configure_logging(verbose: bool = False) -> None:
    """Send library diagnostics to standard output as plain lines."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stdout,
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extract-patch",
        description="Merge per-map asset manifests into one patch manifest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write maps/patch.manifest and maps/patch/
  extract-patch maps

  # Write somewhere else, with a JSON report of every decision
  extract-patch maps --output build --report build/patch-report.json
        """,
    )

    parser.add_argument(
        "root", nargs="?", help="Directory containing one subdirectory per map"
    )

    parser.add_argument(
        "--output", help="Directory receiving the patch (defaults to the root directory)"
    )

    parser.add_argument(
        "--name", default="patch", help="Base name of the patch manifest (default: patch)"
    )

    parser.add_argument("--report", help="Write a JSON report of kept and discarded assets")

    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the patch extractor.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    if not args.root:
        print("No folder provided for maps.")
        return EXIT_MISSING_ARGUMENT

    root = Path(args.root)
    if not root.is_dir():
        print(f"Directory {root} not found.")
        return EXIT_PATH_NOT_FOUND

    configure_logging(args.verbose)

    output_dir = Path(args.output) if args.output else root
    pipeline = PatchPipeline(root, output_dir=output_dir, name=args.name)

    try:
        report = pipeline.run()

        if args.report:
            write_report(report, Path(args.report))

    except Exception as e:
        print(e)
        return EXIT_PROCESSING_ERROR

    if report["patch_manifest"] is None:
        print("No assets are shared by every map, nothing written.")
    else:
        print(f"Wrote {report['asset_count']} assets to {report['patch_manifest']}")

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
