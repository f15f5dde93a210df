"""Core utilities for patch reports.

This package contains the report type definitions and the schema check
applied when a report is written.
"""

from .types import PatchReport, ReportAsset, ReportDanglingReference, ReportDiscard
from .validator import describe_error, load_schema, validate_report

__all__ = [
    "PatchReport",
    "ReportAsset",
    "ReportDanglingReference",
    "ReportDiscard",
    "describe_error",
    "load_schema",
    "validate_report",
]
