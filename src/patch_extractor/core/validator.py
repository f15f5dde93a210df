"""Schema validation for patch reports.

The schema is package data, read through ``importlib.resources`` so it
resolves the same way from a source checkout and an installed wheel.
"""

import json
from functools import lru_cache
from importlib.resources import files
from typing import Any

from jsonschema import Draft7Validator, ValidationError
from jsonschema.exceptions import best_match

from ..errors import InvalidReport
from .types import PatchReport

SCHEMA_NAME = "patch_report.schema.json"


def load_schema() -> dict[str, Any]:
    """Load the report schema bundled with the package."""
    resource = files("patch_extractor") / "schemas" / SCHEMA_NAME
    return json.loads(resource.read_text(encoding="utf-8"))  # type: ignore[no-any-return]


@lru_cache(maxsize=1)
def _report_validator() -> Draft7Validator:
    return Draft7Validator(load_schema())


def describe_error(error: ValidationError) -> str:
    """Render a schema violation as ``location: message``."""
    location = " -> ".join(str(p) for p in error.absolute_path) or "root"
    return f"{location}: {error.message}"


def validate_report(report: PatchReport) -> None:
    """Check a report against the bundled schema.

    Raises:
        InvalidReport: Naming the location of the most relevant violation
    """
    error = best_match(_report_validator().iter_errors(report))
    if error is not None:
        raise InvalidReport(f"Report validation failed at {describe_error(error)}") from error
