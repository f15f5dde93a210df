"""Map directory discovery and output path safety.

This module handles filesystem traversal for locating per-map manifest
packages and the filename sanitizing used when deriving asset paths.
"""

import re
from pathlib import Path

from .errors import ManifestIOError

# Name of the manifest expected inside every map directory
MAP_MANIFEST_NAME = "map.manifest"

# Dangerous characters to remove from filenames
DANGEROUS_FILENAME_CHARS = r'[<>:"|?*\x00-\x1f]'


def sanitize_filename(filename: str) -> str:
    """Sanitize filename by removing dangerous characters.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for storage
    """
    # Remove dangerous characters
    sanitized = re.sub(DANGEROUS_FILENAME_CHARS, "", filename)
    # Remove path separators
    sanitized = sanitized.replace("/", "").replace("\\", "")
    # Refuse names that would move up or stay in the directory
    if sanitized in ("", ".", ".."):
        sanitized = "_"
    return sanitized


def validate_path_safety(path: Path, base_dir: Path) -> None:
    """Validate that a path stays within the base directory.

    This prevents path traversal attacks.

    Args:
        path: Path to validate
        base_dir: Base directory that path must be within

    Raises:
        ValueError: If path escapes the base directory
    """
    resolved_path = path.resolve()
    resolved_base = base_dir.resolve()

    if not resolved_path.is_relative_to(resolved_base):
        raise ValueError(f"Path {path} escapes base directory {base_dir}")


def list_subdirectories(root_path: Path) -> list[Path]:
    """List the immediate subdirectories of a directory, sorted by name.

    Raises:
        ManifestIOError: If the directory cannot be listed
    """
    try:
        children = sorted(root_path.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise ManifestIOError(f"Cannot list directory {root_path}: {e}") from e

    return [child for child in children if child.is_dir()]


def find_map_manifests(root_path: Path) -> list[Path]:
    """Find the ``map.manifest`` of every map directory under ``root_path``.

    Subdirectories without a manifest are ignored.

    Args:
        root_path: Directory containing one subdirectory per map

    Returns:
        Manifest paths in map directory name order
    """
    manifests = []
    for map_dir in list_subdirectories(root_path):
        manifest_path = map_dir / MAP_MANIFEST_NAME
        if manifest_path.is_file():
            manifests.append(manifest_path)
    return manifests
