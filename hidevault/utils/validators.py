"""
Validation Utilities
====================

Input checks applied to paths handed in by the host.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class ValidationError(ValueError):
    """Raised when validation fails."""
    pass


def validate_source_path(
    path: str | Path,
    forbidden_root: Optional[Path] = None,
) -> Path:
    """
    Validate a path the user asked to hide.

    Args:
        path: Candidate source path
        forbidden_root: Directory the source must not live in (the vault
            itself, so the vault cannot swallow its own objects)

    Returns:
        Absolute path (symlinks in the final component are not followed)

    Raises:
        ValidationError: If the path is relative, missing, or inside
            forbidden_root
    """
    candidate = Path(path)
    if not candidate.is_absolute():
        raise ValidationError(f"Path must be absolute: {candidate}")

    if "\x00" in str(candidate):
        raise ValidationError("Path contains invalid characters")

    if not candidate.exists() and not candidate.is_symlink():
        raise ValidationError(f"Path does not exist: {candidate}")

    if forbidden_root is not None:
        try:
            resolved = candidate.parent.resolve() / candidate.name
            inside = resolved.is_relative_to(forbidden_root.resolve())
        except (OSError, RuntimeError) as e:
            raise ValidationError(f"Invalid path: {e}") from e
        if inside:
            raise ValidationError("Items inside the vault cannot be hidden again")

    return candidate
