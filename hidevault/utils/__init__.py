"""
Utils module - path and validation helpers.
"""

from hidevault.utils.paths import make_private_dir, open_with_default_viewer, sanitize_filename
from hidevault.utils.validators import ValidationError, validate_source_path

__all__ = [
    "make_private_dir",
    "open_with_default_viewer",
    "sanitize_filename",
    "ValidationError",
    "validate_source_path",
]
