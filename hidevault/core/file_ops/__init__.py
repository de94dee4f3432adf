"""
Vault File Operations
=====================

Components:
- directories.py: Vault root, staging directory, stored-name policy
- manifest.py: Durable entry list with atomic saves
- transform.py: Hide, unhide, preview staging and deletion
- atomic.py: Temp-file + rename writes
- secure_delete.py: Overwrite-then-unlink removal

Security Features:
- Stored objects are never overwritten silently
- Partial artifacts are rolled back on failure
- Staged plaintext is overwritten before removal
"""

from hidevault.core.file_ops.directories import VaultDirectoryManager
from hidevault.core.file_ops.manifest import ConsistencyReport, ManifestStore
from hidevault.core.file_ops.secure_delete import secure_delete, secure_delete_tree

__all__ = [
    "VaultDirectoryManager",
    "ConsistencyReport",
    "ManifestStore",
    "secure_delete",
    "secure_delete_tree",
]
