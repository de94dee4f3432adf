"""
Memory zeroization for plaintext and key buffers.

WARNING:
- Python's memory model doesn't guarantee secure erasure
- These are best-effort mitigations
"""

from hidevault.core.memory.zeroization import secure_zero, wiped

__all__ = ["secure_zero", "wiped"]
