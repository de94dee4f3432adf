"""
Memory Zeroization Utilities
============================

Plaintext read from or decrypted for the vault is held in bytearrays
and overwritten as soon as it has been written to its destination.

Security Notes:
    - Best effort: Python may keep other copies (immutable bytes
      returned by libraries, interpreter buffers)
    - Call immediately after use rather than relying on GC
"""

from __future__ import annotations

import ctypes
from contextlib import contextmanager
from typing import Iterator


def secure_zero(data: bytearray | memoryview) -> None:
    """
    Overwrite a mutable buffer with zeros.

    Args:
        data: bytearray or writable memoryview
    """
    if len(data) == 0:
        return

    if isinstance(data, memoryview):
        data[:] = bytes(len(data))
        return

    addr = ctypes.addressof((ctypes.c_char * len(data)).from_buffer(data))
    ctypes.memset(addr, 0, len(data))


@contextmanager
def wiped(data: bytes | bytearray) -> Iterator[bytearray]:
    """
    Hold sensitive bytes in a buffer that is zeroed on exit.

    Usage:
        with wiped(path.read_bytes()) as buf:
            destination.write_bytes(buf)
    """
    buffer = data if isinstance(data, bytearray) else bytearray(data)
    try:
        yield buffer
    finally:
        secure_zero(buffer)
