"""
Secure Logging Module
=====================

Logging setup for the vault engine with secret redaction.

Security Features:
- Automatic redaction of passwords, keys and encoded secrets
- Rotating log files with size limits
- Owner-only log directory
- Vault components never log plaintext or key material; the filter is
  a second line of defence for anything that slips through
"""

from __future__ import annotations

import logging
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional, Pattern

from hidevault.core.config import LoggingConfig


LOGGER_NAMESPACE: Final[str] = "hidevault"

_CONSOLE_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_FILE_FORMAT: Final[str] = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
)

_SENSITIVE_PATTERNS: Final[list[tuple[str, Pattern[str]]]] = [
    ("password", re.compile(r'(?i)(master[_-]?)?(password|passwd|pwd)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    ("key", re.compile(r'(?i)(encryption[_-]?key|secret[_-]?key|private[_-]?key)\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    ("salt", re.compile(r'(?i)salt\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    ("hash", re.compile(r'(?i)(master[_-]?)?hash\s*[=:]\s*["\']?[^\s"\']+["\']?')),
    # Base64 blobs of 256-bit keys or more; runs need a digit and never start at a slash (paths)
    ("base64_secret", re.compile(r'(?<![\w/+])(?!/)(?=[A-Za-z+/]*\d)[A-Za-z0-9+/]{43,}={0,2}')),
    # Hex runs of 64+ chars (keys, digests); shorter ids such as stored names survive
    ("hex_secret", re.compile(r'(?i)\b[a-f0-9]{64,}\b')),
]

_REDACTED_TEXT: Final[str] = "[REDACTED]"


class SecureLogFilter(logging.Filter):
    """
    Log filter that redacts secret-looking values.

    Records are always kept; only their message and string
    arguments are rewritten.
    """

    def __init__(self, name: str = "", additional_patterns: Optional[list[Pattern[str]]] = None) -> None:
        super().__init__(name)
        self._additional_patterns = additional_patterns or []

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg and isinstance(record.msg, str):
            record.msg = self._sanitize(record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._sanitize(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._sanitize(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return True

    def _sanitize(self, text: str) -> str:
        result = text
        for name, pattern in _SENSITIVE_PATTERNS:
            result = pattern.sub(f"{name}={_REDACTED_TEXT}", result)
        for pattern in self._additional_patterns:
            result = pattern.sub(_REDACTED_TEXT, result)
        return result


class SecureRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that creates its directory owner-only.
    """

    def __init__(
        self,
        filename: str | Path,
        mode: str = "a",
        maxBytes: int = 5 * 1024 * 1024,
        backupCount: int = 3,
        encoding: str = "utf-8",
    ) -> None:
        log_path = Path(filename).resolve()
        log_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        super().__init__(
            str(log_path),
            mode=mode,
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
        )


def configure_logging(config: LoggingConfig, log_dir: Optional[Path] = None) -> logging.Logger:
    """
    Configure the ``hidevault`` logger tree once at startup.

    Every component logs through ``logging.getLogger("hidevault.<part>")``
    and inherits the handlers installed here.

    Args:
        config: Logging section of the vault configuration
        log_dir: Directory for the rotating log file

    Returns:
        The namespace logger
    """
    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(getattr(logging, config.level.upper()))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    secure_filter = SecureLogFilter()

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        console_handler.addFilter(secure_filter)
        root.addHandler(console_handler)

    if config.enable_file and log_dir:
        file_handler = SecureRotatingFileHandler(
            filename=log_dir / "hidevault.log",
            maxBytes=config.max_file_size_bytes,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        file_handler.addFilter(secure_filter)
        root.addHandler(file_handler)

    return root
