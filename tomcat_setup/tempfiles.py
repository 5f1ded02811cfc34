"""Scoped temporary files that are always removed on exit."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class TempFileRegistry:
    """Tracks temporary download files and deletes them on cleanup().

    Use as a context manager; the CLI also registers cleanup() with atexit
    so files are removed when the process exits on a signal.
    """

    def __init__(self, prefix: str = "tomcat-setup-") -> None:
        self._prefix = prefix
        self._paths: list[Path] = []

    def new(self, suffix: str = "") -> Path:
        fd, name = tempfile.mkstemp(prefix=self._prefix, suffix=suffix)
        os.close(fd)
        path = Path(name)
        self._paths.append(path)
        return path

    def release(self, path: Path) -> None:
        """Delete one tracked file now."""
        path.unlink(missing_ok=True)
        if path in self._paths:
            self._paths.remove(path)

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def cleanup(self) -> None:
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove temporary file {path}: {e}")
        self._paths.clear()

    def __enter__(self) -> TempFileRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()
