"""
Atomic file writes — write to a temp file, then rename over the target.

Both persisted slots (board config, catalog cache) are overwritten
wholesale through here, so a crash mid-write leaves either the old file
or the new one, never a truncated mix.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str, *, prefix: str = ".tmp_") -> None:
    """Replace ``path`` with ``content`` atomically.

    Creates parent directories as needed.

    Raises:
        OSError: If the file cannot be written. The target is untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.replace(path)
        logger.debug("Wrote %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
