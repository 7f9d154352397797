"""Encoding-aware reads and atomic whole-file writes.

The document file is shared with git and with hand edits, so reads detect
the encoding instead of assuming UTF-8, and writes go through a temp file
plus ``os.replace`` so no reader ever sees a half-written document.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a text file, detecting its encoding.

    Args:
        path: File to read.

    Returns:
        Tuple of (content_string, detected_encoding).  UTF-8 is tried
        first; charset-normalizer only runs when that fails.  A leading
        BOM is stripped.  Empty files decode as ``("", "utf-8")``.
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8-sig"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content.lstrip("\ufeff"), encoding)


def write_file_atomic(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Replace *path* with *content* in one step.

    Creates parent directories as needed.  The temp file lives in the same
    directory so ``os.replace`` stays on one filesystem.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(encoded)
