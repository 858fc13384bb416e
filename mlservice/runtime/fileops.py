"""
mlservice Runtime - Filesystem Operations

Directory sweeping used by the destructive repository reset.

Return code contract of clear_directory():
    > 0  directory could not be opened or listed
    < 0  listing succeeded but at least one entry could not be removed
      0  every entry was removed
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

CLEAR_OK = 0
CLEAR_OPEN_FAILED = 1
CLEAR_DELETE_FAILED = -1


def clear_directory(path: Union[str, Path]) -> int:
    """
    Remove every entry inside a directory, keeping the directory itself.

    Files and symlinks are unlinked, subdirectories removed recursively.
    Symlinks to directories are unlinked, never followed.

    Args:
        path: Directory to empty

    Returns:
        CLEAR_OK, CLEAR_OPEN_FAILED or CLEAR_DELETE_FAILED
    """
    try:
        with os.scandir(path) as it:
            entries = list(it)
    except OSError as e:
        logger.warning(
            "Cannot open directory for clearing",
            extra={"path": str(path), "error": str(e)},
        )
        return CLEAR_OPEN_FAILED

    failures = 0
    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                shutil.rmtree(entry.path)
            else:
                os.unlink(entry.path)
        except OSError as e:
            failures += 1
            logger.warning(
                "Failed removing directory entry",
                extra={"path": entry.path, "error": str(e)},
            )

    if failures:
        return CLEAR_DELETE_FAILED

    logger.debug(
        "Directory cleared",
        extra={"path": str(path), "entries_removed": len(entries)},
    )
    return CLEAR_OK
