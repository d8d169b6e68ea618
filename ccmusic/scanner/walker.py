"""Directory traversal for input discovery."""

import os
from collections.abc import Iterator
from fnmatch import fnmatch
from pathlib import Path


def walk_files(
    root: Path,
    pattern: str = "*",
    recursive: bool = True,
) -> Iterator[Path]:
    """
    Walk ``root`` and yield files whose name matches ``pattern``.

    Hidden files are skipped and each directory is visited once, even when
    symlinks loop back into the tree. Files are yielded in a stable order: sorted
    by name within a directory, directories visited in sorted order.

    Args:
        root: Directory to scan
        pattern: Filename glob (e.g., "*", "*.wav")
        recursive: Descend into subdirectories

    Yields:
        Absolute file paths
    """
    root = Path(root).resolve()
    if not root.is_dir():
        return

    visited: set[tuple[int, int]] = set()

    for current, dirs, files in os.walk(root, followlinks=True):
        stat = os.stat(current)
        key = (stat.st_dev, stat.st_ino)
        if key in visited:
            dirs[:] = []  # Symlink loop or second link to a seen directory
            continue
        visited.add(key)

        dirs.sort()
        current_path = Path(current)

        for filename in sorted(files):
            if filename.startswith("."):
                continue  # Skip hidden files
            if not fnmatch(filename.lower(), pattern.lower()):
                continue
            path = current_path / filename
            if path.is_file():
                yield path

        if not recursive:
            break
