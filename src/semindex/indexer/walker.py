"""File walker for discovering project files to index."""

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Callable


def walk_project(root: Path, exclude: Callable[[str], bool]) -> Iterator[Path]:
    """
    Walk the project root and yield the absolute path of every regular file.

    ``exclude`` receives POSIX paths relative to ``root``; directories are
    passed with a trailing ``/`` and pruned when excluded, so ignored trees
    such as ``node_modules/`` are never descended into. Dot files are
    included. Order is deterministic: each directory's files (sorted) come
    before its subdirectories (sorted).
    """
    if not root.is_dir():
        return

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"

        # Prune in place so os.walk skips excluded directories
        dirnames[:] = sorted(d for d in dirnames if not exclude(f"{prefix}{d}/"))

        for filename in sorted(filenames):
            rel = f"{prefix}{filename}"
            if exclude(rel):
                continue
            file_path = current / filename
            # Skip symlinks to directories, sockets and other non-regular files
            if not file_path.is_file():
                continue
            yield file_path
