"""Ignore rules: version-control ignores, the index-ignore file and defaults.

Two independent questions are answered here:

- Is a file git-ignored? Git-ignored files are still indexed, but only after
  redaction. Answered by ``git check-ignore``.
- Is a file index-ignored? Index-ignored files are never scanned. Answered
  by the default exclusions plus ``.semindex/index-ignore`` (gitignore
  syntax).
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable

import pathspec

from semindex.config import PROJECT_DIR

logger = logging.getLogger(__name__)

INDEX_IGNORE_FILE = f"{PROJECT_DIR}/index-ignore"

# Directories and files that are never worth indexing
DEFAULT_IGNORE_PATTERNS = [
    ".git/",
    ".hg/",
    ".svn/",
    "node_modules/",
    "__pycache__/",
    ".venv/",
    "venv/",
    ".mypy_cache/",
    ".pytest_cache/",
    ".cache/",
    "dist/",
    "build/",
    "target/",
    ".next/",
    "coverage/",
    f"{PROJECT_DIR}/",
    "*.pyc",
]

_default_spec = pathspec.GitIgnoreSpec.from_lines(DEFAULT_IGNORE_PATTERNS)


def _relative(path: Path, root: Path) -> str | None:
    """POSIX path of ``path`` relative to ``root``, or None if outside it."""
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        return None
    if rel.startswith(".."):
        return None
    return Path(rel).as_posix()


def is_default_ignored(rel: str) -> bool:
    """Check a relative path against the built-in exclusions."""
    if not rel or rel.startswith(".."):
        return False
    return _default_spec.match_file(rel)


class IndexIgnore:
    """Project-specific exclusions loaded once from ``.semindex/index-ignore``.

    Edits to the file take effect on the next start. Files matching new
    patterns are not removed from the index automatically.
    """

    def __init__(self, spec: pathspec.GitIgnoreSpec | None = None):
        self._spec = spec

    @classmethod
    def load(cls, root: Path) -> "IndexIgnore":
        ignore_path = root / INDEX_IGNORE_FILE
        try:
            lines = ignore_path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return cls()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to load index-ignore file %s: %s", ignore_path, e)
            return cls()
        return cls(pathspec.GitIgnoreSpec.from_lines(lines))

    def is_index_ignored(self, rel: str) -> bool:
        if self._spec is None or not rel or rel.startswith(".."):
            return False
        return self._spec.match_file(rel)

    def excludes(self, rel: str) -> bool:
        """Default exclusions plus project rules."""
        return is_default_ignored(rel) or self.is_index_ignored(rel)


async def is_git_ignored(path: Path, worktree: Path) -> bool:
    """Ask git whether a single file is ignored.

    If git cannot be run, the file is treated as ignored so that it gets
    redacted rather than indexed verbatim.
    """
    rel = _relative(path, worktree)
    if rel is None:
        return False
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            "check-ignore",
            "-q",
            rel,
            cwd=worktree,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return await proc.wait() == 0
    except OSError as e:
        logger.warning("git check-ignore failed for %s, treating as ignored: %s", rel, e)
        return True


async def build_ignore_checker(worktree: Path, paths: list[Path]) -> Callable[[Path], bool]:
    """Check a whole file set with one git call and return a lookup function.

    On failure nothing is reported as ignored; the scan continues.
    """
    ignored: set[Path] = set()
    relative = [rel for rel in (_relative(p, worktree) for p in paths) if rel is not None]

    if relative:
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                "check-ignore",
                "-z",
                "--stdin",
                cwd=worktree,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
            stdout, _ = await proc.communicate("".join(f"{rel}\0" for rel in relative).encode("utf-8"))
            # Exit code 1 means "nothing ignored"; anything above is an error
            if proc.returncode is not None and proc.returncode > 1:
                logger.warning(
                    "git check-ignore exited with %d; git-ignored files may be indexed unredacted",
                    proc.returncode,
                )
            for rel in stdout.decode("utf-8", errors="replace").split("\0"):
                if rel:
                    ignored.add((worktree / rel).resolve())
        except OSError as e:
            logger.warning("git check-ignore failed; git-ignored files may be indexed unredacted: %s", e)

    def is_ignored(path: Path) -> bool:
        return path.resolve() in ignored

    return is_ignored
