"""Tests for the project walker."""

from pathlib import Path

from semindex.indexer.ignore import IndexIgnore
from semindex.indexer.walker import walk_project


def touch(root: Path, rel: str, content: str = "x") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def rel_paths(root: Path, exclude) -> list[str]:
    return [p.relative_to(root).as_posix() for p in walk_project(root, exclude)]


class TestWalkProject:
    def test_yields_absolute_file_paths(self, tmp_path: Path):
        touch(tmp_path, "a.py")
        files = list(walk_project(tmp_path, lambda rel: False))
        assert files == [tmp_path / "a.py"]
        assert files[0].is_absolute()

    def test_deterministic_order(self, tmp_path: Path):
        for rel in ["b.txt", "a.txt", "pkg/z.py", "pkg/m.py", "docs/readme.md"]:
            touch(tmp_path, rel)
        assert rel_paths(tmp_path, lambda rel: False) == [
            "a.txt",
            "b.txt",
            "docs/readme.md",
            "pkg/m.py",
            "pkg/z.py",
        ]

    def test_dot_files_included(self, tmp_path: Path):
        touch(tmp_path, ".env")
        touch(tmp_path, ".config/settings.yml")
        assert rel_paths(tmp_path, lambda rel: False) == [".env", ".config/settings.yml"]

    def test_excluded_directories_are_pruned(self, tmp_path: Path):
        touch(tmp_path, "src/app.js")
        touch(tmp_path, "node_modules/lib/index.js")
        seen: list[str] = []

        def exclude(rel: str) -> bool:
            seen.append(rel)
            return rel == "node_modules/"

        assert rel_paths(tmp_path, exclude) == ["src/app.js"]
        # Never descended into the pruned directory
        assert not any(rel.startswith("node_modules/lib") for rel in seen)

    def test_default_and_project_exclusions(self, tmp_path: Path):
        touch(tmp_path, "main.py")
        touch(tmp_path, ".git/config")
        touch(tmp_path, "__pycache__/main.cpython-312.pyc")
        touch(tmp_path, "fixtures/big.json")
        touch(tmp_path, "notes.log")
        touch(tmp_path, ".semindex/index-ignore", "fixtures/\n*.log\n")

        index_ignore = IndexIgnore.load(tmp_path)
        assert rel_paths(tmp_path, index_ignore.excludes) == ["main.py"]

    def test_missing_root_yields_nothing(self, tmp_path: Path):
        assert list(walk_project(tmp_path / "missing", lambda rel: False)) == []
