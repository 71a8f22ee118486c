from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from engrain.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable

# Framework files describing a docs site's structure; kept even when dot-prefixed.
DOC_STRUCTURE_FILES: frozenset[str] = frozenset(
    {
        "conf.py",
        "mkdocs.yml",
        "mkdocs.yaml",
        "_config.yml",
        "_toc.yml",
        "docusaurus.config.js",
        "docusaurus.config.ts",
        "sidebars.js",
        "sidebars.ts",
        "_meta.js",
        "_meta.ts",
        "hugo.toml",
        "hugo.yaml",
        "hugo.yml",
        "config.toml",
        "config.yaml",
        "book.json",
        "summary.md",
        "book.toml",
        "openapi.json",
        "openapi.yaml",
        "openapi.yml",
        "swagger.json",
        "swagger.yaml",
        "swagger.yml",
        "doxygen.conf",
        "doxyfile",
        "typedoc.json",
        ".readthedocs.yml",
        ".readthedocs.yaml",
    },
)

EXCLUDED_FILE_NAMES: frozenset[str] = frozenset(
    {
        "thumbs.db",
        "desktop.ini",
        "codeowners",
        "makefile",
        "gnumakefile",
        "make.bat",
        "build-docs.sh",
        "build-docs.bat",
        "setup-docs.sh",
        "setup-docs.bat",
        "env.yml",
        "environment.yml",
        "env.yaml",
        "environment.yaml",
        "requirements.txt",
        "mint.json",
    },
)

EXCLUDED_EXTENSIONS: tuple[str, ...] = (
    # images
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".bmp",
    ".tiff",
    # videos
    ".mp4",
    ".mov",
    ".avi",
    ".webm",
    ".mkv",
    ".flv",
    # archives
    ".zip",
    ".tar",
    ".gz",
    ".rar",
    ".7z",
    ".bz2",
    # binaries
    ".pdf",
    ".exe",
    ".dll",
    ".so",
    ".dylib",
    ".bin",
    # fonts
    ".woff",
    ".woff2",
    ".ttf",
    ".eot",
    ".otf",
    # design sources
    ".cdr",
    ".ai",
    ".psd",
    ".sketch",
    ".fig",
    ".xd",
    # site scripts
    ".js",
    ".mjs",
    ".cjs",
    ".jsx",
    ".tsx",
    ".ipynb",
    # IDE / project files
    ".sln",
    ".vcxproj",
    ".vcproj",
    ".csproj",
    ".fsproj",
    ".vbproj",
    ".njsproj",
    ".xcodeproj",
    ".xcworkspace",
    ".filters",
    ".user",
)

DOC_STRUCTURE_DIRS: frozenset[str] = frozenset({".vitepress", ".storybook", "_layouts", "_includes", "_posts"})

EXCLUDED_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        "node_modules",
        "__pycache__",
        "dist",
        "build",
        "coverage",
        ".next",
        ".cache",
        "notebooks",
        "_build",
        ".doctrees",
        ".docusaurus",
        "_site",
        "public",
        "resources",
        "_book",
        ".jupyter_cache",
        "site",
        ".output",
    },
)

# Relative to the discovery root, posix separators.
EXCLUDED_NESTED_DIRS: frozenset[str] = frozenset({".vitepress/cache", ".vitepress/dist"})

EXCLUDED_DIR_SUFFIXES: tuple[str, ...] = (".xcodeproj", ".xcworkspace")


class FileEntry(BaseModel):
    """A discovered documentation file.

    Attributes:
        path: Absolute path on disk.
        relative_path: Path relative to the discovery root, posix separators.
    """

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Absolute file path")
    relative_path: str = Field(..., description="File path relative to the discovery root")


def should_exclude_file(file_name: str) -> bool:
    """Decide whether a file is noise rather than documentation.

    Negative filtering: everything is kept except dot-files, known build and
    dependency files, and binary/media/script extensions. Doc-site structure
    files (``mkdocs.yml``, ``conf.py``, ``.readthedocs.yml``...) are always kept.

    Args:
        file_name (str): base name of the file.

    Returns:
        bool: True if the file must be skipped.
    """
    lower = file_name.lower()
    if lower in DOC_STRUCTURE_FILES:
        return False
    if lower.startswith("."):
        return True
    if lower in EXCLUDED_FILE_NAMES:
        return True
    return lower.endswith(EXCLUDED_EXTENSIONS)


def should_exclude_dir(dir_name: str, relative_dir: str = "") -> bool:
    """Decide whether a directory must not be descended into.

    Args:
        dir_name (str): base name of the directory.
        relative_dir (str): posix path of the directory relative to the discovery root.

    Returns:
        bool: True if the directory must be pruned.
    """
    lower = dir_name.lower()
    if relative_dir and relative_dir.lower() in EXCLUDED_NESTED_DIRS:
        return True
    if lower in DOC_STRUCTURE_DIRS:
        return False
    if lower.startswith("."):
        return True
    if dir_name in EXCLUDED_DIRS or lower in EXCLUDED_DIRS:
        return True
    return lower.endswith(EXCLUDED_DIR_SUFFIXES)


def _on_walk_error(error: OSError) -> None:
    logger.warning("discover_unreadable_dir", path=str(error.filename), error=str(error))


def discover_files(
    root: Path,
    on_file: Callable[[str], None] | None = None,
) -> list[FileEntry]:
    """Recursively discover documentation files under ``root``.

    Symlinks are neither followed nor reported; unreadable directories are
    skipped with a warning.

    Args:
        root (Path): directory to scan.
        on_file (Callable[[str], None] | None): called with each relative path as it is found.

    Returns:
        list[FileEntry]: discovered files, in walk order.
    """
    results: list[FileEntry] = []
    for current, dirs, files in os.walk(root, onerror=_on_walk_error):
        current_path = Path(current)
        rel_dir = current_path.relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir
        dirs[:] = [
            d
            for d in dirs
            if not (current_path / d).is_symlink()
            and not should_exclude_dir(d, f"{rel_dir}/{d}" if rel_dir else d)
        ]
        for name in files:
            full = current_path / name
            if full.is_symlink() or not full.is_file() or should_exclude_file(name):
                continue
            relative = f"{rel_dir}/{name}" if rel_dir else name
            if on_file is not None:
                on_file(relative)
            results.append(FileEntry(path=full, relative_path=relative))
    logger.info("discover_files", root=str(root), count=len(results))
    return results
