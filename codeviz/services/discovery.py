"""
File discovery — walks a project tree and returns the source files of one language.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger("graph.discovery")

# Pruned for every language
SKIP_DIRS = {
    "node_modules", ".git", "__pycache__", "venv", ".venv",
    "env", ".env", "dist", "build", ".mypy_cache", ".pytest_cache",
    ".tox", "eggs", "*.egg-info",
}

RUST_EXTENSIONS = {".rs"}
RUST_EXCLUDE_DIRS = {"target", "node_modules"}

PYTHON_EXTENSIONS = {".py"}
PYTHON_EXCLUDE_DIRS = {"node_modules", "__pycache__", "venv", "env", ".venv"}


def _is_excluded(name: str, exclude_dirs: Iterable[str]) -> bool:
    if name.startswith("."):
        return True
    for pattern in exclude_dirs:
        if pattern.startswith("*"):
            if name.endswith(pattern.lstrip("*")):
                return True
        elif name == pattern:
            return True
    return False


def discover(
    root: Path,
    extensions: Iterable[str],
    exclude_dirs: Optional[Iterable[str]] = None,
    max_file_bytes: Optional[int] = None,
) -> List[Path]:
    """
    Collect absolute paths of files under *root* whose suffix is in *extensions*.

    Directories named in *exclude_dirs* (or SKIP_DIRS when omitted), hidden
    directories and ``*.egg-info`` are pruned. Symlinked directories are not
    followed. Output is sorted depth-first so repeated runs agree.
    """
    root = Path(root).resolve()
    suffixes = {ext.lower() for ext in extensions}
    excluded = set(SKIP_DIRS if exclude_dirs is None else exclude_dirs) | {"*.egg-info"}

    def _on_error(err: OSError) -> None:
        logger.warning(f"Cannot read directory {err.filename}: {err.strerror}")

    files: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        # Prune ignored dirs in-place; sorting fixes the walk order
        dirnames[:] = sorted(d for d in dirnames if not _is_excluded(d, excluded))
        for fname in sorted(filenames):
            if Path(fname).suffix.lower() not in suffixes:
                continue
            fp = Path(dirpath) / fname
            if max_file_bytes is not None:
                try:
                    size = fp.stat().st_size
                except OSError as e:
                    logger.warning(f"Cannot stat {fp}: {e}")
                    continue
                if size > max_file_bytes:
                    logger.info(f"Skipping {fp}: {size} bytes exceeds limit")
                    continue
            files.append(fp)
    return files
