"""
Project language detection from root-level markers.
"""

from pathlib import Path
from typing import Union

from codeviz.models.project import Language

PYTHON_MARKERS = ("requirements.txt", "setup.py", "pyproject.toml")
RUST_MARKERS = ("Cargo.toml",)


def _has_suffix(root: Path, suffix: str) -> bool:
    return any(p.is_file() and p.suffix == suffix for p in root.iterdir())


def detect_language(root: Union[str, Path], default: Union[Language, str] = Language.rust) -> Language:
    """Python markers win over Rust ones; only the root directory is inspected."""
    root = Path(root)
    if not root.is_dir():
        return Language(default)
    if any((root / marker).exists() for marker in PYTHON_MARKERS) or _has_suffix(root, ".py"):
        return Language.python
    if any((root / marker).exists() for marker in RUST_MARKERS) or _has_suffix(root, ".rs"):
        return Language.rust
    return Language(default)
