"""Shared fixtures for the graph pipeline tests."""

import textwrap
from pathlib import Path
from typing import Dict

import pytest


@pytest.fixture
def make_tree(tmp_path):
    """Write ``{relative_path: source}`` under tmp_path and return the root."""
    def _make(files: Dict[str, str], root: Path = None) -> Path:
        root = root or tmp_path
        for rel, content in files.items():
            fp = root / rel
            fp.parent.mkdir(parents=True, exist_ok=True)
            fp.write_text(textwrap.dedent(content), encoding="utf-8")
        return root
    return _make
