"""
Language → extractor lookup.
"""

from typing import Dict, Union

from codeviz.models.project import Language
from codeviz.services.parsers.python_parser import PythonParser
from codeviz.services.parsers.rust_parser import RustParser

LanguageParser = Union[RustParser, PythonParser]

_PARSERS: Dict[Language, LanguageParser] = {
    Language.rust: RustParser(),
    Language.python: PythonParser(),
}


def get_parser(language: Union[Language, str]) -> LanguageParser:
    """Raises ValueError for a language with no extractor."""
    try:
        return _PARSERS[Language(language)]
    except ValueError:
        raise ValueError(f"Unsupported language: {language}")
