"""Abstract base for language analysers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import tree_sitter

from phpscope.config import SyntaxTree


@runtime_checkable
class LanguageAnalyser(Protocol):
    """Protocol that all language analysers must implement."""

    extensions: list[str]
    language_name: str

    def get_language(self) -> tree_sitter.Language:
        """Return the tree-sitter Language object for this analyser."""
        ...

    def parse(self, content: bytes, path: str = "") -> SyntaxTree:
        """Parse source bytes into top-level declarations.

        Raises PhpSyntaxError when the text does not parse.
        """
        ...
