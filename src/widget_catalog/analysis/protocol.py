"""Protocol definition for whole-program symbol resolution.

The catalog pipeline only needs a handful of capabilities from a static
analysis engine; anything that provides them can stand in for the bundled
``DartAnalysisContext``.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import ClassKey, ResolvedLibrary


@runtime_checkable
class SymbolResolutionProvider(Protocol):
    """Capabilities the catalog pipeline consumes from an analysis engine.

    All methods read one immutable snapshot of the source tree, so they may be
    called concurrently from several threads.
    """

    def analysis_roots(self, path: Path) -> list[Path]:
        """Return the analysis roots (package directories) covering ``path``."""
        ...

    def analyzed_files(self, path: Path | None = None) -> list[Path]:
        """Return analyzed source files, optionally limited to those under ``path``.

        Files are returned in the provider's enumeration order.
        """
        ...

    def is_part(self, path: Path) -> bool:
        """Return True when ``path`` is a part merged into another library.

        Raises:
            ResolutionError: the file could not be read or parsed.
        """
        ...

    def resolve_library(self, path: Path) -> ResolvedLibrary:
        """Resolve the library whose defining unit is ``path``.

        Raises:
            ResolutionError: the library or one of its parts failed to resolve.
        """
        ...

    def resolve_library_by_uri(self, uri: str) -> ResolvedLibrary:
        """Resolve a library by import URI, e.g. ``package:flutter/widgets.dart``."""
        ...

    def supertypes_of(self, key: ClassKey) -> frozenset[ClassKey]:
        """Return the transitive (non-reflexive) supertypes of a class."""
        ...
