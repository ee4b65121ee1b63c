"""Resolve library units into classes with their supertype sets."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable

from .analysis.models import LibraryUnit, ResolvedClass
from .analysis.protocol import SymbolResolutionProvider
from .errors import ResolutionError

logger = logging.getLogger(__name__)


class SymbolResolver:
    """Resolves libraries through a ``SymbolResolutionProvider``.

    Resolution may fan out over a thread pool. The provider's snapshot is
    complete before the first library is resolved, and results always come
    back in library enumeration order.
    """

    def __init__(self, provider: SymbolResolutionProvider, workers: int = 1):
        """Initialize resolver.

        Args:
            provider: Analysis engine holding the source snapshot
            workers: Upper bound on resolution threads; capped at the CPU count
        """
        self.provider = provider
        self.workers = max(1, min(workers, os.cpu_count() or 1))

    def resolve_root_type(self, library_uri: str, type_name: str) -> ResolvedClass:
        """Resolve the class every cataloged type must descend from.

        Args:
            library_uri: Import URI of the declaring library
            type_name: Simple name of the class

        Returns:
            The resolved root class

        Raises:
            ResolutionError: the library or the class cannot be found
        """
        library = self.provider.resolve_library_by_uri(library_uri)
        root = library.get_type(type_name)
        if root is None or root.is_mixin:
            raise ResolutionError(f"Class '{type_name}' not found in {library_uri}")
        return root

    def resolve_library(self, path: Path) -> list[ResolvedClass]:
        """Resolve the classes and mixins declared in one library and its parts.

        Raises:
            ResolutionError: the library failed to parse or resolve
        """
        try:
            library = self.provider.resolve_library(path)
        except ResolutionError:
            raise
        except Exception as e:
            raise ResolutionError(f"Failed to resolve library: {e}", path) from e
        return list(library.classes)

    def resolve_libraries(self, units: Iterable[LibraryUnit]) -> list[ResolvedClass]:
        """Resolve every unit, concatenating classes in enumeration order."""
        paths = [unit.path for unit in units]
        if self.workers == 1 or len(paths) < 2:
            results = [self.resolve_library(path) for path in paths]
        else:
            logger.debug("Resolving %d libraries on %d threads", len(paths), self.workers)
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                # map() yields in submission order and re-raises the first failure.
                results = list(executor.map(self.resolve_library, paths))

        classes = [cls for library_classes in results for cls in library_classes]
        logger.info("Resolved %d classes from %d libraries", len(classes), len(paths))
        return classes
