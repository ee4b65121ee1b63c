"""Enumerate the library units of the scanned source tree."""

import logging
from pathlib import Path

from .analysis.models import LibraryUnit
from .analysis.protocol import SymbolResolutionProvider
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class SourceIndex:
    """Lists standalone libraries, skipping parts merged into other files."""

    def __init__(self, provider: SymbolResolutionProvider):
        """Initialize index.

        Args:
            provider: Analysis engine holding the source snapshot
        """
        self.provider = provider

    def list_library_units(self, root_dir: Path) -> list[LibraryUnit]:
        """List every library unit under ``root_dir``.

        Args:
            root_dir: Directory holding the framework's library sources

        Returns:
            Library units in the provider's enumeration order

        Raises:
            ConfigurationError: ``root_dir`` is not covered by exactly one analysis root
            ResolutionError: a file could not be classified
        """
        roots = self.provider.analysis_roots(root_dir)
        if len(roots) != 1:
            raise ConfigurationError(f"Expected one analysis context, found {len(roots)}.")

        units = [
            LibraryUnit(path=path)
            for path in self.provider.analyzed_files(root_dir)
            if not self.provider.is_part(path)
        ]
        logger.info("Found %d library units under %s", len(units), root_dir)
        return units
