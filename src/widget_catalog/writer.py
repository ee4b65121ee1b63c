"""Catalog serialization and output."""

import json
import logging
from pathlib import Path
from typing import Iterable

from .errors import CatalogWriteError
from .models import Catalog, CatalogEntry, VersionInfo

logger = logging.getLogger(__name__)


def render_catalog(entries: Iterable[CatalogEntry], version_info: VersionInfo) -> str:
    """Render entries as the catalog document, sorted by name."""
    catalog = Catalog(
        flutter=version_info,
        widgets=sorted(entries, key=lambda entry: entry.name),
    )
    return json.dumps(catalog.to_json(), indent=2, ensure_ascii=False) + "\n"


class CatalogWriter:
    """Writes the catalog JSON file."""

    def write(self, entries: Iterable[CatalogEntry], version_info: VersionInfo, output_path: Path) -> int:
        """Write the catalog, overwriting any existing file.

        Args:
            entries: Extracted catalog entries, in any order
            version_info: Framework version and channel
            output_path: Destination file

        Returns:
            File size in kilobytes, rounded up

        Raises:
            CatalogWriteError: the output path is not writable
        """
        data = render_catalog(entries, version_info).encode("utf-8")
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(data)
        except OSError as e:
            raise CatalogWriteError(f"Could not write {output_path}: {e}") from e

        kb = (len(data) + 1023) // 1024
        logger.info("Wrote %s (%dkb)", output_path, kb)
        return kb
