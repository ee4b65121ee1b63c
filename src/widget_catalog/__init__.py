"""Widget Catalog - Generate a JSON catalog of Flutter widgets from framework sources."""

__version__ = "0.1.0"

from .config import Config
from .errors import (
    CatalogError,
    CatalogWriteError,
    ConfigurationError,
    MetadataError,
    ResolutionError,
)
from .extractor import MetadataExtractor, single_line
from .hierarchy import select_subtypes
from .index import SourceIndex
from .models import Catalog, CatalogEntry, VersionInfo
from .pipeline import CatalogPipeline
from .resolver import SymbolResolver
from .writer import CatalogWriter

__all__ = [
    "Config",
    "CatalogError",
    "CatalogWriteError",
    "ConfigurationError",
    "MetadataError",
    "ResolutionError",
    "MetadataExtractor",
    "single_line",
    "select_subtypes",
    "SourceIndex",
    "Catalog",
    "CatalogEntry",
    "VersionInfo",
    "CatalogPipeline",
    "SymbolResolver",
    "CatalogWriter",
]
