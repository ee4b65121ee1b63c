"""End-to-end catalog generation pipeline."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .analysis.context import DartAnalysisContext
from .analysis.protocol import SymbolResolutionProvider
from .config import Config
from .errors import ConfigurationError
from .extractor import MetadataExtractor
from .hierarchy import select_subtypes
from .index import SourceIndex
from .resolver import SymbolResolver
from .version import FlutterVersionProvider, VersionInfoProvider
from .writer import CatalogWriter

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[Path, set[str]], SymbolResolutionProvider]


@dataclass
class PipelineResult:
    """Summary of a completed run."""

    output_path: Path
    library_count: int
    widget_count: int
    size_kb: int


def check_working_directory(tool_root_name: str, cwd: Optional[Path] = None) -> None:
    """Require the process to run from the tool's repository root.

    Raises:
        ConfigurationError: the working directory is not named ``tool_root_name``
    """
    if not tool_root_name:
        return
    cwd = cwd or Path.cwd()
    if cwd.name != tool_root_name:
        raise ConfigurationError(
            f"Please run this tool from the root of the repo ('{tool_root_name}', not '{cwd.name}')."
        )


def _default_provider(package_path: Path, ignored_dirs: set[str]) -> SymbolResolutionProvider:
    return DartAnalysisContext(package_path, ignored_dirs=ignored_dirs)


class CatalogPipeline:
    """Runs enumerate, resolve, filter, extract and write in order.

    Any ``CatalogError`` raised by a stage aborts the run before the output
    file is touched.
    """

    def __init__(
        self,
        config: Config,
        version_provider: Optional[VersionInfoProvider] = None,
        provider_factory: ProviderFactory = _default_provider,
        echo: Callable[[str], None] = logger.info,
    ):
        """Initialize pipeline.

        Args:
            config: Application configuration
            version_provider: Source of the framework version; defaults to asking the SDK
            provider_factory: Builds the analysis engine for the scanned directory
            echo: Receives human-readable progress lines
        """
        self.config = config
        self.version_provider = version_provider
        self.provider_factory = provider_factory
        self.echo = echo

    def run(self) -> PipelineResult:
        config = self.config
        check_working_directory(config.tool_root_name)

        package_path = config.package_path
        if package_path is None:
            raise ConfigurationError("Flutter SDK path is not set (use --sdk or FLUTTER_SDK_PATH)")
        if not package_path.is_dir():
            raise ConfigurationError(f"Flutter package sources not found: {package_path}")

        self.echo("Setting up an analysis context...")
        provider = self.provider_factory(package_path, set(config.ignored_dirs))

        self.echo("Scanning Dart files...")
        units = SourceIndex(provider).list_library_units(package_path)
        self.echo(f"  {len(units)} dart files")

        self.echo(f"Resolving class '{config.root_type_name}'...")
        resolver = SymbolResolver(provider, workers=config.workers)
        root_type = resolver.resolve_root_type(config.root_library_uri, config.root_type_name)

        self.echo("Resolving widget subclasses...")
        classes = resolver.resolve_libraries(units)
        widgets = select_subtypes(classes, root_type)
        self.echo(f"  {len(widgets)} widgets")

        output_path = config.output_path
        self.echo(f"Generating {os.path.relpath(output_path.absolute())}...")
        extractor = MetadataExtractor(
            summary_annotation=config.summary_annotation,
            category_annotation=config.category_annotation,
        )
        entries = [extractor.extract(cls, root_type) for cls in widgets]

        version_provider = self.version_provider or FlutterVersionProvider(config.flutter_sdk_path)
        version_info = version_provider.get_version()

        size_kb = CatalogWriter().write(entries, version_info, output_path)
        self.echo(f"  {size_kb}kb")

        return PipelineResult(
            output_path=output_path,
            library_count=len(units),
            widget_count=len(widgets),
            size_kb=size_kb,
        )
