"""Error taxonomy for catalog generation.

Every failure is fatal for the run. The CLI turns any ``CatalogError`` into a
nonzero exit with a readable message; no partial catalog is ever written.
"""

from __future__ import annotations

from pathlib import Path


class CatalogError(Exception):
    """Base class for all catalog generation failures."""


class ConfigurationError(CatalogError):
    """Wrong working directory, missing SDK, or an ambiguous analysis root."""


class ResolutionError(CatalogError):
    """A source library could not be parsed or resolved."""

    def __init__(self, message: str, path: Path | str | None = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} ({self.path})"
        return self.message


class MetadataError(CatalogError):
    """A recognized annotation is malformed or a class path is unusable."""


class CatalogWriteError(CatalogError, OSError):
    """The catalog could not be written to its output path."""


class DartSyntaxError(Exception):
    """Raised by the Dart parser on source it cannot make sense of."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message


class ConstantEvaluationError(Exception):
    """An annotation argument is not a supported constant expression."""
