"""Static analysis of Dart sources: parsing, scopes, supertypes and constants."""

from .models import (
    OBJECT_KEY,
    Annotation,
    ClassKey,
    Declaration,
    DeclarationKind,
    LibraryUnit,
    ResolvedClass,
    ResolvedLibrary,
)
from .protocol import SymbolResolutionProvider
from .context import DartAnalysisContext

__all__ = [
    "OBJECT_KEY",
    "Annotation",
    "ClassKey",
    "Declaration",
    "DeclarationKind",
    "LibraryUnit",
    "ResolvedClass",
    "ResolvedLibrary",
    "SymbolResolutionProvider",
    "DartAnalysisContext",
]
