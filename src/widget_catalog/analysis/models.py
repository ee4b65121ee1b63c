"""Data models for parsed and resolved Dart declarations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from tree_sitter import Node

from ..errors import ConstantEvaluationError

# Sibling syntax nodes that make up one expression, kept unevaluated until an
# annotation needs them.
Expression = tuple[Node, ...]


class DeclarationKind(str, Enum):
    """Tag for top-level declarations; filtering dispatches on this."""

    CLASS = "class"
    MIXIN = "mixin"
    ENUM = "enum"
    EXTENSION = "extension"
    EXTENSION_TYPE = "extension_type"
    TYPEDEF = "typedef"
    FUNCTION = "function"
    VARIABLE = "variable"


@dataclass(frozen=True)
class TypeRef:
    """A type as written in source: ``Name`` or ``prefix.Name``."""

    name: str
    prefix: str | None = None

    def __str__(self) -> str:
        return f"{self.prefix}.{self.name}" if self.prefix else self.name


@dataclass(frozen=True)
class Argument:
    """One argument of an annotation or constructor invocation."""

    value: Expression
    name: str | None = None


@dataclass(frozen=True)
class RawAnnotation:
    """Annotation as parsed: ``@a``, ``@a.b`` or ``@a.b.c``, with optional arguments."""

    parts: tuple[str, ...]
    arguments: tuple[Argument, ...] | None
    line: int


@dataclass(frozen=True)
class Parameter:
    name: str
    kind: str  # "positional", "optional", "named"
    field_name: str | None = None  # set for ``this.x`` parameters
    default: Expression | None = None


@dataclass(frozen=True)
class ConstConstructor:
    name: str | None
    parameters: tuple[Parameter, ...]
    initializers: tuple[tuple[str, Expression], ...] = ()


@dataclass(frozen=True)
class Directive:
    """An ``import``, ``export``, ``part`` or ``part of`` directive."""

    keyword: str
    uri: str | None
    prefix: str | None = None
    show: tuple[str, ...] | None = None
    hide: tuple[str, ...] = ()
    line: int = 0


@dataclass
class Declaration:
    """A top-level declaration, tagged by ``kind``."""

    kind: DeclarationKind
    name: str
    line: int
    modifiers: frozenset[str] = frozenset()
    superclass: TypeRef | None = None
    mixins: tuple[TypeRef, ...] = ()
    interfaces: tuple[TypeRef, ...] = ()
    on_types: tuple[TypeRef, ...] = ()
    aliased: TypeRef | None = None
    annotations: tuple[RawAnnotation, ...] = ()
    documentation: str | None = None
    constructors: tuple[ConstConstructor, ...] = ()
    initializer: Expression | None = None

    @property
    def is_const(self) -> bool:
        return "const" in self.modifiers

    @property
    def is_abstract(self) -> bool:
        # Sealed classes are implicitly abstract.
        return bool({"abstract", "sealed"} & self.modifiers)

    def constructor(self, name: str | None) -> ConstConstructor | None:
        for ctor in self.constructors:
            if ctor.name == name:
                return ctor
        return None


@dataclass
class ParsedUnit:
    """One parsed compilation unit: directives plus top-level declarations."""

    path: Path
    directives: list[Directive] = field(default_factory=list)
    declarations: list[Declaration] = field(default_factory=list)

    @property
    def part_of(self) -> Directive | None:
        for directive in self.directives:
            if directive.keyword == "part of":
                return directive
        return None

    @property
    def is_part(self) -> bool:
        return self.part_of is not None


@dataclass(frozen=True)
class LibraryUnit:
    """A standalone compilation unit (not a part)."""

    path: Path


@dataclass(frozen=True)
class ClassKey:
    """Whole-program identity of a class: declaring library URI plus name."""

    library_uri: str | None
    name: str

    def __str__(self) -> str:
        return f"{self.library_uri or '<unresolved>'}#{self.name}"


OBJECT_KEY = ClassKey("dart:core", "Object")


@dataclass(frozen=True)
class Annotation:
    """A resolved annotation with its constant fields evaluated.

    ``kind`` is ``"constructor"`` for ``@Type(...)`` invocations, ``"variable"``
    for references to const variables and ``"unresolved"`` otherwise.
    """

    name: str
    kind: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    failures: Mapping[str, str] = field(default_factory=dict)
    error: str | None = None

    def get_field(self, name: str) -> Any:
        """Return the constant value of ``name``.

        Raises:
            KeyError: the annotation has no such field.
            ConstantEvaluationError: the field exists but could not be evaluated.
        """
        if self.error is not None:
            raise ConstantEvaluationError(self.error)
        if name in self.failures:
            raise ConstantEvaluationError(self.failures[name])
        return self.fields[name]


@dataclass(frozen=True)
class ResolvedClass:
    """A class or mixin declaration with its supertypes resolved."""

    name: str
    library_path: Path
    library_uri: str
    supertype: ClassKey
    all_supertypes: frozenset[ClassKey]
    is_abstract: bool = False
    is_mixin: bool = False
    annotations: tuple[Annotation, ...] = ()
    documentation_comment: str | None = None

    def __hash__(self) -> int:
        return hash(self.key)

    @property
    def key(self) -> ClassKey:
        return ClassKey(self.library_uri, self.name)

    def annotations_named(self, name: str) -> list[Annotation]:
        """Constructor annotations whose type is ``name``, in source order."""
        return [a for a in self.annotations if a.kind == "constructor" and a.name == name]


@dataclass(frozen=True)
class ResolvedLibrary:
    path: Path
    uri: str
    classes: tuple[ResolvedClass, ...] = ()

    def get_type(self, name: str) -> ResolvedClass | None:
        for cls in self.classes:
            if cls.name == name:
                return cls
        return None
