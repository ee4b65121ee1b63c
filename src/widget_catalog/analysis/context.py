"""Whole-program analysis context for a Dart package.

The context takes one snapshot of every analyzed file when it is created and
never rereads the file system afterwards. Resolution results are memoized in
lock-protected caches so libraries can be resolved from several threads.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pathspec import PathSpec
from pathspec.patterns.gitwildmatch import GitWildMatchPattern

from ..config import DEFAULT_IGNORED_DIRS
from ..errors import ConfigurationError, ConstantEvaluationError, DartSyntaxError, ResolutionError
from .constants import evaluate_constant
from .models import (
    OBJECT_KEY,
    Annotation,
    Argument,
    ClassKey,
    ConstConstructor,
    Declaration,
    DeclarationKind,
    Directive,
    Expression,
    ParsedUnit,
    RawAnnotation,
    ResolvedClass,
    ResolvedLibrary,
    TypeRef,
)
from .parsers import DartParser

logger = logging.getLogger(__name__)

PUBSPEC = "pubspec.yaml"
ANALYSIS_OPTIONS = "analysis_options.yaml"

_MAX_CONSTANT_DEPTH = 32
_MAX_ALIAS_DEPTH = 8

# (owning library path, declaration)
_Entry = tuple[Path, Declaration]


@dataclass
class _Library:
    path: Path
    uri: str
    declarations: list[Declaration] = field(default_factory=list)
    by_name: dict[str, Declaration] = field(default_factory=dict)
    imports: list[Directive] = field(default_factory=list)
    exports: list[Directive] = field(default_factory=list)


@dataclass
class _Scope:
    local: dict[str, _Entry]
    imported: dict[str, _Entry]
    prefixes: dict[str, dict[str, _Entry]]

    def has_prefix(self, name: str) -> bool:
        return name in self.prefixes

    def lookup(self, prefix: str | None, name: str) -> _Entry | None:
        if prefix is not None:
            return self.prefixes.get(prefix, {}).get(name)
        return self.local.get(name) or self.imported.get(name)


def find_package_roots(path: Path, ignored_dirs: set[str] | None = None) -> list[Path]:
    """Return the package roots that cover ``path``.

    The nearest enclosing directory with a ``pubspec.yaml`` comes first,
    followed by every nested package found below ``path``.
    """
    ignored = set(DEFAULT_IGNORED_DIRS) if ignored_dirs is None else ignored_dirs
    path = path.resolve()
    roots: list[Path] = []
    for candidate in (path, *path.parents):
        if (candidate / PUBSPEC).is_file():
            roots.append(candidate)
            break

    if path.is_dir():
        for pubspec in sorted(path.rglob(PUBSPEC)):
            root = pubspec.parent
            if root in roots:
                continue
            if any(part in ignored for part in root.relative_to(path).parts):
                continue
            roots.append(root)
    return roots


def read_package_name(root: Path) -> str:
    """Read ``name`` from a package's ``pubspec.yaml``."""
    pubspec = root / PUBSPEC
    try:
        data = yaml.safe_load(pubspec.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read {pubspec}: {e}") from e
    name = data.get("name") if isinstance(data, dict) else None
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{pubspec} does not declare a package name")
    return name


def load_excludes(root: Path) -> PathSpec | None:
    """Load ``analyzer: exclude:`` globs from ``analysis_options.yaml``."""
    options = root / ANALYSIS_OPTIONS
    if not options.is_file():
        return None
    try:
        data = yaml.safe_load(options.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read {options}: {e}") from e

    analyzer = data.get("analyzer") if isinstance(data, dict) else None
    patterns = analyzer.get("exclude") if isinstance(analyzer, dict) else None
    if not patterns:
        return None
    return PathSpec.from_lines(GitWildMatchPattern, [str(p) for p in patterns])


class DartAnalysisContext:
    """Resolve Dart libraries of one package from an immutable snapshot.

    Usage:
        context = DartAnalysisContext(sdk / "packages/flutter/lib")
        library = context.resolve_library_by_uri("package:flutter/src/widgets/framework.dart")
        widget = library.get_type("Widget")
    """

    def __init__(
        self,
        included_path: str | Path,
        ignored_dirs: set[str] | None = None,
        parser: DartParser | None = None,
    ) -> None:
        self.included_path = Path(included_path).resolve()
        self._ignored_dirs = set(DEFAULT_IGNORED_DIRS if ignored_dirs is None else ignored_dirs)
        self._parser = parser or DartParser()

        if not self.included_path.is_dir():
            raise ConfigurationError(f"Analysis path is not a directory: {included_path}")

        self._roots = find_package_roots(self.included_path, self._ignored_dirs)
        self.package_root: Path | None = self._roots[0] if self._roots else None
        self.package_name: str | None = (
            read_package_name(self.package_root) if self.package_root is not None else None
        )
        self._excludes = load_excludes(self.package_root) if self.package_root is not None else None

        self._files = self._walk()
        self._units: dict[Path, ParsedUnit] = {}
        self._errors: dict[Path, ResolutionError] = {}
        self._paths_by_uri: dict[str, Path] = {}
        for path in self._files:
            self._load(path)
            self._paths_by_uri[self.uri_for(path)] = path
        logger.debug("Snapshot holds %d files under %s", len(self._files), self.included_path)

        self._lock = threading.Lock()
        self._libraries: dict[Path, _Library] = {}
        self._export_cache: dict[Path, dict[str, _Entry]] = {}
        self._scopes: dict[Path, _Scope] = {}
        self._supertype_cache: dict[ClassKey, frozenset[ClassKey]] = {}
        self._resolved: dict[Path, ResolvedLibrary] = {}

    # Snapshot

    def _walk(self) -> list[Path]:
        files: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(self.included_path):
            dirnames[:] = sorted(
                d for d in dirnames if d not in self._ignored_dirs and not d.startswith(".")
            )
            for filename in sorted(filenames):
                if not filename.endswith(".dart"):
                    continue
                path = Path(dirpath) / filename
                if self._is_excluded(path):
                    continue
                files.append(path)
        return files

    def _is_excluded(self, path: Path) -> bool:
        if self._excludes is None or self.package_root is None:
            return False
        return self._excludes.match_file(path.relative_to(self.package_root).as_posix())

    def _load(self, path: Path) -> None:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self._errors[path] = ResolutionError(f"Could not read source: {e}", path)
            return
        try:
            self._units[path] = self._parser.parse(source, path)
        except DartSyntaxError as e:
            self._errors[path] = ResolutionError(f"Syntax error: {e}", path)

    def _unit(self, path: Path) -> ParsedUnit:
        if path in self._errors:
            raise self._errors[path]
        unit = self._units.get(path)
        if unit is None:
            raise ResolutionError("File is not part of the analysis snapshot", path)
        return unit

    # URIs

    def uri_for(self, path: Path) -> str:
        if self.package_root is not None and self.package_name is not None:
            try:
                relative = path.relative_to(self.package_root / "lib")
            except ValueError:
                pass
            else:
                return f"package:{self.package_name}/{relative.as_posix()}"
        return path.as_uri()

    def path_for_uri(self, uri: str, base: Path | None = None) -> Path | None:
        """Map an import URI to a file, or None for ``dart:`` and other packages."""
        if uri in self._paths_by_uri:
            return self._paths_by_uri[uri]
        if uri.startswith("dart:"):
            return None
        if uri.startswith("package:"):
            package, _, rest = uri[len("package:") :].partition("/")
            if package != self.package_name or self.package_root is None:
                return None
            return Path(os.path.normpath(self.package_root / "lib" / rest))
        if ":" in uri.split("/", 1)[0]:
            return None
        if base is None:
            return None
        return Path(os.path.normpath(base.parent / uri))

    # Provider API

    def analysis_roots(self, path: Path) -> list[Path]:
        path = Path(path).resolve()
        if path == self.included_path:
            return list(self._roots)
        return find_package_roots(path, self._ignored_dirs)

    def analyzed_files(self, path: Path | None = None) -> list[Path]:
        if path is None:
            return list(self._files)
        root = Path(path).resolve()
        return [f for f in self._files if f == root or root in f.parents]

    def is_part(self, path: Path) -> bool:
        return self._unit(Path(path)).is_part

    def resolve_library_by_uri(self, uri: str) -> ResolvedLibrary:
        path = self.path_for_uri(uri)
        if path is None or (path not in self._units and path not in self._errors):
            raise ResolutionError(f"Unknown library URI: {uri}")
        return self.resolve_library(path)

    def resolve_library(self, path: Path) -> ResolvedLibrary:
        path = Path(path)
        with self._lock:
            cached = self._resolved.get(path)
        if cached is not None:
            return cached

        library = self._library(path)
        classes: list[ResolvedClass] = []
        for declaration in library.declarations:
            # Only class-like declarations carry supertypes.
            if declaration.kind not in (DeclarationKind.CLASS, DeclarationKind.MIXIN):
                continue
            classes.append(self._resolve_class(library, declaration))

        resolved = ResolvedLibrary(path=path, uri=library.uri, classes=tuple(classes))
        with self._lock:
            return self._resolved.setdefault(path, resolved)

    def supertypes_of(self, key: ClassKey) -> frozenset[ClassKey]:
        return self._supertypes(key, frozenset())

    # Libraries and scopes

    def _library(self, path: Path) -> _Library:
        with self._lock:
            cached = self._libraries.get(path)
        if cached is not None:
            return cached

        unit = self._unit(path)
        if unit.is_part:
            raise ResolutionError("File is a part, not a library", path)

        library = _Library(path=path, uri=self.uri_for(path))
        units = [unit]
        for directive in unit.directives:
            if directive.keyword == "part":
                part_path = self.path_for_uri(directive.uri, path)
                if part_path is None:
                    raise ResolutionError(f"Part '{directive.uri}' is outside the package", path)
                units.append(self._unit(part_path))
            elif directive.keyword == "import":
                library.imports.append(directive)
            elif directive.keyword == "export":
                library.exports.append(directive)

        for part in units:
            for declaration in part.declarations:
                library.declarations.append(declaration)
                library.by_name.setdefault(declaration.name, declaration)

        with self._lock:
            return self._libraries.setdefault(path, library)

    def _target(self, directive: Directive, base: Path) -> Path | None:
        target = self.path_for_uri(directive.uri, base)
        if target is None:
            return None
        if target not in self._units and target not in self._errors:
            logger.debug("%s: '%s' is not in the snapshot", base, directive.uri)
            return None
        return target

    def _export_namespace(self, path: Path, visiting: frozenset[Path] = frozenset()) -> dict[str, _Entry]:
        with self._lock:
            cached = self._export_cache.get(path)
        if cached is not None:
            return cached

        library = self._library(path)
        namespace: dict[str, _Entry] = {
            name: (path, declaration)
            for name, declaration in library.by_name.items()
            if not name.startswith("_")
        }
        for directive in library.exports:
            target = self._target(directive, path)
            if target is None or target in visiting:
                continue
            exported = self._export_namespace(target, visiting | {path})
            for name, entry in _apply_combinators(exported, directive).items():
                namespace.setdefault(name, entry)

        with self._lock:
            return self._export_cache.setdefault(path, namespace)

    def _scope(self, path: Path) -> _Scope:
        with self._lock:
            cached = self._scopes.get(path)
        if cached is not None:
            return cached

        library = self._library(path)
        imported: dict[str, _Entry] = {}
        prefixes: dict[str, dict[str, _Entry]] = {}
        for directive in library.imports:
            target = self._target(directive, path)
            if target is None:
                continue
            names = _apply_combinators(self._export_namespace(target), directive)
            bucket = prefixes.setdefault(directive.prefix, {}) if directive.prefix else imported
            for name, entry in names.items():
                bucket.setdefault(name, entry)

        local = {name: (path, declaration) for name, declaration in library.by_name.items()}
        scope = _Scope(local=local, imported=imported, prefixes=prefixes)
        with self._lock:
            return self._scopes.setdefault(path, scope)

    def _declaration_for(self, key: ClassKey) -> _Entry | None:
        if key.library_uri is None:
            return None
        path = self._paths_by_uri.get(key.library_uri)
        if path is None:
            return None
        declaration = self._library(path).by_name.get(key.name)
        if declaration is None:
            return None
        return path, declaration

    def _key(self, path: Path, declaration: Declaration) -> ClassKey:
        return ClassKey(self.uri_for(path), declaration.name)

    # Types

    def _resolve_type(self, path: Path, ref: TypeRef, depth: int = 0) -> ClassKey:
        found = self._scope(path).lookup(ref.prefix, ref.name)
        if found is None:
            if ref.prefix is None and ref.name == OBJECT_KEY.name:
                return OBJECT_KEY
            return ClassKey(None, ref.name)
        owner, declaration = found
        if declaration.kind is DeclarationKind.TYPEDEF and declaration.aliased and depth < _MAX_ALIAS_DEPTH:
            return self._resolve_type(owner, declaration.aliased, depth + 1)
        return self._key(owner, declaration)

    def _supertypes(self, key: ClassKey, visiting: frozenset[ClassKey]) -> frozenset[ClassKey]:
        with self._lock:
            cached = self._supertype_cache.get(key)
        if cached is not None:
            return cached
        if key == OBJECT_KEY:
            return frozenset()

        result: set[ClassKey] = {OBJECT_KEY}
        found = self._declaration_for(key)
        if found is not None:
            owner, declaration = found
            direct = (
                ([declaration.superclass] if declaration.superclass else [])
                + list(declaration.mixins)
                + list(declaration.interfaces)
                + list(declaration.on_types)
            )
            for ref in direct:
                parent = self._resolve_type(owner, ref)
                if parent == key or parent in visiting:
                    continue
                result.add(parent)
                result |= self._supertypes(parent, visiting | {key})

        supertypes = frozenset(result)
        with self._lock:
            return self._supertype_cache.setdefault(key, supertypes)

    def _resolve_class(self, library: _Library, declaration: Declaration) -> ResolvedClass:
        key = ClassKey(library.uri, declaration.name)
        if declaration.kind is DeclarationKind.CLASS and declaration.superclass is not None:
            supertype = self._resolve_type(library.path, declaration.superclass)
        else:
            supertype = OBJECT_KEY
        return ResolvedClass(
            name=declaration.name,
            library_path=library.path,
            library_uri=library.uri,
            supertype=supertype,
            all_supertypes=self._supertypes(key, frozenset()),
            is_abstract=declaration.is_abstract,
            is_mixin=declaration.kind is DeclarationKind.MIXIN,
            annotations=tuple(self._resolve_annotation(library.path, raw) for raw in declaration.annotations),
            documentation_comment=declaration.documentation,
        )

    # Annotations and constants

    def _resolve_annotation(self, path: Path, raw: RawAnnotation) -> Annotation:
        scope = self._scope(path)
        prefix: str | None = None
        constructor: str | None = None
        if len(raw.parts) >= 3:
            prefix, name, constructor = raw.parts[:3]
        elif len(raw.parts) == 2 and scope.has_prefix(raw.parts[0]):
            prefix, name = raw.parts
        elif len(raw.parts) == 2:
            name, constructor = raw.parts
        else:
            name = raw.parts[0]

        found = scope.lookup(prefix, name)
        if found is None:
            return Annotation(name=name, kind="unresolved")

        owner, target = found
        if target.kind is DeclarationKind.VARIABLE:
            return Annotation(name=name, kind="variable")
        if target.kind is not DeclarationKind.CLASS or raw.arguments is None:
            return Annotation(name=name, kind="unresolved")

        ctor = target.constructor(constructor)
        if ctor is None:
            return self._bind_named(path, target.name, raw.arguments)
        return self._bind(path, owner, target.name, ctor, raw.arguments)

    def _bind_named(self, path: Path, name: str, arguments: tuple[Argument, ...]) -> Annotation:
        """Bind arguments of an annotation whose constructor is not visible."""
        fields: dict[str, Any] = {}
        failures: dict[str, str] = {}
        for argument in arguments:
            if argument.name is None:
                continue
            try:
                fields[argument.name] = self._evaluate(path, argument.value)
            except ConstantEvaluationError as e:
                failures[argument.name] = str(e)
        return Annotation(name=name, kind="constructor", fields=fields, failures=failures)

    def _bind(
        self,
        path: Path,
        owner: Path,
        name: str,
        ctor: ConstConstructor,
        arguments: tuple[Argument, ...],
    ) -> Annotation:
        positional = [a for a in arguments if a.name is None]
        named = {a.name: a for a in arguments if a.name is not None}
        positional_params = [p for p in ctor.parameters if p.kind != "named"]
        named_params = {p.name for p in ctor.parameters if p.kind == "named"}

        if len(positional) > len(positional_params):
            return Annotation(name=name, kind="constructor", error=f"Too many positional arguments for '{name}'")
        unknown = sorted(set(named) - named_params)
        if unknown:
            return Annotation(
                name=name, kind="constructor", error=f"Unknown named arguments for '{name}': {', '.join(unknown)}"
            )

        fields: dict[str, Any] = {}
        failures: dict[str, str] = {}
        bindings: dict[str, Any] = {}
        broken: dict[str, str] = {}
        index = 0
        for param in ctor.parameters:
            if param.kind == "named":
                argument = named.get(param.name)
            else:
                argument = positional[index] if index < len(positional) else None
                index += 1
            try:
                if argument is not None:
                    value = self._evaluate(path, argument.value)
                elif param.default is not None:
                    value = self._evaluate(owner, param.default)
                else:
                    value = None
            except ConstantEvaluationError as e:
                broken[param.name] = str(e)
                if param.field_name:
                    failures[param.field_name] = str(e)
                continue
            bindings[param.name] = value
            if param.field_name:
                fields[param.field_name] = value

        def lookup(prefix: str | None, ident: str) -> Any:
            if prefix is None and ident in broken:
                raise ConstantEvaluationError(broken[ident])
            if prefix is None and ident in bindings:
                return bindings[ident]
            return self._lookup_constant(owner, prefix, ident)

        for field_name, expression in ctor.initializers:
            try:
                fields[field_name] = evaluate_constant(expression, lookup)
            except ConstantEvaluationError as e:
                failures[field_name] = str(e)

        return Annotation(name=name, kind="constructor", fields=fields, failures=failures)

    def _evaluate(self, path: Path, expression: Expression) -> Any:
        return evaluate_constant(expression, lambda prefix, name: self._lookup_constant(path, prefix, name))

    def _lookup_constant(self, path: Path, prefix: str | None, name: str, depth: int = 0) -> Any:
        if depth > _MAX_CONSTANT_DEPTH:
            raise ConstantEvaluationError(f"Constant '{name}' refers to itself")
        found = self._scope(path).lookup(prefix, name)
        if found is None:
            raise ConstantEvaluationError(f"'{name}' is not a known constant")
        owner, declaration = found
        if declaration.kind is not DeclarationKind.VARIABLE or not declaration.is_const or not declaration.initializer:
            raise ConstantEvaluationError(f"'{name}' is not a const variable")
        return evaluate_constant(
            declaration.initializer,
            lambda p, n: self._lookup_constant(owner, p, n, depth + 1),
        )


def _apply_combinators(namespace: dict[str, _Entry], directive: Directive) -> dict[str, _Entry]:
    names = namespace
    if directive.show is not None:
        names = {name: entry for name, entry in names.items() if name in directive.show}
    if directive.hide:
        names = {name: entry for name, entry in names.items() if name not in directive.hide}
    return names
