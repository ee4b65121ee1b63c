"""Dart declaration parser using tree-sitter.

Reads directives and top-level declarations from a compilation unit. Class
bodies are only inspected for ``const`` constructors, which annotation
evaluation needs; function bodies are never looked at.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from tree_sitter import Node
from tree_sitter_language_pack import get_parser

from ...errors import ConstantEvaluationError, DartSyntaxError
from ..constants import string_value
from ..models import (
    Argument,
    ConstConstructor,
    Declaration,
    DeclarationKind,
    Directive,
    Expression,
    Parameter,
    ParsedUnit,
    RawAnnotation,
    TypeRef,
)

_CLASS_MODIFIERS = {"abstract", "base", "interface", "final", "sealed", "mixin", "augment", "macro"}

# Builtins in front of a top-level variable or function, by node type.
_MEMBER_MODIFIERS = {
    "const_builtin": "const",
    "final_builtin": "final",
    "inferred_type": "var",
    "late": "late",
    "external": "external",
}

# Subtrees whose syntax errors do not affect what is read from a unit. The
# grammar reports ``library;`` as a library name with a missing identifier,
# and bodies are skipped anyway.
_TOLERATED_ERRORS = {"library_name", "function_body"}

_DIRECTIVES = {"library_name", "import_or_export", "part_directive", "part_of_directive"}
_FUNCTION_SIGNATURES = {"function_signature", "getter_signature", "setter_signature"}
_VARIABLE_LISTS = {
    "static_final_declaration_list": "static_final_declaration",
    "initialized_identifier_list": "initialized_identifier",
}


class DartParser:
    """Parse Dart source into a ``ParsedUnit``."""

    def _parse(self, source: str):
        """Parse source and return tree."""
        parser = get_parser("dart")
        return parser.parse(source.encode())

    def parse(self, source: str, path: Path | str = "<memory>") -> ParsedUnit:
        """Parse one compilation unit.

        Raises:
            DartSyntaxError: the source is not well-formed enough to read.
        """
        root = self._parse(source).root_node
        _check_syntax(root)
        return _UnitReader(Path(path)).read(root)


class _UnitReader:
    def __init__(self, path: Path):
        self.unit = ParsedUnit(path=path)
        # Annotations, comments and builtins seen since the last declaration.
        self.pending: list[Node] = []

    def read(self, root: Node) -> ParsedUnit:
        for node in root.children:
            kind = node.type
            if kind in _DIRECTIVES:
                self.read_directive(node)
            elif kind == "class_definition":
                self.add(self.read_class(node))
            elif kind == "mixin_declaration":
                self.add(self.read_mixin(node))
            elif kind == "enum_declaration":
                self.add(self.read_named(node, DeclarationKind.ENUM))
            elif kind == "extension_declaration":
                # Unnamed extensions declare nothing that can be referenced.
                if node.child_by_field_name("name") is not None:
                    self.add(self.read_named(node, DeclarationKind.EXTENSION))
                else:
                    self.pending.clear()
            elif kind == "type_alias":
                self.add(self.read_typedef(node))
            elif kind in _FUNCTION_SIGNATURES:
                self.add(self.read_named(node, DeclarationKind.FUNCTION))
            elif kind in _VARIABLE_LISTS:
                self.read_variables(node, _VARIABLE_LISTS[kind])
            elif node.is_error:
                self.read_extension_type(node)
            elif kind in (";", "function_body"):
                self.pending.clear()
            else:
                self.pending.append(node)
        return self.unit

    def add(self, declaration: Declaration) -> None:
        self.unit.declarations.append(declaration)
        self.pending.clear()

    # Directives

    def read_directive(self, node: Node) -> None:
        self.pending.clear()
        if node.type == "library_name":
            return
        if node.type == "part_directive":
            self.unit.directives.append(Directive("part", _uri(node), line=_line(node)))
            return
        if node.type == "part_of_directive":
            # ``part of some.library;`` names the library instead of its URI.
            uri = _uri(node) if _child(node, "uri") is not None else None
            self.unit.directives.append(Directive("part of", uri, line=_line(node)))
            return

        directive = node.named_children[0]
        if directive.type == "library_import":
            directive = directive.named_children[0]
            keyword = "import"
        else:
            keyword = "export"

        prefix: str | None = None
        show: list[str] | None = None
        hide: list[str] = []
        after_as = False
        for child in directive.children:
            if child.type == "as":
                after_as = True
            elif child.type == "identifier" and after_as:
                prefix = _text(child)
            elif child.type == "combinator":
                names = [_text(c) for c in child.named_children if c.type == "identifier"]
                if child.children[0].type == "show":
                    show = (show or []) + names
                else:
                    hide.extend(names)

        self.unit.directives.append(
            Directive(
                keyword,
                _uri(directive),
                prefix=prefix,
                show=tuple(show) if show is not None else None,
                hide=tuple(hide),
                line=_line(directive),
            )
        )

    # Declarations

    def read_class(self, node: Node) -> Declaration:
        application = _child(node, "mixin_application_class")
        name = node.child_by_field_name("name")
        if application is not None:
            name = _child(application, "identifier")
        annotations, documentation = self.header(node, name)
        modifiers = frozenset(
            c.type for c in node.children if c.start_byte < name.start_byte and c.type in _CLASS_MODIFIERS
        )

        superclass: TypeRef | None = None
        mixins: tuple[TypeRef, ...] = ()
        interfaces: tuple[TypeRef, ...] = ()
        constructors: tuple[ConstConstructor, ...] = ()

        if application is not None:
            # Mixin application: class A = B with C;
            applied = _child(application, "mixin_application")
            superclass = _first(_type_refs(applied.children))
            mixins = _type_refs(_child_nodes(applied, "mixins"))
            interfaces = _type_refs(_child_nodes(applied, "interfaces"))
        else:
            extends = node.child_by_field_name("superclass")
            if extends is not None:
                if any(c.type == "extends" for c in extends.children):
                    superclass = _first(_type_refs(extends.children))
                mixins = _type_refs(_child_nodes(extends, "mixins"))
            implements = node.child_by_field_name("interfaces")
            if implements is not None:
                interfaces = _type_refs(implements.children)
            body = node.child_by_field_name("body")
            if body is not None:
                constructors = _const_constructors(body, _text(name))

        return Declaration(
            kind=DeclarationKind.CLASS,
            name=_text(name),
            line=_line(name),
            modifiers=modifiers,
            superclass=superclass,
            mixins=mixins,
            interfaces=interfaces,
            annotations=annotations,
            documentation=documentation,
            constructors=constructors,
        )

    def read_mixin(self, node: Node) -> Declaration:
        name = _child(node, "identifier")
        annotations, documentation = self.header(node, name)
        modifiers = frozenset(
            c.type for c in node.children if c.start_byte < name.start_byte and c.type in _CLASS_MODIFIERS - {"mixin"}
        )

        on_types: tuple[TypeRef, ...] = ()
        children = node.children
        on = next((i for i, c in enumerate(children) if c.type == "on"), None)
        if on is not None:
            on_types = _type_refs(c for c in children[on + 1 :] if c.type not in ("interfaces", "class_body"))

        return Declaration(
            kind=DeclarationKind.MIXIN,
            name=_text(name),
            line=_line(name),
            modifiers=modifiers,
            on_types=on_types,
            interfaces=_type_refs(_child_nodes(node, "interfaces")),
            annotations=annotations,
            documentation=documentation,
        )

    def read_named(self, node: Node, kind: DeclarationKind) -> Declaration:
        """Read a declaration that only contributes its name."""
        name = node.child_by_field_name("name")
        annotations, documentation = self.header(node, name)
        return Declaration(
            kind=kind,
            name=_text(name),
            line=_line(name),
            modifiers=self.member_modifiers(),
            annotations=annotations,
            documentation=documentation,
        )

    def read_typedef(self, node: Node) -> Declaration:
        children = _significant(node.children)
        equals = next((i for i, c in enumerate(children) if c.type == "="), None)
        aliased: TypeRef | None = None
        if equals is not None:
            name = _child(node, "type_identifier")
            target = [c for c in children[equals + 1 :] if c.type != ";"]
            if target and all(c.type in ("type_identifier", ".", "type_arguments", "nullable_type") for c in target):
                aliased = _first(_type_refs(target))
        else:
            # Legacy function typedef: typedef void Callback(int value);
            names = [c for c in children if c.type == "type_identifier"]
            if not names:
                raise DartSyntaxError("typedef without a name", _line(node))
            name = names[-1]

        annotations, documentation = self.header(node, name)
        return Declaration(
            kind=DeclarationKind.TYPEDEF,
            name=_text(name),
            line=_line(name),
            aliased=aliased,
            annotations=annotations,
            documentation=documentation,
        )

    def read_variables(self, node: Node, item_type: str) -> None:
        annotations, documentation = self.header(node, None)
        modifiers = self.member_modifiers()
        for item in node.named_children:
            if item.type != item_type:
                continue
            name = _child(item, "identifier")
            self.unit.declarations.append(
                Declaration(
                    kind=DeclarationKind.VARIABLE,
                    name=_text(name),
                    line=_line(name),
                    modifiers=modifiers,
                    annotations=annotations,
                    documentation=documentation,
                    initializer=_after(item, "="),
                )
            )
        self.pending.clear()

    def read_extension_type(self, node: Node) -> None:
        # The grammar predates extension types and recovers them as an error
        # node starting with ``extension type``.
        name = _extension_type_name(node)
        if name is None:
            raise DartSyntaxError(f"unexpected '{_snippet(node)}'", _line(node))
        annotations, documentation = self.header(node, name)
        self.add(
            Declaration(
                kind=DeclarationKind.EXTENSION_TYPE,
                name=_text(name),
                line=_line(name),
                annotations=annotations,
                documentation=documentation,
            )
        )

    def header(self, node: Node, name: Node | None) -> tuple[tuple[RawAnnotation, ...], str | None]:
        """Collect annotations and the doc comment written before ``name``."""
        leading = list(self.pending)
        if name is not None:
            leading += [c for c in node.children if c.end_byte <= name.start_byte]
        annotations = tuple(_annotation(c) for c in leading if c.type == "annotation")
        return annotations, _documentation(leading)

    def member_modifiers(self) -> frozenset[str]:
        return frozenset(_MEMBER_MODIFIERS[n.type] for n in self.pending if n.type in _MEMBER_MODIFIERS)


# Syntax errors


def _check_syntax(root: Node) -> None:
    """Raise on the first error or missing node outside tolerated subtrees."""
    stack = [root]
    while stack:
        node = stack.pop()
        if not node.has_error or node.type in _TOLERATED_ERRORS:
            continue
        if node.is_missing:
            raise DartSyntaxError(f"missing '{node.type}'", _line(node))
        if node.is_error:
            if _extension_type_name(node) is not None:
                continue
            raise DartSyntaxError(f"unexpected '{_snippet(node)}'", _line(node))
        stack.extend(reversed(node.children))


def _extension_type_name(node: Node) -> Node | None:
    """Name of an ``extension type`` the grammar recovered as an error node."""
    leaves = _leaves(node)
    first = next(leaves, None)
    second = next(leaves, None)
    if first is None or first.type != "extension" or second is None or _text(second) != "type":
        return None
    name: Node | None = None
    for leaf in leaves:
        if leaf.type == "(":
            break
        if leaf.type == "identifier":
            name = leaf
    return name


def _leaves(node: Node) -> Iterator[Node]:
    if not node.children:
        yield node
    for child in node.children:
        yield from _leaves(child)


# Annotations and docs


def _annotation(node: Node) -> RawAnnotation:
    name = node.child_by_field_name("name")
    parts = tuple("".join(_text(name).split()).split("."))
    arguments_node = _child(node, "arguments")
    arguments = None if arguments_node is None else _arguments(arguments_node)
    return RawAnnotation(parts, arguments, _line(node))


def _arguments(node: Node) -> tuple[Argument, ...]:
    arguments: list[Argument] = []
    for child in node.named_children:
        if child.type == "argument":
            arguments.append(Argument(tuple(_significant(child.children))))
        elif child.type == "named_argument":
            label = _child(child, "label")
            arguments.append(
                Argument(
                    tuple(c for c in _significant(child.children) if c.type != "label"),
                    name=_text(_child(label, "identifier")),
                )
            )
    return tuple(arguments)


def _documentation(nodes: list[Node]) -> str | None:
    """Return the last documentation comment among ``nodes``.

    Consecutive ``///`` lines form one comment. A plain comment or annotation
    ends the run but does not discard it.
    """
    runs: list[list[str]] = []
    in_run = False
    for node in nodes:
        if node.type == "documentation_comment":
            text = _text(node).rstrip("\r\n")
            if text.startswith("/**"):
                runs.append([text])
                in_run = False
            elif in_run:
                runs[-1].append(text)
            else:
                runs.append([text])
                in_run = True
        else:
            in_run = False
    return "\n".join(line.rstrip("\r") for line in runs[-1]) if runs else None


# Constructors


def _const_constructors(body: Node, class_name: str) -> tuple[ConstConstructor, ...]:
    constructors: list[ConstConstructor] = []
    for declaration in body.named_children:
        if declaration.type != "declaration":
            continue
        signature = _child(declaration, "constant_constructor_signature")
        if signature is None:
            continue
        names = [c for c in signature.named_children if c.type == "identifier"]
        if not names or _text(names[0]) != class_name:
            continue
        parameters = _child(signature, "formal_parameter_list")
        constructors.append(
            ConstConstructor(
                name=_text(names[1]) if len(names) > 1 else None,
                parameters=_parameters(parameters) if parameters is not None else (),
                initializers=_initializers(_child(declaration, "initializers")),
            )
        )
    return tuple(constructors)


def _parameters(node: Node) -> tuple[Parameter, ...]:
    parameters: list[Parameter] = []
    for child in node.named_children:
        if child.type == "formal_parameter":
            parameters.append(_parameter(child, "positional", None))
        elif child.type == "optional_formal_parameters":
            kind = "named" if child.children[0].type == "{" else "optional"
            parameters.extend(_optional_parameters(child, kind))
    return tuple(parameters)


def _optional_parameters(node: Node, kind: str) -> Iterator[Parameter]:
    current: Node | None = None
    default: list[Node] | None = None
    for child in _significant(node.children):
        if child.type == "formal_parameter":
            current, default = child, None
        elif child.type in ("=", ":") and current is not None:
            default = []
        elif child.type in (",", "]", "}"):
            if current is not None:
                yield _parameter(current, kind, tuple(default) if default is not None else None)
            current, default = None, None
        elif default is not None:
            default.append(child)


def _parameter(node: Node, kind: str, default: Expression | None) -> Parameter:
    field = _child(node, "constructor_param")
    if field is not None:
        field_name = _text(_child(field, "identifier"))
        return Parameter(name=field_name, kind=kind, field_name=field_name, default=default)

    super_parameter = _child(node, "super_formal_parameter")
    if super_parameter is not None:
        return Parameter(name=_text(_child(super_parameter, "identifier")), kind=kind, default=default)

    name = node.child_by_field_name("name")
    if name is None:
        # Function-typed parameters such as ``void cb(int x)`` carry no name field.
        identifiers = [c for c in node.named_children if c.type == "identifier"]
        if not identifiers:
            raise DartSyntaxError("parameter without a name", _line(node))
        name = identifiers[-1]
    return Parameter(name=_text(name), kind=kind, default=default)


def _initializers(node: Node | None) -> tuple[tuple[str, Expression], ...]:
    if node is None:
        return ()
    initializers: list[tuple[str, Expression]] = []
    for entry in node.named_children:
        field = _child(entry, "field_initializer")
        if field is None:
            continue
        children = _significant(field.children)
        equals = next(i for i, c in enumerate(children) if c.type == "=")
        name = [c for c in children[:equals] if c.type == "identifier"][-1]
        initializers.append((_text(name), tuple(children[equals + 1 :])))
    return tuple(initializers)


# Helpers


def _type_refs(nodes) -> tuple[TypeRef, ...]:
    """Read ``A, p.B<T>, C?`` from sibling nodes; type arguments are dropped."""
    refs: list[TypeRef] = []
    names: list[str] = []
    for node in nodes:
        if node.type == "type_identifier":
            names.append(_text(node))
        elif node.type == ",":
            refs.extend(_type_ref(names))
            names = []
    refs.extend(_type_ref(names))
    return tuple(refs)


def _type_ref(names: list[str]) -> list[TypeRef]:
    if len(names) == 1:
        return [TypeRef(names[0])]
    if len(names) == 2:
        return [TypeRef(names[1], names[0])]
    return []


def _first(refs: tuple[TypeRef, ...]) -> TypeRef | None:
    return refs[0] if refs else None


def _uri(node: Node) -> str:
    uri = _child(node, "uri")
    if uri is None:
        uri = _child(_child(node, "configurable_uri"), "uri")
    literal = _child(uri, "string_literal")
    try:
        return string_value(literal)
    except ConstantEvaluationError as e:
        raise DartSyntaxError(f"URIs cannot use string interpolation: {_text(literal)}", _line(literal)) from e


def _after(node: Node, token: str) -> Expression | None:
    children = _significant(node.children)
    for i, child in enumerate(children):
        if child.type == token:
            return tuple(children[i + 1 :])
    return None


def _child(node: Node, kind: str) -> Node | None:
    for child in node.children:
        if child.type == kind:
            return child
    return None


def _child_nodes(node: Node, kind: str) -> list[Node]:
    child = _child(node, kind)
    return child.children if child is not None else []


def _significant(nodes: list[Node]) -> list[Node]:
    return [n for n in nodes if not n.is_extra]


def _text(node: Node) -> str:
    return node.text.decode()


def _snippet(node: Node) -> str:
    lines = _text(node).strip().splitlines()
    return lines[0][:40] if lines else node.type


def _line(node: Node) -> int:
    return node.start_point[0] + 1
