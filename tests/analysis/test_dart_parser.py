"""Tests for the tree-sitter based Dart declaration parser."""

import pytest
from widget_catalog.analysis.models import DeclarationKind, TypeRef
from widget_catalog.analysis.parsers import DartParser
from widget_catalog.errors import DartSyntaxError


def _text(node):
    return node.text.decode()


SAMPLE_DART = """\
// Copyright header.

/// Library docs.
library;

import 'dart:ui' as ui show Color, Offset;
import 'package:flutter/foundation.dart' hide Summary;
import 'src/io.dart' if (dart.library.html) 'src/web.dart';
export 'src/basic.dart' show Padding;

part 'src/part.dart';

const String kGreeting = 'hello', kOther = 'world';
final List<int> numbers = <int>[1, 2, 3];
int _counter = 0;

typedef WidgetBuilder = Widget Function(BuildContext context);
typedef Alias = Base;
typedef void LegacyCallback(int value);

/// Builds things.
Widget build<T extends Object>(BuildContext context, {required T value}) {
  return Container();
}

String get greeting => kGreeting;

enum Mode with Describable { light, dark; const Mode(); }

extension StringX on String {
  String shout() => toUpperCase();
}

extension on int {}

extension type const Meters(double value) implements Object {}

/// Base docs.
@immutable
abstract base class Base<T> extends Object with Mixin1, Mixin2<T> implements ui.Color, Comparable<Base<T>> {
  const Base(this.first, [this.second = 2, int? ignored]) : third = first, assert(first != null);
  const Base.named({this.first = 'a', String? other}) : second = other;

  Base.notConst();

  final String first;
  final Object? second;
  final String third;

  @override
  int compareTo(Base<T> other) => 0;
}

mixin Mixin1 on Base<Object>, Other implements Iface {}

base mixin Mixin2<T> {}

mixin class Both {}

sealed class Shape {}

class Application = Base with Mixin1;
"""


class TestDartParserDirectives:
    def setup_method(self):
        self.unit = DartParser().parse(SAMPLE_DART, "sample.dart")

    def test_imports(self):
        imports = [d for d in self.unit.directives if d.keyword == "import"]
        assert [d.uri for d in imports] == [
            "dart:ui",
            "package:flutter/foundation.dart",
            "src/io.dart",
        ]

    def test_prefix_and_combinators(self):
        ui = self.unit.directives[0]
        assert ui.prefix == "ui"
        assert ui.show == ("Color", "Offset")

        foundation = self.unit.directives[1]
        assert foundation.show is None
        assert foundation.hide == ("Summary",)

    def test_export_and_part(self):
        keywords = [(d.keyword, d.uri) for d in self.unit.directives[3:]]
        assert keywords == [("export", "src/basic.dart"), ("part", "src/part.dart")]
        assert self.unit.is_part is False

    def test_part_of(self):
        unit = DartParser().parse("part of 'basic.dart';\n\nclass A {}\n")
        assert unit.is_part is True
        assert unit.part_of.uri == "basic.dart"

    def test_legacy_part_of_library_name(self):
        unit = DartParser().parse("part of my.library;\n")
        assert unit.is_part is True
        assert unit.part_of.uri is None


class TestDartParserDeclarations:
    def setup_method(self):
        self.unit = DartParser().parse(SAMPLE_DART, "sample.dart")
        self.by_name = {d.name: d for d in self.unit.declarations}

    def test_declaration_kinds(self):
        kinds = {d.name: d.kind for d in self.unit.declarations}
        assert kinds["kGreeting"] is DeclarationKind.VARIABLE
        assert kinds["kOther"] is DeclarationKind.VARIABLE
        assert kinds["numbers"] is DeclarationKind.VARIABLE
        assert kinds["_counter"] is DeclarationKind.VARIABLE
        assert kinds["WidgetBuilder"] is DeclarationKind.TYPEDEF
        assert kinds["LegacyCallback"] is DeclarationKind.TYPEDEF
        assert kinds["build"] is DeclarationKind.FUNCTION
        assert kinds["greeting"] is DeclarationKind.FUNCTION
        assert kinds["Mode"] is DeclarationKind.ENUM
        assert kinds["StringX"] is DeclarationKind.EXTENSION
        assert kinds["Meters"] is DeclarationKind.EXTENSION_TYPE
        assert kinds["Base"] is DeclarationKind.CLASS
        assert kinds["Mixin1"] is DeclarationKind.MIXIN
        assert kinds["Both"] is DeclarationKind.CLASS

    def test_unnamed_extension_is_skipped(self):
        names = [d.name for d in self.unit.declarations]
        assert "on" not in names
        assert "int" not in names

    def test_declaration_order(self):
        names = [d.name for d in self.unit.declarations]
        assert names.index("Base") < names.index("Mixin1") < names.index("Application")

    def test_const_variables_keep_initializers(self):
        greeting = self.by_name["kGreeting"]
        assert greeting.is_const
        assert [_text(n) for n in greeting.initializer] == ["'hello'"]
        assert self.by_name["_counter"].modifiers == frozenset()
        assert self.by_name["kOther"].is_const
        assert not self.by_name["numbers"].is_const

    def test_typedef_alias(self):
        assert self.by_name["Alias"].aliased == TypeRef("Base")
        assert self.by_name["WidgetBuilder"].aliased is None

    def test_class_clauses(self):
        base = self.by_name["Base"]
        assert base.superclass == TypeRef("Object")
        assert base.mixins == (TypeRef("Mixin1"), TypeRef("Mixin2"))
        assert base.interfaces == (TypeRef("Color", "ui"), TypeRef("Comparable"))
        assert base.modifiers == frozenset({"abstract", "base"})
        assert base.is_abstract

    def test_class_documentation_before_annotation(self):
        base = self.by_name["Base"]
        assert base.documentation == "/// Base docs."
        assert [a.parts for a in base.annotations] == [("immutable",)]
        assert base.annotations[0].arguments is None

    def test_function_documentation(self):
        assert self.by_name["build"].documentation == "/// Builds things."

    def test_mixin_clauses(self):
        mixin = self.by_name["Mixin1"]
        assert mixin.on_types == (TypeRef("Base"), TypeRef("Other"))
        assert mixin.interfaces == (TypeRef("Iface"),)
        assert self.by_name["Mixin2"].modifiers == frozenset({"base"})

    def test_mixin_class_is_a_class(self):
        both = self.by_name["Both"]
        assert both.kind is DeclarationKind.CLASS
        assert "mixin" in both.modifiers

    def test_sealed_is_abstract(self):
        assert self.by_name["Shape"].is_abstract

    def test_mixin_application(self):
        app = self.by_name["Application"]
        assert app.superclass == TypeRef("Base")
        assert app.mixins == (TypeRef("Mixin1"),)
        assert not app.is_abstract


class TestConstConstructors:
    def setup_method(self):
        unit = DartParser().parse(SAMPLE_DART, "sample.dart")
        self.base = next(d for d in unit.declarations if d.name == "Base")

    def test_only_const_constructors_are_kept(self):
        assert [c.name for c in self.base.constructors] == [None, "named"]

    def test_positional_parameters(self):
        ctor = self.base.constructor(None)
        params = [(p.name, p.kind, p.field_name) for p in ctor.parameters]
        assert params == [
            ("first", "positional", "first"),
            ("second", "optional", "second"),
            ("ignored", "optional", None),
        ]
        assert [_text(n) for n in ctor.parameters[1].default] == ["2"]
        assert ctor.parameters[0].default is None

    def test_initializers(self):
        ctor = self.base.constructor(None)
        # The assert entry is not a field initializer.
        assert [(name, [_text(n) for n in expression]) for name, expression in ctor.initializers] == [
            ("third", ["first"])
        ]

    def test_named_parameters(self):
        ctor = self.base.constructor("named")
        params = [(p.name, p.kind, p.field_name) for p in ctor.parameters]
        assert params == [("first", "named", "first"), ("other", "named", None)]
        assert [_text(n) for n in ctor.parameters[0].default] == ["'a'"]
        assert [name for name, _ in ctor.initializers] == ["second"]


class TestAnnotations:
    def test_annotation_forms(self):
        source = """\
@a
@b.c
@p.D.named(1, key: 'v')
@Summary('Text', )
class A {}
"""
        declaration = DartParser().parse(source).declarations[0]
        parts = [a.parts for a in declaration.annotations]
        assert parts == [("a",), ("b", "c"), ("p", "D", "named"), ("Summary",)]

        args = declaration.annotations[2].arguments
        assert [a.name for a in args] == [None, "key"]
        assert [_text(n) for n in args[1].value] == ["'v'"]
        assert len(declaration.annotations[3].arguments) == 1

    def test_list_argument_with_type_arguments(self):
        declaration = DartParser().parse("@Category(<String>['A', 'B'])\nclass A {}\n").declarations[0]
        (argument,) = declaration.annotations[0].arguments
        assert [n.type for n in argument.value] == ["list_literal"]

    def test_doc_between_annotation_and_class(self):
        declaration = DartParser().parse("@a\n/// Docs.\nclass A {}\n").declarations[0]
        assert declaration.documentation == "/// Docs."


class TestDartParserErrors:
    @pytest.mark.parametrize(
        "source",
        [
            "class A {",
            "class A extends {}",
            "import foo;",
            "const x = ;",
        ],
    )
    def test_malformed_sources_raise(self, source):
        with pytest.raises(DartSyntaxError):
            DartParser().parse(source)

    def test_error_reports_line(self):
        with pytest.raises(DartSyntaxError) as exc_info:
            DartParser().parse("class A {}\n\nclass B {\n")
        assert exc_info.value.line == 3
        assert "line 3" in str(exc_info.value)

    def test_errors_inside_function_bodies_are_tolerated(self):
        unit = DartParser().parse("void f() { ( }\n\nclass A {}\n")
        assert [d.name for d in unit.declarations] == ["f", "A"]

    def test_library_directive_without_name(self):
        unit = DartParser().parse("library;\n\nclass A {}\n")
        assert unit.directives == []
        assert [d.name for d in unit.declarations] == ["A"]


class TestDocumentationComments:
    def test_plain_comment_keeps_earlier_doc(self):
        source = "/// Class doc.\n// plain\nclass Lingers {}\n"
        declaration = DartParser().parse(source).declarations[0]
        assert declaration.documentation == "/// Class doc."

    def test_doc_after_annotation_wins_over_block_doc(self):
        source = "/** Block doc. */\n@Summary(text: 'x')\n/// Inner doc.\nclass Inner {}\n"
        declaration = DartParser().parse(source).declarations[0]
        assert declaration.documentation == "/// Inner doc."
        assert [a.parts for a in declaration.annotations] == [("Summary",)]

    def test_block_doc(self):
        declaration = DartParser().parse("/** Block doc. */\nclass A {}\n").declarations[0]
        assert declaration.documentation == "/** Block doc. */"

    def test_multi_line_doc(self):
        declaration = DartParser().parse("/// One.\n///\n/// Two.\nclass A {}\n").declarations[0]
        assert declaration.documentation == "/// One.\n///\n/// Two."

    def test_doc_does_not_leak_into_next_declaration(self):
        unit = DartParser().parse("/// First.\nconst a = 1;\nclass B {}\n")
        assert unit.declarations[0].documentation == "/// First."
        assert unit.declarations[1].documentation is None


class TestDirectiveForms:
    def test_deferred_import(self):
        unit = DartParser().parse("import 'x.dart' deferred as d;\n")
        (directive,) = unit.directives
        assert (directive.keyword, directive.uri, directive.prefix) == ("import", "x.dart", "d")

    def test_repeated_combinators(self):
        unit = DartParser().parse("export 'y.dart' hide A show B;\n")
        (directive,) = unit.directives
        assert directive.hide == ("A",)
        assert directive.show == ("B",)

    def test_directive_lines(self):
        unit = DartParser().parse("import 'a.dart';\n\nexport 'b.dart';\n")
        assert [d.line for d in unit.directives] == [1, 3]


class TestModifiersAndTypes:
    def test_class_modifiers(self):
        unit = DartParser().parse("final class F {}\ninterface class I {}\n")
        assert [d.modifiers for d in unit.declarations] == [frozenset({"final"}), frozenset({"interface"})]

    def test_prefixed_superclass_with_type_arguments(self):
        source = "class Inner<T extends Object?> extends p.Base<T>? implements A<B>, p.C {}\n"
        declaration = DartParser().parse(source).declarations[0]
        assert declaration.superclass == TypeRef("Base", "p")
        assert declaration.interfaces == (TypeRef("A"), TypeRef("C", "p"))

    def test_mixins_without_superclass(self):
        declaration = DartParser().parse("class W with M, N {}\n").declarations[0]
        assert declaration.superclass is None
        assert declaration.mixins == (TypeRef("M"), TypeRef("N"))

    def test_member_modifiers(self):
        unit = DartParser().parse("late final int a = 1;\nvar b = 2;\nexternal void f();\n")
        modifiers = {d.name: d.modifiers for d in unit.declarations}
        assert modifiers == {
            "a": frozenset({"late", "final"}),
            "b": frozenset({"var"}),
            "f": frozenset({"external"}),
        }

    def test_generic_and_prefixed_typedefs(self):
        unit = DartParser().parse("typedef Ali<T> = List<T>;\ntypedef Pre = p.Thing;\n")
        aliased = {d.name: d.aliased for d in unit.declarations}
        assert aliased == {"Ali": TypeRef("List"), "Pre": TypeRef("Thing", "p")}


class TestParameterForms:
    SOURCE = """\
class W {
  const W(this.a, {required this.x, super.key, @deprecated String b = 'q', void cb(int y)?, final int z = 1});
  const W.alt([int n = 1 + 2]) : this.m2 = n, super.alt();
  const factory W.f() = _W;
}
"""

    def setup_method(self):
        self.declaration = DartParser().parse(self.SOURCE).declarations[0]

    def test_redirecting_factories_are_not_const_constructors(self):
        assert [c.name for c in self.declaration.constructors] == [None, "alt"]

    def test_parameter_names(self):
        ctor = self.declaration.constructor(None)
        params = [(p.name, p.kind, p.field_name) for p in ctor.parameters]
        assert params == [
            ("a", "positional", "a"),
            ("x", "named", "x"),
            ("key", "named", None),
            ("b", "named", None),
            ("cb", "named", None),
            ("z", "named", None),
        ]

    def test_defaults(self):
        ctor = self.declaration.constructor(None)
        defaults = {p.name: p.default and [_text(n) for n in p.default] for p in ctor.parameters}
        assert defaults["b"] == ["'q'"]
        assert defaults["z"] == ["1"]
        assert defaults["x"] is None

    def test_this_initializer_and_super_call(self):
        ctor = self.declaration.constructor("alt")
        assert [(name, [_text(n) for n in expression]) for name, expression in ctor.initializers] == [
            ("m2", ["n"])
        ]
        assert [n.type for n in ctor.parameters[0].default] == ["additive_expression"]


class TestExtensionTypes:
    def test_extension_type_without_implements(self):
        unit = DartParser().parse("extension type const Id(int value) {}\n\nclass After {}\n")
        kinds = [(d.name, d.kind) for d in unit.declarations]
        assert kinds == [("Id", DeclarationKind.EXTENSION_TYPE), ("After", DeclarationKind.CLASS)]

    def test_extension_type_keeps_doc(self):
        unit = DartParser().parse("/// Meters.\nextension type const Meters(double value) implements Object {}\n")
        assert unit.declarations[0].documentation == "/// Meters."
