"""Pytest configuration and shared fixtures."""

import pytest
from pathlib import Path

from widget_catalog.analysis.context import DartAnalysisContext
from widget_catalog.config import Config


FRAMEWORK_DART = """\
// Copyright 2014 The Flutter Authors. All rights reserved.

import 'package:flutter/foundation.dart';

export 'package:flutter/foundation.dart' show Category, Summary;

/// An identifier for widgets.
class Key {
  const Key(this.value);

  final String value;
}

/// Describes the configuration for an element.
///
/// Widgets are the central class hierarchy.
abstract class Widget {
  const Widget({this.key});

  final Key? key;

  @override
  String toString() => '$runtimeType';
}

/// A widget that does not require mutable state.
abstract class StatelessWidget extends Widget {
  const StatelessWidget({super.key});
}

abstract class StatefulWidget extends Widget {
  const StatefulWidget({super.key});
}

mixin WidgetInspectorMixin on Widget {}

sealed class ProxyWidget extends Widget {
  const ProxyWidget({super.key});
}
"""

ANNOTATIONS_DART = """\
/// Marks a class with the catalog sections it belongs to.
class Category {
  const Category(this.sections);

  final List<String> sections;
}

/// A one-line description of a class for the catalog.
class Summary {
  const Summary(this.text);

  final String text;
}
"""

TEXT_DART = """\
import 'package:flutter/foundation.dart';

import 'framework.dart';

/// A run of text with a single style.
///
/// The text may break across multiple lines.
@Category(<String>['Text', 'Basics'])
@Summary('A run of text.  ')
class Text extends StatelessWidget {
  const Text(this.data, {super.key});

  final String data;

  @override
  String toString() => 'Text($data)';
}

/// Rich text spans.
class RichText extends StatelessWidget {
  const RichText({super.key});
}

class _TextLayout extends StatelessWidget {
  const _TextLayout();
}
"""

BASIC_DART = """\
import 'framework.dart';

part 'basic_align.dart';

/// A widget that insets its child
/// by the given padding.
class Padding extends StatelessWidget {
  const Padding({super.key, this.padding = 0.0});

  final double padding;
}

mixin _OpacityMixin on Widget {}

class Opacity = StatelessWidget with _OpacityMixin;
"""

BASIC_ALIGN_DART = """\
part of 'basic.dart';

/// Aligns its child within itself.
class Align extends Widget {
  const Align({super.key});
}
"""

BUTTON_DART = """\
import 'package:flutter/foundation.dart' as foundation;
import 'package:flutter/widgets.dart';

const String _kButtonSummary = 'A material design ' 'button.';
const List<String> _kSections = <String>['Material', 'Buttons'];

mixin ButtonStyleMixin on StatelessWidget {}

@foundation.Category(_kSections)
@foundation.Summary(_kButtonSummary)
abstract class ButtonStyleButton extends StatelessWidget with ButtonStyleMixin {
  const ButtonStyleButton({super.key});
}

/// A button with an elevated look.
class ElevatedButton extends ButtonStyleButton implements Comparable<ElevatedButton> {
  const ElevatedButton({super.key});

  @override
  int compareTo(ElevatedButton other) => 0;
}

/// Not a widget.
class ButtonStyle {
  const ButtonStyle();
}
"""

FLUTTER_LIB_FILES = {
    "foundation.dart": "library;\n\nexport 'src/foundation/annotations.dart';\n",
    "material.dart": "library;\n\nexport 'src/material/button.dart';\n",
    "widgets.dart": (
        "library;\n\n"
        "export 'src/widgets/basic.dart';\n"
        "export 'src/widgets/framework.dart';\n"
        "export 'src/widgets/text.dart';\n"
    ),
    "src/foundation/annotations.dart": ANNOTATIONS_DART,
    "src/material/button.dart": BUTTON_DART,
    "src/widgets/basic.dart": BASIC_DART,
    "src/widgets/basic_align.dart": BASIC_ALIGN_DART,
    "src/widgets/framework.dart": FRAMEWORK_DART,
    "src/widgets/text.dart": TEXT_DART,
    # Excluded through analysis_options.yaml; would not parse otherwise.
    "src/widgets/generated/broken.dart": "class Broken extends {\n",
}

ANALYSIS_OPTIONS = """\
analyzer:
  exclude:
    - "lib/src/widgets/generated/**"
"""


def write_files(root: Path, files: dict[str, str]) -> None:
    """Write ``files`` (relative path -> content) below ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture
def flutter_sdk(tmp_path: Path) -> Path:
    """Create a miniature Flutter SDK checkout."""
    sdk = tmp_path / "flutter"
    package = sdk / "packages" / "flutter"
    write_files(
        package,
        {
            "pubspec.yaml": "name: flutter\ndescription: A test framework.\n",
            "analysis_options.yaml": ANALYSIS_OPTIONS,
        },
    )
    write_files(package / "lib", FLUTTER_LIB_FILES)
    return sdk


@pytest.fixture
def flutter_lib(flutter_sdk: Path) -> Path:
    """The scanned library directory of the miniature SDK."""
    return (flutter_sdk / "packages" / "flutter" / "lib").resolve()


@pytest.fixture
def context(flutter_lib: Path) -> DartAnalysisContext:
    """Analysis context over the miniature SDK."""
    return DartAnalysisContext(flutter_lib)


@pytest.fixture
def tool_root(tmp_path: Path, monkeypatch) -> Path:
    """A ``tools_metadata`` working directory."""
    root = tmp_path / "tools_metadata"
    root.mkdir()
    monkeypatch.chdir(root)
    return root


@pytest.fixture
def config(flutter_sdk: Path) -> Config:
    """Provide a test configuration."""
    return Config(flutter_sdk_path=flutter_sdk)
