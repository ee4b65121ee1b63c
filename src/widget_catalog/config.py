"""Configuration management for the widget catalog generator."""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


DEFAULT_IGNORED_DIRS = [
    ".dart_tool",
    ".git",
    ".pub",
    ".pub-cache",
    "build",
]

DEFAULT_PACKAGE_SUBDIR = "packages/flutter/lib"
DEFAULT_OUTPUT_PATH = "resources/catalog/widgets.json"
DEFAULT_ROOT_LIBRARY_URI = "package:flutter/src/widgets/framework.dart"
DEFAULT_TOOL_ROOT_NAME = "tools_metadata"


class Config(BaseModel):
    """Application configuration."""

    # SDK Settings
    flutter_sdk_path: Optional[Path] = Field(default=None)
    package_subdir: str = Field(default=DEFAULT_PACKAGE_SUBDIR)

    # Analysis Settings
    root_library_uri: str = Field(default=DEFAULT_ROOT_LIBRARY_URI)
    root_type_name: str = Field(default="Widget")
    summary_annotation: str = Field(default="Summary")
    category_annotation: str = Field(default="Category")
    ignored_dirs: list[str] = Field(default_factory=lambda: DEFAULT_IGNORED_DIRS.copy())
    workers: int = Field(default=1)

    # Output Settings
    output_path: Path = Field(default=Path(DEFAULT_OUTPUT_PATH))
    tool_root_name: str = Field(default=DEFAULT_TOOL_ROOT_NAME)  # empty disables the cwd check

    @property
    def package_path(self) -> Optional[Path]:
        """Directory scanned for widgets, ``<sdk>/packages/flutter/lib``."""
        if self.flutter_sdk_path is None:
            return None
        return (self.flutter_sdk_path / self.package_subdir).absolute()

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        def _parse_int(value: Optional[str], fallback: int) -> int:
            try:
                return int(value) if value is not None else fallback
            except ValueError:
                return fallback

        ignored_dirs = DEFAULT_IGNORED_DIRS.copy()
        extra_ignored = os.getenv("IGNORED_DIRS")
        if extra_ignored:
            ignored_dirs.extend(
                [entry.strip() for entry in extra_ignored.split(",") if entry.strip()]
            )

        sdk_env = os.getenv("FLUTTER_SDK_PATH") or os.getenv("FLUTTER_ROOT")
        output_env = os.getenv("CATALOG_OUTPUT")

        return cls(
            flutter_sdk_path=Path(sdk_env) if sdk_env else None,
            package_subdir=os.getenv("FLUTTER_PACKAGE_SUBDIR", DEFAULT_PACKAGE_SUBDIR),
            root_library_uri=os.getenv("ROOT_LIBRARY_URI", DEFAULT_ROOT_LIBRARY_URI),
            root_type_name=os.getenv("ROOT_TYPE_NAME", "Widget"),
            summary_annotation=os.getenv("SUMMARY_ANNOTATION", "Summary"),
            category_annotation=os.getenv("CATEGORY_ANNOTATION", "Category"),
            ignored_dirs=ignored_dirs,
            workers=_parse_int(os.getenv("CATALOG_WORKERS"), 1),
            output_path=Path(output_env) if output_env else Path(DEFAULT_OUTPUT_PATH),
            tool_root_name=os.getenv("TOOL_ROOT_NAME", DEFAULT_TOOL_ROOT_NAME),
        )
