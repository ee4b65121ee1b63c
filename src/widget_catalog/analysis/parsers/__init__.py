"""Dart source parsing."""

from .dart_parser import DartParser

__all__ = ["DartParser"]
