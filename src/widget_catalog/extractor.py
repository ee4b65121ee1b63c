"""Catalog metadata extraction from resolved classes."""

import logging
from typing import Any, Optional
from urllib.parse import urlparse

from .analysis.models import ResolvedClass
from .errors import ConstantEvaluationError, MetadataError
from .models import CatalogEntry

logger = logging.getLogger(__name__)


def single_line(docs: Optional[str]) -> str:
    """Condense a documentation comment to its first paragraph on one line.

    Args:
        docs: Raw documentation comment including its ``///`` markers

    Returns:
        Lines up to the first blank one, joined with single spaces
    """
    if docs is None:
        return ""

    lines = []
    for line in docs.split("\n"):
        if line.startswith("/// "):
            line = line[4:]
        elif line == "///":
            line = ""
        line = line.rstrip()
        if not line:
            break
        lines.append(line)
    return " ".join(lines)


class MetadataExtractor:
    """Builds catalog entries from resolved widget classes."""

    def __init__(self, summary_annotation: str = "Summary", category_annotation: str = "Category"):
        """Initialize extractor.

        Args:
            summary_annotation: Annotation type whose ``text`` field overrides the doc comment
            category_annotation: Annotation type whose ``sections`` field lists categories
        """
        self.summary_annotation = summary_annotation
        self.category_annotation = category_annotation

    def extract(self, cls: ResolvedClass, root_type: ResolvedClass) -> CatalogEntry:
        """Extract the catalog entry for one class.

        Args:
            cls: Selected widget class
            root_type: The root class of the hierarchy

        Returns:
            CatalogEntry for ``cls``

        Raises:
            MetadataError: a recognized annotation is malformed or the library path is unusable
        """
        summary = self._summary(cls)
        return CatalogEntry(
            name=cls.name,
            parent=None if cls.key == root_type.key else cls.supertype.name,
            library=self._library_name(cls),
            abstract=cls.is_abstract,
            categories=self._categories(cls),
            description=summary if summary is not None else single_line(cls.documentation_comment),
        )

    def _library_name(self, cls: ResolvedClass) -> str:
        # flutter/src/material/about.dart -> material
        segments = urlparse(cls.library_uri).path.split("/")
        if len(segments) < 3:
            raise MetadataError(
                f"{cls.name}: cannot derive a library name from '{cls.library_uri}'"
            )
        return segments[2]

    def _summary(self, cls: ResolvedClass) -> Optional[str]:
        value = self._field(cls, self.summary_annotation, "text")
        if value is None:
            return None
        if not isinstance(value, str):
            raise MetadataError(
                f"{cls.name}: @{self.summary_annotation} field 'text' must be a string"
            )
        return value.strip()

    def _categories(self, cls: ResolvedClass) -> Optional[list[str]]:
        value = self._field(cls, self.category_annotation, "sections")
        if value is None:
            return None
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise MetadataError(
                f"{cls.name}: @{self.category_annotation} field 'sections' must be a list of strings"
            )
        return list(value)

    def _field(self, cls: ResolvedClass, annotation_name: str, field_name: str) -> Any:
        """Read a field of the first matching annotation, or None when there is none."""
        annotations = cls.annotations_named(annotation_name)
        if not annotations:
            return None

        try:
            value = annotations[0].get_field(field_name)
        except KeyError:
            raise MetadataError(
                f"{cls.name}: @{annotation_name} has no '{field_name}' field"
            ) from None
        except ConstantEvaluationError as e:
            raise MetadataError(
                f"{cls.name}: @{annotation_name} field '{field_name}' is not constant: {e}"
            ) from e

        if value is None:
            raise MetadataError(f"{cls.name}: @{annotation_name} field '{field_name}' is null")
        logger.debug("%s: @%s.%s = %r", cls.name, annotation_name, field_name, value)
        return value
