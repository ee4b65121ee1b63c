"""Core data models for the widget catalog."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class VersionInfo(BaseModel):
    """Framework version stamped into the catalog."""

    version: str
    channel: str


class CatalogEntry(BaseModel):
    """Metadata for one cataloged widget class."""

    name: str
    parent: Optional[str] = None
    library: str
    abstract: bool = False
    categories: Optional[List[str]] = None
    description: str = ""

    def to_json(self) -> Dict[str, Any]:
        """Serialize with the optional keys omitted.

        ``parent`` and ``categories`` are left out when unset and ``abstract``
        only appears when it is true. ``description`` is always present.
        """
        data: Dict[str, Any] = {"name": self.name}
        if self.parent is not None:
            data["parent"] = self.parent
        data["library"] = self.library
        if self.abstract:
            data["abstract"] = True
        if self.categories is not None:
            data["categories"] = list(self.categories)
        data["description"] = self.description
        return data


class Catalog(BaseModel):
    """The complete catalog document."""

    flutter: VersionInfo
    widgets: List[CatalogEntry] = Field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "flutter": {"version": self.flutter.version, "channel": self.flutter.channel},
            "widgets": [entry.to_json() for entry in self.widgets],
        }
