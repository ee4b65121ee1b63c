"""Select the classes that descend from the root type."""

from typing import Iterable

from .analysis.models import ResolvedClass


def is_cataloged(cls: ResolvedClass, root_type: ResolvedClass) -> bool:
    """Return True for public, non-mixin classes that have ``root_type`` as a supertype."""
    if cls.is_mixin:
        return False
    if root_type.key not in cls.all_supertypes:
        return False
    return not cls.name.startswith("_")


def select_subtypes(classes: Iterable[ResolvedClass], root_type: ResolvedClass) -> list[ResolvedClass]:
    """Filter ``classes`` down to cataloged subtypes, preserving input order.

    The supertype set is non-reflexive, so ``root_type`` itself is never selected.
    """
    return [cls for cls in classes if is_cataloged(cls, root_type)]
