"""Relationship names for lineage traversal results."""
from __future__ import annotations

from enum import Enum


class Direction(str, Enum):
    """Which way a lineage walk moves through the family graph."""
    ANCESTORS = "ancestors"
    DESCENDANTS = "descendants"


class ParentRole(str, Enum):
    """Role a parent holds in a family record."""
    FATHER = "father"
    MOTHER = "mother"
    UNKNOWN = "unknown"


_ANCESTOR_TERMS = {
    ParentRole.FATHER: ("Father", "Grandfather"),
    ParentRole.MOTHER: ("Mother", "Grandmother"),
    ParentRole.UNKNOWN: ("Parent", "Grandparent"),
}

_DESCENDANT_TERMS = ("Child", "Grandchild")


def relationship_label(
    direction: Direction,
    distance: int,
    role: ParentRole | None = None,
) -> str:
    """Name the relationship of a relative ``distance`` generations away.

    Descendant terms are not sex-specific. From three generations out a
    counted prefix is used, e.g. ``"3x Great-Grandmother"``.

    >>> relationship_label(Direction.ANCESTORS, 1, ParentRole.MOTHER)
    'Mother'
    >>> relationship_label(Direction.DESCENDANTS, 4)
    '4x Great-Grandchild'
    """
    if distance <= 0:
        return "Self"

    if direction == Direction.ANCESTORS:
        parent, grandparent = _ANCESTOR_TERMS[role or ParentRole.UNKNOWN]
    else:
        parent, grandparent = _DESCENDANT_TERMS

    if distance == 1:
        return parent
    if distance == 2:
        return grandparent
    return f"{distance}x Great-{grandparent}"
