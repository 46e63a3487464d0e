"""Tests for relationship labels."""
from __future__ import annotations

import pytest

from grampsweb_agents.gramps.relationships import Direction, ParentRole, relationship_label


class TestRelationshipLabel:
    """Tests for relationship_label."""

    @pytest.mark.parametrize(
        "distance,role,expected",
        [
            (1, ParentRole.FATHER, "Father"),
            (1, ParentRole.MOTHER, "Mother"),
            (1, ParentRole.UNKNOWN, "Parent"),
            (2, ParentRole.FATHER, "Grandfather"),
            (2, ParentRole.MOTHER, "Grandmother"),
            (3, ParentRole.FATHER, "3x Great-Grandfather"),
            (3, ParentRole.MOTHER, "3x Great-Grandmother"),
            (7, ParentRole.MOTHER, "7x Great-Grandmother"),
            (10, ParentRole.FATHER, "10x Great-Grandfather"),
        ],
    )
    def test_ancestors(self, distance, role, expected):
        assert relationship_label(Direction.ANCESTORS, distance, role) == expected

    def test_ancestor_without_role(self):
        assert relationship_label(Direction.ANCESTORS, 2) == "Grandparent"

    @pytest.mark.parametrize(
        "distance,expected",
        [(1, "Child"), (2, "Grandchild"), (3, "3x Great-Grandchild"), (5, "5x Great-Grandchild")],
    )
    def test_descendants(self, distance, expected):
        assert relationship_label(Direction.DESCENDANTS, distance) == expected

    def test_descendant_labels_ignore_role(self):
        assert relationship_label(Direction.DESCENDANTS, 1, ParentRole.FATHER) == "Child"

    @pytest.mark.parametrize("direction", list(Direction))
    def test_self(self, direction):
        assert relationship_label(direction, 0) == "Self"
