"""Gramps Web integration.

Authenticated access to a remote Gramps Web instance, lineage traversal
over its family graph, and formatting of results for tool callers.
"""
from __future__ import annotations

from grampsweb_agents.gramps.auth import TokenManager
from grampsweb_agents.gramps.client import ENTITY_TYPES, GrampsWebClient, normalize_entity_type
from grampsweb_agents.gramps.errors import (
    AuthenticationError,
    GrampsAPIError,
    NotFoundError,
    RequestTimeoutError,
    format_error,
)
from grampsweb_agents.gramps.lineage import (
    MAX_GENERATIONS,
    LineageEntry,
    LineageResult,
    LineageTraversal,
)
from grampsweb_agents.gramps.models import ChildRef, Event, Family, Gender, Name, Note, Person
from grampsweb_agents.gramps.relationships import Direction, ParentRole, relationship_label

__all__ = [
    "AuthenticationError",
    "ChildRef",
    "Direction",
    "ENTITY_TYPES",
    "Event",
    "Family",
    "Gender",
    "GrampsAPIError",
    "GrampsWebClient",
    "LineageEntry",
    "LineageResult",
    "LineageTraversal",
    "MAX_GENERATIONS",
    "Name",
    "Note",
    "NotFoundError",
    "ParentRole",
    "Person",
    "RequestTimeoutError",
    "TokenManager",
    "format_error",
    "normalize_entity_type",
    "relationship_label",
]
