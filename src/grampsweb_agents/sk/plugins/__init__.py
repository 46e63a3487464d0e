"""Semantic Kernel plugins for Gramps Web Agents."""
from __future__ import annotations

from grampsweb_agents.sk.plugins.gramps import GrampsPlugin

__all__ = ["GrampsPlugin"]
