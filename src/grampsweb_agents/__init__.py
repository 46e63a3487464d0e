"""Gramps Web Agents - genealogy tools for AI tool-calling clients.

Exposes search, create, update and lineage traversal over a Gramps Web
instance through typed operations, packaged as a Semantic Kernel plugin.
"""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    if name == "gramps":
        from grampsweb_agents import gramps
        return gramps
    if name == "sk":
        from grampsweb_agents import sk
        return sk
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
