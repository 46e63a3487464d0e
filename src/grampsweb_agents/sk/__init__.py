"""Semantic Kernel integration for Gramps Web Agents."""

from grampsweb_agents.sk.kernel import KernelConfig, create_kernel

__all__ = ["create_kernel", "KernelConfig"]
