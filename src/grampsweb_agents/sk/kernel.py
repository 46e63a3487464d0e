"""Semantic Kernel setup and configuration."""

import os
from dataclasses import dataclass

from semantic_kernel import Kernel
from semantic_kernel.connectors.ai.open_ai import OpenAIChatCompletion

from grampsweb_agents.config import GrampsConfig
from grampsweb_agents.gramps.client import GrampsWebClient
from grampsweb_agents.sk.plugins.gramps import GrampsPlugin


@dataclass
class KernelConfig:
    """Configuration for the SK Kernel."""

    openai_api_key: str | None = None
    openai_model_id: str = "gpt-4o"

    def __post_init__(self):
        self.openai_api_key = self.openai_api_key or os.getenv("OPENAI_API_KEY")


def create_kernel(
    client: GrampsWebClient | None = None,
    gramps_config: GrampsConfig | None = None,
    config: KernelConfig | None = None,
) -> Kernel:
    """Create a Kernel with the Gramps plugin registered as ``gramps``.

    The client is built from ``gramps_config`` (or the environment) when not
    given; the caller owns it and should close it when done.
    """
    if config is None:
        config = KernelConfig()
    if client is None:
        client = GrampsWebClient(gramps_config or GrampsConfig.from_env())

    kernel = Kernel()
    _configure_llm_services(kernel, config)
    kernel.add_plugin(GrampsPlugin(client), plugin_name="gramps")
    return kernel


def _configure_llm_services(kernel: Kernel, config: KernelConfig) -> None:
    """Configure LLM services on the kernel."""
    if config.openai_api_key:
        kernel.add_service(
            OpenAIChatCompletion(
                service_id="chat",
                ai_model_id=config.openai_model_id,
                api_key=config.openai_api_key,
            )
        )
