"""Connection settings for a Gramps Web instance.

Environment Variables:
    GRAMPS_API_URL: Base URL of the Gramps Web instance (required)
    GRAMPS_USERNAME: Gramps Web username (required)
    GRAMPS_PASSWORD: Gramps Web password (required)
    GRAMPS_TREE_ID: Tree identifier for multi-tree deployments (optional)
    GRAMPS_TIMEOUT: Per-request timeout in seconds (default 30)

Example:
    >>> from grampsweb_agents.config import GrampsConfig
    >>> config = GrampsConfig.from_env()
    >>> config.api_url
    'https://gramps.example.com'
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_TIMEOUT = 30.0

_REQUIRED = {
    "GRAMPS_API_URL": "Base URL of your Gramps Web instance (e.g., https://gramps.example.com)",
    "GRAMPS_USERNAME": "Your Gramps Web username",
    "GRAMPS_PASSWORD": "Your Gramps Web password",
}


class ConfigError(ValueError):
    """Missing or invalid configuration."""


def _f(name: str, default: float) -> float:
    """Parse float from environment variable with fallback."""
    try:
        return float(os.getenv(name, default))
    except Exception:
        return default


def normalize_url(url: str) -> str:
    return url.strip().rstrip("/")


@dataclass(frozen=True)
class GrampsConfig:
    """Credentials and endpoint for one Gramps Web backend."""

    api_url: str
    username: str
    password: str
    tree_id: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        # frozen dataclass: bypass __setattr__ to store the normalized URL
        object.__setattr__(self, "api_url", normalize_url(self.api_url))
        if self.timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {self.timeout}")

    @property
    def token_url(self) -> str:
        """Token endpoint; always at the instance root, even for multi-tree setups."""
        return f"{self.api_url}/api/token/"

    @property
    def base_url(self) -> str:
        if self.tree_id:
            return f"{self.api_url}/api/trees/{self.tree_id}"
        return f"{self.api_url}/api"

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> GrampsConfig:
        """Load configuration from the environment (and a .env file if present).

        Raises:
            ConfigError: If any required variable is missing
        """
        if load_env_file:
            load_dotenv()

        values = {name: os.getenv(name, "").strip() for name in _REQUIRED}
        missing = [name for name, value in values.items() if not value]
        if missing:
            help_lines = "\n".join(f"  {name:<16}- {desc}" for name, desc in _REQUIRED.items())
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}\n\n"
                "Please configure the following environment variables:\n"
                f"{help_lines}"
            )

        return cls(
            api_url=values["GRAMPS_API_URL"],
            username=values["GRAMPS_USERNAME"],
            password=values["GRAMPS_PASSWORD"],
            tree_id=os.getenv("GRAMPS_TREE_ID") or None,
            timeout=_f("GRAMPS_TIMEOUT", DEFAULT_TIMEOUT),
        )
