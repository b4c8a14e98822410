"""Configuration management for the Ark SDK.

Settings come from a YAML file (``src/config.yaml`` unless another path is
given); API keys come from the environment, optionally via a ``.env`` file.
Missing or invalid settings raise ``ValueError`` when they are first read.
"""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")
DEFAULT_PROVIDER = "ark"

# Environment variable holding each provider's API key
API_KEY_ENV_VARS = {
    "ark": "ARK_API_KEY",
    "openai": "OPENAI_API_KEY",
}

HTTP_TIMEOUT_KEYS = ("connect_timeout", "read_timeout", "write_timeout", "pool_timeout")


class Configuration:
    """YAML settings plus environment-provided secrets."""

    def __init__(self, config_path: str | None = None) -> None:
        load_dotenv()
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._read_yaml(self.config_path)

    @staticmethod
    def _read_yaml(path: str) -> dict[str, Any]:
        with open(path, encoding="utf-8") as file:
            loaded = yaml.safe_load(file)
        if not isinstance(loaded, dict):
            raise ValueError(
                f"Config file must be YAML dict, got {type(loaded).__name__}"
            )
        return loaded

    def _section(self, name: str) -> dict[str, Any]:
        return self._config.get(name) or {}

    @property
    def active_provider(self) -> str:
        """Provider selected by ``llm.active``."""
        return self._section("llm").get("active", DEFAULT_PROVIDER)

    @property
    def llm_api_key(self) -> str:
        """API key of the active provider, read from its environment variable.

        Raises:
            ValueError: For a provider without a known variable, or when the
                variable is unset or empty.
        """
        provider = self.active_provider
        env_var = API_KEY_ENV_VARS.get(provider)
        if env_var is None:
            raise ValueError(f"No API key variable known for provider '{provider}'")

        api_key = os.getenv(env_var)
        if not api_key:
            raise ValueError(
                f"{env_var} is not set; export it or add it to .env "
                f"to use provider '{provider}'"
            )
        return api_key

    def get_llm_config(self) -> dict[str, Any]:
        """Settings block of the active provider.

        Raises:
            ValueError: If the provider has no block, or the block lacks
                ``base_url`` or ``model``.
        """
        provider = self.active_provider
        providers = self._section("llm").get("providers") or {}
        if provider not in providers:
            raise ValueError(
                f"Active provider '{provider}' not found in providers config"
            )

        provider_config = providers[provider]
        missing = [key for key in ("base_url", "model") if not provider_config.get(key)]
        if missing:
            raise ValueError(
                f"llm.providers.{provider} is missing {', '.join(missing)} "
                "in config.yaml"
            )
        return provider_config

    def get_http_client_config(self) -> dict[str, Any]:
        """The active provider's ``http_client`` timeouts, in seconds.

        All four timeouts are required and must be positive numbers.
        """
        http_config = self.get_llm_config().get("http_client") or {}

        for key in HTTP_TIMEOUT_KEYS:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    f"for provider '{self.active_provider}'"
                )
            value = http_config[key]
            # bool is an int subclass; `true` is not a timeout
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise ValueError(f"http_client.{key} must be a number, got {value!r}")
            if value <= 0:
                raise ValueError(f"http_client.{key} must be positive, got {value}")

        return http_config

    def get_streaming_config(self) -> dict[str, Any]:
        streaming_config = self._section("streaming")
        if not isinstance(streaming_config.get("include_usage", False), bool):
            raise ValueError("streaming.include_usage must be true or false")
        return streaming_config

    def get_logging_config(self) -> dict[str, Any]:
        return self._section("logging")
