"""Remote embeddings through LiteLLM.

Any LiteLLM embedding model works, e.g. ``ollama/nomic-embed-text`` with
``api_base=http://localhost:11434`` or ``openai/text-embedding-3-small``.
API keys come from the environment, never from config files.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import litellm

from memdex.embeddings.base import EmbeddingProvider, HealthResult
from memdex.errors import ProviderUnavailableError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_MODEL = "ollama/nomic-embed-text"

# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
}


def missing_api_key(model: str) -> str | None:
    """Return the name of the env var *model* needs but lacks, else None.

    Args:
        model: LiteLLM model string in 'provider/model' format.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)
    if env_var is None or os.getenv(env_var):
        return None
    return env_var


class RemoteProvider(EmbeddingProvider):
    """Embeds via ``litellm.aembedding`` against an HTTP model service."""

    id = "remote"

    def __init__(
        self,
        model_id: str = DEFAULT_REMOTE_MODEL,
        api_base: str | None = None,
        num_retries: int = 1,
        **kwargs: Any,
    ) -> None:
        super().__init__(model_id=model_id, **kwargs)
        self.api_base = api_base
        self.num_retries = num_retries

    @property
    def _endpoint(self) -> str:
        return self.api_base or self.model_id.split("/")[0]

    async def health_check(self) -> HealthResult:
        env_var = missing_api_key(self.model_id)
        if env_var:
            return HealthResult(
                healthy=False,
                message=f"API key not found for model '{self.model_id}'",
                resolution=f"Set the {env_var} environment variable.",
            )
        try:
            await self.embed("health check")
        except ProviderUnavailableError as exc:
            return HealthResult(
                healthy=False,
                message=f"Cannot reach embedding service at {self._endpoint}: {exc.message}",
                resolution=exc.resolution
                or f"Check that {self._endpoint} is running and serves {self.model_id}.",
            )
        return HealthResult(healthy=True)

    async def _embed_texts(self, texts: list[str]) -> list[list[float]]:
        env_var = missing_api_key(self.model_id)
        if env_var:
            raise ProviderUnavailableError(
                self.id,
                f"API key not found for model '{self.model_id}'",
                f"Set the {env_var} environment variable.",
            )
        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "input": texts,
            "num_retries": self.num_retries,
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        logger.debug("Embedding %d text(s) with %s", len(texts), self.model_id)
        response = await litellm.aembedding(**kwargs)
        return [item["embedding"] for item in response.data]
