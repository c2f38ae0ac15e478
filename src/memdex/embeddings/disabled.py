"""Placeholder provider used when embeddings are turned off."""

from __future__ import annotations

from memdex.embeddings.base import EmbeddingProvider, HealthResult
from memdex.errors import ProviderUnavailableError

_RESOLUTION = "Set embeddings.provider to 'local' or 'remote' in memdex.yaml."


class DisabledProvider(EmbeddingProvider):
    """Never ready. Search and sync run lexical-only."""

    id = "disabled"

    def __init__(self) -> None:
        super().__init__(model_id="none")

    async def health_check(self) -> HealthResult:
        return HealthResult(healthy=False, message="Embeddings are disabled", resolution=_RESOLUTION)

    async def _embed_texts(self, texts: list[str]) -> list[list[float]]:
        raise ProviderUnavailableError(self.id, "Embeddings are disabled", _RESOLUTION)
