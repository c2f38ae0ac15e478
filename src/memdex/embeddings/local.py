"""In-process embeddings via sentence-transformers.

The model is loaded on first use in a worker thread so the event loop never
blocks on model download or inference. Install with ``pip install memdex[local]``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from memdex.embeddings.base import EmbeddingProvider, HealthResult
from memdex.errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class LocalProvider(EmbeddingProvider):
    """Embeds with a sentence-transformers model held in memory."""

    id = "local"

    def __init__(self, model_id: str = DEFAULT_LOCAL_MODEL, **kwargs: Any) -> None:
        super().__init__(model_id=model_id, **kwargs)
        self._model: Any = None

    async def health_check(self) -> HealthResult:
        try:
            await asyncio.to_thread(self._load)
        except ProviderUnavailableError as exc:
            return HealthResult(healthy=False, message=exc.message, resolution=exc.resolution)
        except Exception as exc:  # model download / load failures vary by backend
            return HealthResult(
                healthy=False,
                message=f"Failed to load {self.model_id}: {exc}",
                resolution="Check the model name and that it can be downloaded.",
            )
        return HealthResult(healthy=True)

    async def _embed_texts(self, texts: list[str]) -> list[list[float]]:
        return await asyncio.to_thread(self._encode, texts)

    # ------------------------------------------------------------------
    # Worker-thread helpers
    # ------------------------------------------------------------------

    def _load(self) -> Any:
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as exc:
                raise ProviderUnavailableError(
                    self.id,
                    "sentence-transformers is not installed",
                    "pip install 'memdex[local]'",
                ) from exc
            logger.info("Loading local embedding model %s", self.model_id)
            self._model = SentenceTransformer(self.model_id)
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load()
        return model.encode(texts, normalize_embeddings=True).tolist()
