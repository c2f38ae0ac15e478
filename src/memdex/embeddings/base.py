"""Embedding provider interface.

Providers turn text into L2-normalized float vectors. Every call on a provider
instance is serialized by a per-instance asyncio.Lock and bounded by a timeout;
a timeout or transport failure surfaces as ProviderUnavailableError so callers
can degrade to lexical-only operation.
"""

from __future__ import annotations

import asyncio
import enum
import math
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from memdex.errors import ProviderUnavailableError

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_BATCH_TIMEOUT_SECONDS = 60.0


class ProviderState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DEGRADED = "degraded"


@dataclass
class HealthResult:
    """Outcome of a provider health check.

    Attributes:
        healthy: True if the provider can embed right now.
        message: Human-readable reason when unhealthy.
        resolution: Suggested action for the operator.
    """

    healthy: bool
    message: str | None = None
    resolution: str | None = None


def l2_normalize(vector: list[float]) -> list[float]:
    """Scale *vector* to unit length. A zero vector is returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return list(vector)
    return [v / norm for v in vector]


class EmbeddingProvider(ABC):
    """Abstract embedding provider.

    Subclasses implement ``_embed_texts``; the public ``embed`` and
    ``embed_batch`` add locking, timeouts, normalization and state tracking.
    """

    id: str = ""

    def __init__(
        self,
        model_id: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        batch_timeout_seconds: float = DEFAULT_BATCH_TIMEOUT_SECONDS,
    ) -> None:
        self.model_id = model_id
        self.timeout_seconds = timeout_seconds
        self.batch_timeout_seconds = batch_timeout_seconds
        self.state = ProviderState.UNINITIALIZED
        self._dimensions: int | None = None
        self._lock = asyncio.Lock()

    def dimensions(self) -> int | None:
        """Vector size, or None until the first successful embedding."""
        return self._dimensions

    @property
    def cache_key(self) -> str:
        """Key under which this provider's vectors are cached."""
        return f"{self.id}:{self.model_id}"

    async def embed(self, text: str) -> list[float]:
        vectors = await self._guarded([text], self.timeout_seconds)
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await self._guarded(list(texts), self.batch_timeout_seconds)

    @abstractmethod
    async def health_check(self) -> HealthResult:
        """Health-check the provider without raising."""

    @abstractmethod
    async def _embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Return one raw vector per text, in order."""

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _guarded(self, texts: list[str], timeout: float) -> list[list[float]]:
        async with self._lock:
            try:
                raw = await _with_timeout(self._embed_texts(texts), timeout, self)
            except ProviderUnavailableError:
                self.state = ProviderState.DEGRADED
                raise
            except Exception as exc:
                self.state = ProviderState.DEGRADED
                raise ProviderUnavailableError(self.id, str(exc)) from exc

        if len(raw) != len(texts):
            self.state = ProviderState.DEGRADED
            raise ProviderUnavailableError(
                self.id, f"expected {len(texts)} vectors, got {len(raw)}"
            )
        vectors = [l2_normalize([float(v) for v in vec]) for vec in raw]
        dims = len(vectors[0])
        if self._dimensions is not None and dims != self._dimensions:
            raise ProviderUnavailableError(
                self.id,
                f"dimension changed from {self._dimensions} to {dims}",
                "Rebuild the index after switching embedding models.",
            )
        self._dimensions = dims
        self.state = ProviderState.READY
        return vectors


async def _with_timeout(coro: Awaitable[T], timeout: float, provider: EmbeddingProvider) -> T:
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ProviderUnavailableError(
            provider.id,
            f"{provider.model_id} did not respond within {timeout:g}s",
            "Check that the embedding service is running and reachable.",
        ) from exc
