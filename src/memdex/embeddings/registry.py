"""Provider registry: registered providers plus zero-or-one active provider."""

from __future__ import annotations

import logging

from memdex.embeddings.base import EmbeddingProvider, HealthResult, ProviderState

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Tracks which embedding provider is active and whether it is degraded.

    The *intended* provider is what the operator chose. It survives
    degradation so a later health check knows what to recover; only an
    explicit ``set_active(None)`` clears it.
    """

    def __init__(self) -> None:
        self._providers: dict[str, EmbeddingProvider] = {}
        self._active_id: str | None = None
        self._intended_id: str | None = None
        self._degraded: HealthResult | None = None

    def register(self, provider: EmbeddingProvider) -> None:
        self._providers[provider.id] = provider

    def get(self, provider_id: str) -> EmbeddingProvider | None:
        return self._providers.get(provider_id)

    def list(self) -> list[EmbeddingProvider]:
        return list(self._providers.values())

    @property
    def active(self) -> EmbeddingProvider | None:
        return self._providers.get(self._active_id) if self._active_id else None

    @property
    def intended_id(self) -> str | None:
        return self._intended_id

    @property
    def intended(self) -> EmbeddingProvider | None:
        return self._providers.get(self._intended_id) if self._intended_id else None

    @property
    def degraded_health(self) -> HealthResult | None:
        return self._degraded

    def set_active(self, provider_id: str | None) -> None:
        """Activate *provider_id* (or nothing) and clear any degraded state.

        Raises:
            KeyError: If *provider_id* is not registered.
        """
        if provider_id is not None and provider_id not in self._providers:
            raise KeyError(f"Provider not registered: {provider_id}")
        self._active_id = provider_id
        self._intended_id = provider_id
        self._degraded = None

    def set_degraded(self, health: HealthResult) -> None:
        """Stop using the active provider, remembering it as intended."""
        provider = self.intended
        if provider is not None:
            provider.state = ProviderState.DEGRADED
        if self._degraded is None:
            logger.warning("Embedding provider degraded: %s", health.message)
        self._degraded = health
        self._active_id = None

    def clear_degraded(self) -> None:
        """Leave degraded mode and re-activate the intended provider."""
        self._degraded = None
        self._active_id = self._intended_id

    def is_degraded(self) -> bool:
        return self._degraded is not None

    def ready_provider(self) -> EmbeddingProvider | None:
        """Return the active provider if it can embed, else None."""
        provider = self.active
        if provider is None or self.is_degraded() or provider.id == "disabled":
            return None
        return provider
