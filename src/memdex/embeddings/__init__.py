"""memdex embeddings: providers, registry and factory."""

from __future__ import annotations

from memdex.config import EmbeddingsCfg
from memdex.embeddings.base import (
    EmbeddingProvider,
    HealthResult,
    ProviderState,
    l2_normalize,
)
from memdex.embeddings.disabled import DisabledProvider
from memdex.embeddings.local import LocalProvider
from memdex.embeddings.registry import ProviderRegistry
from memdex.embeddings.remote import RemoteProvider

PROVIDER_ALIASES = {"none": "disabled"}


def create_provider(cfg: EmbeddingsCfg) -> EmbeddingProvider:
    """Build the provider named by ``cfg.provider``.

    Raises:
        ValueError: If the provider id is unknown.
    """
    provider_id = PROVIDER_ALIASES.get(cfg.provider, cfg.provider)
    timeouts = {
        "timeout_seconds": cfg.timeout_seconds,
        "batch_timeout_seconds": cfg.batch_timeout_seconds,
    }
    if provider_id == "disabled":
        return DisabledProvider()
    if provider_id == "local":
        if cfg.model:
            return LocalProvider(model_id=cfg.model, **timeouts)
        return LocalProvider(**timeouts)
    if provider_id == "remote":
        if cfg.model:
            return RemoteProvider(model_id=cfg.model, api_base=cfg.api_base, **timeouts)
        return RemoteProvider(api_base=cfg.api_base, **timeouts)
    raise ValueError(f"Unknown embedding provider: {cfg.provider}")


def build_registry(cfg: EmbeddingsCfg) -> ProviderRegistry:
    """Return a registry with the configured provider registered and active."""
    registry = ProviderRegistry()
    registry.register(DisabledProvider())
    provider = create_provider(cfg)
    registry.register(provider)
    registry.set_active(provider.id)
    return registry


__all__ = [
    "DisabledProvider",
    "EmbeddingProvider",
    "HealthResult",
    "LocalProvider",
    "PROVIDER_ALIASES",
    "ProviderRegistry",
    "ProviderState",
    "RemoteProvider",
    "build_registry",
    "create_provider",
    "l2_normalize",
]
