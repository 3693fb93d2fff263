"""Provider registry keyed by resource type."""

from __future__ import annotations

from collections.abc import Iterable

from ..exceptions import UnknownResourceTypeError
from .base import Provider


class ProviderRegistry:
    """Maps resource type strings to provider instances."""

    def __init__(self, providers: Iterable[Provider] = ()) -> None:
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: Provider) -> Provider:
        """Register ``provider`` for its ``resource_type``, replacing any previous one."""
        self._providers[provider.resource_type] = provider
        return provider

    def get(self, resource_type: str) -> Provider:
        """
        Raises:
            UnknownResourceTypeError: If no provider handles ``resource_type``
        """
        try:
            return self._providers[resource_type]
        except KeyError:
            raise UnknownResourceTypeError(resource_type) from None

    def types(self) -> list[str]:
        return sorted(self._providers)

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def default_registry(
    region: str | None = None,
    endpoint_url: str | None = None,
) -> ProviderRegistry:
    """Registry with every built-in AWS provider."""
    from .aws import AWS_PROVIDERS

    return ProviderRegistry(
        cls(region=region, endpoint_url=endpoint_url) for cls in AWS_PROVIDERS.values()
    )
