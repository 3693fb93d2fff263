"""Resource providers."""

from .aws import AWS_PROVIDERS, AWSProvider
from .base import DiffPolicy, Provider
from .registry import ProviderRegistry, default_registry

__all__ = [
    "AWS_PROVIDERS",
    "AWSProvider",
    "DiffPolicy",
    "Provider",
    "ProviderRegistry",
    "default_registry",
]
