"""Payment transactions over pluggable gateway providers."""

from .manager import PaymentTransactionManager
from .provider.base import BasePaymentProvider
from .provider.loader import (
    ProviderManifest,
    clear_manifest_cache,
    get_manifest,
    list_providers,
)

__all__ = [
    "BasePaymentProvider",
    "PaymentTransactionManager",
    "ProviderManifest",
    "clear_manifest_cache",
    "get_manifest",
    "list_providers",
]
