"""Gateway discovery from packaged provider manifests."""

from __future__ import annotations

import importlib
import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from typing import TYPE_CHECKING, Any

from ...exceptions import ConfigError, ProviderError
from ...models import ProviderInfo

if TYPE_CHECKING:
    from .base import BasePaymentProvider

_LOGGER = logging.getLogger(__name__)

PROVIDER_PACKAGE = "detailbooking.payment.provider"
MANIFEST_FILENAME = "manifest.json"
SCHEMA_FILENAME = "manifest.schema.json"
CHECKOUT_FLOWS = ("approval_url", "client_secret")

# Manifest keys with the type each value must have.
_MANIFEST_FIELDS: dict[str, type] = {
    "id": str,
    "name": str,
    "partial_refund_possible": bool,
    "checkout_flow": str,
}

_MANIFESTS_BY_ID: dict[str, ProviderManifest] | None = None


@dataclass(frozen=True, slots=True)
class ProviderManifest:
    id: str
    name: str
    partial_refund_possible: bool
    checkout_flow: str = "approval_url"


def load_manifest_schema() -> dict:
    schema = resources.files(PROVIDER_PACKAGE) / SCHEMA_FILENAME
    return json.loads(schema.read_text(encoding="utf-8"))


def _build_manifest(data: Any, folder_name: str) -> ProviderManifest:
    """Validate one manifest document against the folder it was found in."""
    if not isinstance(data, dict):
        raise ProviderError(f"Manifest in {folder_name}/ must be a JSON object.")
    for key, expected in _MANIFEST_FIELDS.items():
        if key not in data:
            raise ProviderError(f"Manifest in {folder_name}/ has no {key!r}.")
        value = data[key]
        if not isinstance(value, expected) or (expected is str and not value):
            raise ProviderError(
                f"Manifest in {folder_name}/ needs {key!r} as a non-empty {expected.__name__}."
            )
    if data["id"] != folder_name:
        raise ProviderError(f"Manifest id {data['id']!r} does not match folder {folder_name!r}.")
    if data["checkout_flow"] not in CHECKOUT_FLOWS:
        raise ProviderError(
            f"Manifest in {folder_name}/ uses unknown checkout_flow {data['checkout_flow']!r}."
        )
    return ProviderManifest(**{key: data[key] for key in _MANIFEST_FIELDS})


def iter_manifest_files() -> Iterator[tuple[str, Traversable]]:
    for entry in sorted(resources.files(PROVIDER_PACKAGE).iterdir(), key=lambda item: item.name):
        manifest = entry / MANIFEST_FILENAME
        if entry.is_dir() and manifest.is_file():
            yield entry.name, manifest


def _manifests_by_id() -> dict[str, ProviderManifest]:
    global _MANIFESTS_BY_ID
    if _MANIFESTS_BY_ID is None:
        found: dict[str, ProviderManifest] = {}
        for folder_name, path in iter_manifest_files():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise ProviderError(f"Manifest in {folder_name}/ is not valid JSON.") from exc
            found[folder_name] = _build_manifest(data, folder_name)
        _LOGGER.debug("Discovered payment providers: %s", ", ".join(found) or "none")
        _MANIFESTS_BY_ID = found
    return _MANIFESTS_BY_ID


def load_manifests() -> list[ProviderManifest]:
    return [manifest for _, manifest in sorted(_manifests_by_id().items())]


def clear_manifest_cache() -> None:
    """Forget discovered manifests so the next call reads them again."""
    global _MANIFESTS_BY_ID
    _MANIFESTS_BY_ID = None


def list_providers() -> list[ProviderInfo]:
    return [
        ProviderInfo(id=manifest.id, partial_refund_possible=manifest.partial_refund_possible)
        for manifest in load_manifests()
    ]


def get_manifest(provider_id: str) -> ProviderManifest:
    manifest = _manifests_by_id().get(provider_id)
    if manifest is None:
        raise ConfigError(f"Payment provider {provider_id!r} is not available.")
    return manifest


def load_provider(provider_id: str) -> tuple[ProviderManifest, type[BasePaymentProvider]]:
    """Import a gateway package and return its manifest with its Provider class."""
    from .base import BasePaymentProvider

    if not provider_id:
        raise ConfigError("Payment provider id is required.")
    manifest = get_manifest(provider_id)
    try:
        module = importlib.import_module(f"{PROVIDER_PACKAGE}.{provider_id}")
    except ModuleNotFoundError as exc:
        raise ProviderError(f"Gateway package {provider_id!r} could not be imported.") from exc
    provider_cls = getattr(module, "Provider", None)
    if not isinstance(provider_cls, type) or not issubclass(provider_cls, BasePaymentProvider):
        raise ProviderError(
            f"Gateway package {provider_id!r} must export a BasePaymentProvider subclass."
        )
    return manifest, provider_cls
