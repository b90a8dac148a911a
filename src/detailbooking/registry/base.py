"""Vehicle registry contract and an in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping

from ..models import RegistryRecord
from ..util import normalize_registration


class VehicleRegistry(ABC):
    """External source of record for vehicle registrations."""

    name = "registry"

    @abstractmethod
    async def lookup(self, registration_number: str) -> RegistryRecord | None:
        """Return the registry record for a normalized registration, or None."""


class StaticRegistry(VehicleRegistry):
    """Registry backed by a fixed mapping, for development and tests."""

    name = "static"

    def __init__(self, records: Mapping[str, RegistryRecord] | None = None) -> None:
        self._records = {
            normalize_registration(key): value for key, value in (records or {}).items()
        }

    async def lookup(self, registration_number: str) -> RegistryRecord | None:
        normalized = normalize_registration(registration_number)
        return self._records.get(normalized)
