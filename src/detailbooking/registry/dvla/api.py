"""DVLA Vehicle Enquiry Service adapter."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ...exceptions import ConfigError, ProviderError
from ...models import RegistryRecord
from ...transport import HttpAdapter
from ...util import mask_registration, normalize_registration
from ..base import VehicleRegistry
from .const import (
    API_KEY_HEADER,
    DEFAULT_API_URI,
    DEFAULT_BASE_URL,
    DEFAULT_HEADERS,
    VEHICLES_ENDPOINT,
)

_LOGGER = logging.getLogger(__name__)


class DvlaRegistry(HttpAdapter, VehicleRegistry):
    """Looks up UK registrations with the DVLA Vehicle Enquiry Service."""

    name = "dvla"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str | None,
        *,
        base_url: str | None = None,
        api_uri: str | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        retry_count: int = 0,
    ) -> None:
        if not api_key:
            raise ConfigError("DVLA api_key is required.")
        super().__init__(
            session,
            provider_name="DVLA",
            base_url=base_url or DEFAULT_BASE_URL,
            api_uri=DEFAULT_API_URI if api_uri is None else api_uri,
            timeout=timeout,
            retry_count=retry_count,
        )
        self._api_key = api_key

    async def lookup(self, registration_number: str) -> RegistryRecord | None:
        normalized = normalize_registration(registration_number)
        _LOGGER.debug("DVLA lookup started for %s", mask_registration(normalized))
        headers = dict(DEFAULT_HEADERS)
        headers[API_KEY_HEADER] = self._api_key
        data = await self._request_json(
            "POST",
            VEHICLES_ENDPOINT,
            allow_not_found=True,
            json={"registrationNumber": normalized},
            headers=headers,
        )
        if data is None:
            _LOGGER.debug("DVLA has no record for %s", mask_registration(normalized))
            return None
        record = self._map_record(data)
        _LOGGER.debug("DVLA lookup completed for %s", mask_registration(normalized))
        return record

    def _map_record(self, data: Any) -> RegistryRecord:
        if not isinstance(data, dict):
            raise ProviderError("Response included invalid vehicle data.", provider="DVLA")
        make = data.get("make")
        if not isinstance(make, str) or not make.strip():
            raise ProviderError("Response missing vehicle make.", provider="DVLA")
        model = data.get("model")
        return RegistryRecord(
            make=make.strip(),
            model=model.strip() if isinstance(model, str) and model.strip() else None,
            year_of_manufacture=self._parse_int(data.get("yearOfManufacture")),
            month_of_first_registration=self._parse_str(data.get("monthOfFirstRegistration")),
            fuel_type=self._parse_str(data.get("fuelType")),
            engine_capacity=self._parse_int(data.get("engineCapacity")),
            co2_emissions=self._parse_int(data.get("co2Emissions")),
            colour=self._parse_str(data.get("colour")),
            mot_status=self._parse_str(data.get("motStatus")),
            tax_status=self._parse_str(data.get("taxStatus")),
        )

    async def _error_message_from_response(self, response: aiohttp.ClientResponse) -> str | None:
        try:
            data = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            return None
        if isinstance(data, dict):
            errors = data.get("errors")
            if isinstance(errors, list) and errors and isinstance(errors[0], dict):
                detail = errors[0].get("detail") or errors[0].get("title")
                if isinstance(detail, str) and detail.strip():
                    return detail.strip()
            message = data.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return None

    def _parse_str(self, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    def _parse_int(self, value: Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            try:
                return int(stripped)
            except ValueError:
                return None
        return None
