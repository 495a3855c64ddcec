from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

import httpx

from .env import PATHS

logger = logging.getLogger(__name__)

_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")

# (url, country key, timezone key)
JSON_PROVIDERS: Tuple[Tuple[str, str, str], ...] = (
    ("https://ipapi.co/json/", "country_code", "timezone"),
    ("http://ip-api.com/json/?fields=countryCode,timezone", "countryCode", "timezone"),
)

PLAIN_COUNTRY_PROVIDERS: Tuple[str, ...] = (
    "https://ipapi.co/country_code",
    "https://ifconfig.io/country_code",
    "http://ip-api.com/line/?fields=countryCode",
)

DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class Location:
    country: Optional[str] = None
    timezone: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return bool(self.country or self.timezone)


def valid_country(value: Any) -> Optional[str]:
    if isinstance(value, str) and _COUNTRY_RE.match(value):
        return value
    return None


def valid_timezone(value: Any, zoneinfo: str = PATHS.zoneinfo) -> Optional[str]:
    """Return value if it names a zone file in the local tz database."""

    if not isinstance(value, str) or not value or value.startswith("/"):
        return None
    if ".." in value.split("/"):
        return None
    if (Path(zoneinfo) / value).is_file():
        return value
    return None


class LocationResolver:
    """Country and timezone from public geolocation services.

    Provider failures are never errors: the first provider that answers
    with a JSON object wins, and each field it carries is validated on its
    own. Anything invalid is simply left unresolved.
    """

    def __init__(
        self,
        *,
        providers: Sequence[Tuple[str, str, str]] = JSON_PROVIDERS,
        plain_providers: Sequence[str] = PLAIN_COUNTRY_PROVIDERS,
        timeout: float = DEFAULT_TIMEOUT,
        zoneinfo: str = PATHS.zoneinfo,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.providers = tuple(providers)
        self.plain_providers = tuple(plain_providers)
        self.timeout = timeout
        self.zoneinfo = zoneinfo
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport, follow_redirects=True)

    def _fetch_json(self, client: httpx.Client, url: str) -> Optional[Dict[str, Any]]:
        try:
            resp = client.get(url)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.info("Geolocation provider %s failed: %s", url, e)
            return None
        if not isinstance(data, dict):
            logger.info("Geolocation provider %s returned %s, not an object", url, type(data).__name__)
            return None
        return data

    def resolve(self) -> Location:
        with self._client() as client:
            for url, country_key, tz_key in self.providers:
                data = self._fetch_json(client, url)
                if data is None:
                    continue
                country = valid_country(data.get(country_key))
                timezone = valid_timezone(data.get(tz_key), self.zoneinfo)
                if data.get(country_key) and not country:
                    logger.warning("Discarding invalid country code %r from %s", data.get(country_key), url)
                if data.get(tz_key) and not timezone:
                    logger.warning("Discarding unknown timezone %r from %s", data.get(tz_key), url)
                loc = Location(country=country, timezone=timezone)
                logger.info(
                    "Detected location: country=%s timezone=%s",
                    loc.country or "unknown",
                    loc.timezone or "unknown",
                )
                return loc

        logger.warning("Could not detect location; using defaults")
        return Location()

    def resolve_country_plain(self) -> Optional[str]:
        """Country code from the plain-text endpoints, for mirror selection."""

        with self._client() as client:
            for url in self.plain_providers:
                try:
                    resp = client.get(url)
                    resp.raise_for_status()
                except httpx.HTTPError as e:
                    logger.info("Country provider %s failed: %s", url, e)
                    continue
                country = valid_country("".join(resp.text.split()))
                if country:
                    logger.info("Auto-detected mirror country: %s", country)
                    return country
        logger.warning("Could not detect country, using worldwide mirrors.")
        return None
