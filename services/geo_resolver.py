import ipaddress
import os
from typing import Optional

import httpx
from pydantic import BaseModel

from utils.logger_factory import new_logger

GEOIP_LOOKUP_URL = os.getenv("GEOIP_LOOKUP_URL", "https://ipapi.co/{ip}/json/")
GEOIP_TIMEOUT_SECONDS = float(os.getenv("GEOIP_TIMEOUT_SECONDS", "5.0"))


class VisitLocation(BaseModel):
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None

    @property
    def key(self) -> str:
        """Display key ``"<city>, <region>, <country>"`` without empty segments."""
        return ", ".join(part for part in (self.city, self.region, self.country) if part)


def is_public_ip(ip_address: str) -> bool:
    try:
        parsed = ipaddress.ip_address(ip_address)
    except ValueError:
        return False
    return not (parsed.is_private or parsed.is_loopback or parsed.is_link_local
                or parsed.is_reserved or parsed.is_multicast or parsed.is_unspecified)


class GeoResolver:
    """
    Maps a client IP to a coarse location using an ipapi.co style JSON endpoint.

    Resolution is best effort: private addresses, lookup failures and empty
    answers all resolve to None.
    """

    def __init__(self, lookup_url: str = GEOIP_LOOKUP_URL, timeout: float = GEOIP_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.lookup_url = lookup_url
        self.timeout = timeout
        self.transport = transport

    async def resolve(self, ip_address: Optional[str]) -> Optional[VisitLocation]:
        log = new_logger("resolve_location")

        if not ip_address or not is_public_ip(ip_address):
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.lookup_url.format(ip=ip_address))
        except httpx.HTTPError as e:
            log.error(f"Failed to get visitor location: {str(e)}")
            return None

        if response.status_code != 200:
            log.warning(f"IP geolocation API returned {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            log.warning("IP geolocation API returned a non-JSON body")
            return None
        if not isinstance(data, dict) or data.get("error"):
            log.warning("IP geolocation API returned no match for the address")
            return None

        location = VisitLocation(
            country=data.get("country_name") or data.get("country_code") or data.get("country"),
            region=data.get("region"),
            city=data.get("city"),
        )
        if not location.key:
            return None
        return location


_default_resolver = GeoResolver()


def get_geo_resolver() -> GeoResolver:
    """FastAPI dependency; tests override it with a deterministic resolver."""
    return _default_resolver
