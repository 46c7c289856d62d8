import asyncio

import httpx

from services.geo_resolver import GeoResolver, is_public_ip


def resolver_for(handler):
    return GeoResolver(lookup_url="https://geo.example.com/{ip}/json/", transport=httpx.MockTransport(handler))


def test_private_addresses_are_not_looked_up():
    def handler(request):
        raise AssertionError("no lookup expected")

    resolver = resolver_for(handler)
    for ip in ["10.1.2.3", "127.0.0.1", "192.168.0.8", "::1", "unknown", "", None]:
        assert asyncio.run(resolver.resolve(ip)) is None
    assert is_public_ip("8.8.8.8")


def test_successful_lookup():
    def handler(request):
        assert request.url.path == "/8.8.8.8/json/"
        return httpx.Response(200, json={
            "city": "Mountain View", "region": "California", "country_name": "United States",
        })

    location = asyncio.run(resolver_for(handler).resolve("8.8.8.8"))
    assert location.key == "Mountain View, California, United States"


def test_failed_lookups_resolve_to_none():
    responses = [
        httpx.Response(429, json={"error": True, "reason": "RateLimited"}),
        httpx.Response(200, json={"error": True, "reason": "Reserved IP Address"}),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json={"city": None, "region": "", "country_name": None}),
    ]

    for response in responses:
        resolver = resolver_for(lambda request, r=response: r)
        assert asyncio.run(resolver.resolve("8.8.8.8")) is None


def test_transport_errors_resolve_to_none():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert asyncio.run(resolver_for(handler).resolve("8.8.8.8")) is None
