import asyncio
from unittest.mock import patch

import httpx
import pytest

from pedidos.services.maps import (
    MapsClient,
    UrlCache,
    clean_location,
    distance_matrix_payload,
    extract_coords,
)
from pedidos.utils.errors import MapsUnavailableError, RouteNotFoundError


def dm_ok(meters=3200, origin="Origen, La Paz", destination="Destino, La Paz"):
    return {
        "status": "OK",
        "origin_addresses": [origin],
        "destination_addresses": [destination],
        "rows": [
            {
                "elements": [
                    {
                        "status": "OK",
                        "distance": {"text": f"{meters / 1000} km", "value": meters},
                        "duration": {"text": "10 mins", "value": 600},
                    }
                ]
            }
        ],
    }


def dm_element(status):
    return {"status": "OK", "rows": [{"elements": [{"status": status}]}]}


def geocode_ok(lat, lng):
    return {"status": "OK", "results": [{"geometry": {"location": {"lat": lat, "lng": lng}}}]}


def leg(meters, start="A", end="B"):
    return {
        "legs": [
            {
                "distance": {"text": f"{meters} m", "value": meters},
                "duration": {"text": "5 mins", "value": 300},
                "start_address": start,
                "end_address": end,
            }
        ]
    }


def make_client(handler, api_key="key"):
    return MapsClient(api_key=api_key, transport=httpx.MockTransport(handler))


# ────────────── coordinates ──────────────
@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.google.com/maps/place/X/@-16.5,-68.1,17z/data=!3m1!4b1!4m6!3m5!8m2!3d-16.501!4d-68.131", "-16.501,-68.131"),
        ("https://www.google.com/maps/search/-16.5,+-68.15", "-16.5,-68.15"),
        ("https://maps.google.com/?q=-16.49,-68.12", "-16.49,-68.12"),
        ("https://www.google.com/maps/@-16.52,-68.11,15z", "-16.52,-68.11"),
        ("https://www.google.com/maps/dir//-16.53,-68.09", "-16.53,-68.09"),
    ],
)
def test_extract_coords(url, expected):
    assert extract_coords(url) == expected


def test_extract_coords_prefers_place_pin_over_viewport():
    url = "https://www.google.com/maps/place/Tienda/@-16.40,-68.00,17z/data=!3d-16.55!4d-68.20"
    assert extract_coords(url) == "-16.55,-68.20"


def test_clean_location():
    assert clean_location("  (https://maps.app.goo.gl/abc) ") == "https://maps.app.goo.gl/abc"
    assert extract_coords("Calle 21 de Calacoto") is None


def test_url_cache_ttl_and_eviction():
    cache = UrlCache(ttl=300, max_size=2)
    cache.set("a", "1")
    cache.set("b", "2")
    cache.set("c", "3")
    assert cache.get("a") is None
    assert cache.get("c") == "3"
    assert len(cache) == 2

    with patch("pedidos.services.maps.time.monotonic", return_value=10 ** 9):
        assert cache.get("c") is None


# ────────────── link expansion ──────────────
def test_expand_short_link_follows_redirect():
    def handler(request):
        if request.url.host == "maps.app.goo.gl":
            return httpx.Response(302, headers={"Location": "https://www.google.com/maps/place/X/@-16.5,-68.1,17z"})
        return httpx.Response(200, text="ok")

    result = asyncio.run(make_client(handler).expand_url_and_extract_coords("https://maps.app.goo.gl/abc?g_st=iw"))
    assert result == "-16.5,-68.1"


def test_expand_short_link_network_failure_returns_original():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    url = "https://maps.app.goo.gl/abc"
    assert asyncio.run(make_client(handler).expand_url_and_extract_coords(url)) == url


def test_expand_place_with_cid_returns_place_id():
    def handler(request):
        if request.url.host == "maps.app.goo.gl":
            return httpx.Response(
                302, headers={"Location": "https://www.google.com/maps/place/Tienda/data=!4m2!3m1!1s0x915f:0x1a"}
            )
        return httpx.Response(200, text="ok")

    result = asyncio.run(make_client(handler).expand_url_and_extract_coords("https://maps.app.goo.gl/xyz"))
    assert result == "place_id:26"


def test_expand_plain_text_geocodes_with_bolivia_suffix():
    seen = []

    def handler(request):
        seen.append(request.url.params["address"])
        return httpx.Response(200, json=geocode_ok(-16.5, -68.12))

    result = asyncio.run(make_client(handler).expand_url_and_extract_coords("Plaza Murillo, La Paz"))
    assert result == "-16.5,-68.12"
    assert seen == ["Plaza Murillo, La Paz, Bolivia"]


def test_geocode_without_key_returns_none():
    def handler(request):
        raise AssertionError("no debe llamar a la API")

    assert asyncio.run(make_client(handler, api_key="").geocode("Plaza Murillo")) is None


# ────────────── route ──────────────
def test_shortest_route_picks_shortest_directions_alternative():
    def handler(request):
        assert request.url.path.endswith("directions/json")
        assert request.url.params["alternatives"] == "true"
        return httpx.Response(200, json={"status": "OK", "routes": [leg(5000), leg(3100, "Inicio", "Fin"), leg(4000)]})

    route = asyncio.run(make_client(handler).shortest_route("Plaza Murillo", "Miraflores"))
    assert route["source"] == "directions"
    assert route["distance_meters"] == 3100
    assert route["origin_address"] == "Inicio"


def test_shortest_route_coords_go_straight_to_distance_matrix():
    paths = []

    def handler(request):
        paths.append(request.url.path)
        return httpx.Response(200, json=dm_ok())

    route = asyncio.run(make_client(handler).shortest_route("-16.5,-68.1", "-16.52,-68.12"))
    assert route["source"] == "distance-matrix"
    assert route["distance_meters"] == 3200
    assert all(p.endswith("distancematrix/json") for p in paths)


def test_shortest_route_zero_results_raises_route_not_found():
    def handler(request):
        return httpx.Response(200, json=dm_element("ZERO_RESULTS"))

    with pytest.raises(RouteNotFoundError):
        asyncio.run(make_client(handler).shortest_route("-16.5,-68.1", "-10.0,-60.0"))


def test_shortest_route_not_found_falls_back_to_geocoding():
    def handler(request):
        path = request.url.path
        if path.endswith("directions/json"):
            return httpx.Response(200, json={"status": "NOT_FOUND", "routes": []})
        if path.endswith("geocode/json"):
            return httpx.Response(200, json=geocode_ok(-16.5, -68.1))
        if request.url.params["origins"] == "-16.5,-68.1":
            return httpx.Response(200, json=dm_ok(1500))
        return httpx.Response(200, json=dm_element("NOT_FOUND"))

    route = asyncio.run(make_client(handler).shortest_route("Lugar raro", "Otro lugar"))
    assert route["distance_meters"] == 1500


def test_shortest_route_not_found_gives_up_after_geocoding():
    def handler(request):
        if request.url.path.endswith("geocode/json"):
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "results": []})
        return httpx.Response(200, json=dm_element("NOT_FOUND"))

    with pytest.raises(RouteNotFoundError, match="no fue encontrada"):
        asyncio.run(make_client(handler).shortest_route("-16.5,-68.1", "-16.6,-68.2"))


def test_shortest_route_not_found_chain_retries_each_fallback_once():
    matrix_origins = []

    def handler(request):
        if request.url.host == "maps.app.goo.gl":
            return httpx.Response(302, headers={"Location": "https://www.google.com/maps/@-16.5,-68.1,17z"})
        path = request.url.path
        if path.endswith("directions/json"):
            return httpx.Response(200, json={"status": "NOT_FOUND", "routes": []})
        if path.endswith("geocode/json"):
            return httpx.Response(200, json=geocode_ok(-16.45, -68.05))
        if path.endswith("distancematrix/json"):
            matrix_origins.append(request.url.params["origins"])
            return httpx.Response(200, json=dm_element("NOT_FOUND"))
        return httpx.Response(200, text="ok")

    with pytest.raises(RouteNotFoundError, match="no fue encontrada"):
        asyncio.run(make_client(handler).shortest_route("https://maps.app.goo.gl/abc", "-16.6,-68.2"))

    # по одному запросу Distance Matrix на каждый шаг каскада
    assert matrix_origins == ["https://maps.app.goo.gl/abc", "-16.5,-68.1", "-16.45,-68.05"]


def test_shortest_route_html_reply_raises_maps_unavailable():
    def handler(request):
        return httpx.Response(200, text="<html>portal</html>", headers={"content-type": "text/html"})

    with pytest.raises(MapsUnavailableError):
        asyncio.run(make_client(handler).shortest_route("-16.5,-68.1", "-16.6,-68.2"))

def test_shortest_route_offline_raises_maps_unavailable():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    with pytest.raises(MapsUnavailableError):
        asyncio.run(make_client(handler).shortest_route("A", "B"))


def test_distance_matrix_payload_wraps_directions():
    route = {
        "source": "directions",
        "distance_meters": 3100,
        "distance_text": "3.1 km",
        "duration_seconds": 540,
        "duration_text": "9 mins",
        "origin_address": "",
        "destination_address": "Fin",
        "raw_response": {},
    }
    payload = distance_matrix_payload(route, "-16.5,-68.1", "x")
    assert payload["origin_addresses"] == ["-16.5,-68.1"]
    assert payload["destination_addresses"] == ["Fin"]
    assert payload["rows"][0]["elements"][0]["distance"] == {"text": "3.1 km", "value": 3100}
    assert payload["source"] == "directions"


# ────────────── API ──────────────
def test_distance_proxy_returns_raw_distance_matrix(client, staff_headers, maps_responses):
    maps_responses["distancematrix/json"] = dm_ok(2500)

    response = client.get(
        "/api/distance-proxy",
        params={"origins": "(-16.5,-68.1)", "destinations": "-16.52,-68.12"},
        headers=staff_headers,
    )
    assert response.status_code == 200
    assert response.json() == dm_ok(2500)


def test_distance_proxy_requires_params(client, staff_headers):
    response = client.get("/api/distance-proxy", params={"origins": "A"}, headers=staff_headers)
    assert response.status_code == 400


def test_distance_proxy_route_not_found_is_404(client, staff_headers, maps_responses):
    maps_responses["distancematrix/json"] = dm_element("ZERO_RESULTS")
    response = client.get(
        "/api/distance-proxy",
        params={"origins": "-16.5,-68.1", "destinations": "-10.1,-60.1"},
        headers=staff_headers,
    )
    assert response.status_code == 404
    assert "No se encontró ruta" in response.json()["error"]


def test_distance_proxy_offline_is_503(client, staff_headers):
    from pedidos.main import app

    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    app.state.maps = MapsClient(api_key="key", transport=httpx.MockTransport(handler))
    response = client.get(
        "/api/distance-proxy",
        params={"origins": "-16.5,-68.1", "destinations": "-16.52,-68.12"},
        headers=staff_headers,
    )
    assert response.status_code == 503
    assert response.json()["status"] == "NO_CONNECTION"


def test_distance_proxy_html_reply_is_503(client, staff_headers):
    from pedidos.main import app

    def handler(request):
        return httpx.Response(200, text="<html>Iniciar sesión</html>", headers={"content-type": "text/html"})

    app.state.maps = MapsClient(api_key="key", transport=httpx.MockTransport(handler))
    response = client.get(
        "/api/distance-proxy",
        params={"origins": "-16.5,-68.1", "destinations": "-16.52,-68.12"},
        headers=staff_headers,
    )
    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "NO_CONNECTION"
    assert body["success"] is False


def test_calculate_distance(client, staff_headers, maps_responses):
    maps_responses["directions/json"] = {"status": "OK", "routes": [leg(4321, "Sopocachi", "Calacoto")]}

    response = client.post(
        "/api/calculate-distance", json={"origen": "Sopocachi", "destino": "Calacoto"}, headers=staff_headers
    )
    body = response.json()
    assert body["success"] is True
    assert body["distance"] == "4.32"
    assert body["originAddress"] == "Sopocachi"
    assert body["source"] == "directions"

    assert client.post("/api/calculate-distance", json={"origen": "x"}, headers=staff_headers).status_code == 400


def test_validate_maps_link(client, staff_headers):
    ok = client.get(
        "/api/validate-maps-link", params={"url": "https://www.google.com/maps/@-16.5,-68.1,15z"}, headers=staff_headers
    ).json()
    assert ok == {"valid": True}

    bad = client.get("/api/validate-maps-link", params={"url": "https://example.com"}, headers=staff_headers).json()
    assert bad == {"valid": False, "error": "Formato de URL no válido"}

    assert client.get("/api/validate-maps-link", headers=staff_headers).status_code == 400


def test_validate_short_link_unreachable_still_valid(client, staff_headers):
    from pedidos.main import app

    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    app.state.maps = MapsClient(api_key="key", transport=httpx.MockTransport(handler))
    body = client.get(
        "/api/validate-maps-link", params={"url": "https://maps.app.goo.gl/abc"}, headers=staff_headers
    ).json()
    assert body["valid"] is True
    assert "warning" in body


def test_urls_to_coordinates(client, staff_headers, maps_responses):
    maps_responses["geocode/json"] = geocode_ok(-16.4, -68.2)

    response = client.post(
        "/api/maps/urls-to-coordinates",
        json={"urls": ["https://www.google.com/maps/@-16.5,-68.1,15z", "", "Cliente avisa", "Plaza Murillo"]},
        headers=staff_headers,
    )
    assert response.json()["coordinates"] == [
        {"lat": -16.5, "lng": -68.1},
        None,
        None,
        {"lat": -16.4, "lng": -68.2},
    ]

    bad = client.post("/api/maps/urls-to-coordinates", json={"urls": "x"}, headers=staff_headers)
    assert bad.status_code == 400


def test_api_key_endpoint(client, staff_headers):
    assert client.get("/api/maps/api-key", headers=staff_headers).json() == {"apiKey": "test-maps-key"}
