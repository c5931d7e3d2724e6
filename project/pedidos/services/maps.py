# pedidos/services/maps.py

"""
Google Maps: разворачивание ссылок, координаты, геокодинг и расчёт маршрута.

Ссылка из формы (короткая goo.gl, полная google.com/maps или просто адрес)
превращается в "lat,lng", place_id:... или остаётся как есть.
Расстояние: Directions API (кратчайшая из альтернатив), затем Distance Matrix.
"""

import re
import time
from collections import OrderedDict
from urllib.parse import unquote_plus

import httpx

from pedidos.config import settings
from pedidos.utils.errors import MapsUnavailableError, RouteNotFoundError

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"

EXPAND_TIMEOUT = 3.0
DIRECTIONS_TIMEOUT = 5.0
VALIDATE_TIMEOUT = 2.0
API_TIMEOUT = 10.0

# от самых точных (координаты места) к наименее точным (viewport)
COORD_PATTERNS = [
    re.compile(r"!8m2!3d(-?\d+\.\d+)!4d(-?\d+\.\d+)"),
    re.compile(r"!3d(-?\d+\.\d+)!4d(-?\d+\.\d+)"),
    re.compile(r"/search/(-?\d+\.\d+),\+(-?\d+\.\d+)"),
    re.compile(r"/search/(-?\d+\.\d+),(-?\d+\.\d+)"),
    re.compile(r"q=(-?\d+\.\d+),(-?\d+\.\d+)"),
    re.compile(r"ll=(-?\d+\.\d+),(-?\d+\.\d+)"),
    re.compile(r"center=(-?\d+\.\d+),(-?\d+\.\d+)"),
    re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+),[\d.]+[a-z]?"),
    re.compile(r"@(-?\d+\.\d+),(-?\d+\.\d+)"),
    re.compile(r"/(-?\d+\.\d+),(-?\d+\.\d+)"),
]

COORDS_RE = re.compile(r"^-?\d+\.\d+,-?\d+\.\d+$")
HAS_COORDS_RE = re.compile(r"-?\d+\.\d+,-?\d+\.\d+")
EDGES_RE = re.compile(r"^[(\s]+|[)\s]+$")
GLUED_SHORT_RE = re.compile(
    r"https?://maps\.app\.goo\.gl/[a-zA-Z0-9_-]+(https?://maps\.app\.goo\.gl/[a-zA-Z0-9_-]+)"
)
PLACE_ID_RE = re.compile(r"!1s([A-Za-z0-9_\-:]+)")
CID_RE = re.compile(r"0x[a-fA-F0-9]+:0x([a-fA-F0-9]+)")
PLACE_NAME_RE = re.compile(r"/place/([^/?]+)")

VALID_LINK_MARKERS = ("maps.app.goo.gl", "goo.gl/maps", "google.com/maps", "maps.google.com")


def clean_location(value: str) -> str:
    """Срезает пробелы и скобки по краям."""
    return EDGES_RE.sub("", (value or "").strip()).strip()


def extract_coords(text: str) -> str | None:
    for pattern in COORD_PATTERNS:
        match = pattern.search(text)
        if match:
            return f"{match.group(1)},{match.group(2)}"
    return None


def is_coords(value: str | None) -> bool:
    return bool(value) and bool(COORDS_RE.match(value.strip()))


def is_short_link(value: str) -> bool:
    return "goo.gl" in value


def is_maps_url(value: str) -> bool:
    return "google.com/maps" in value or "maps.google.com" in value or "google.com.bo/maps" in value


def looks_like_url(value: str) -> bool:
    return any(marker in value for marker in ("http://", "https://", "maps.", "goo.gl"))


def parse_coords(value: str) -> dict | None:
    if not is_coords(value):
        return None
    lat, lng = value.strip().split(",")
    return {"lat": float(lat), "lng": float(lng)}


class UrlCache:
    """
    Кэш результатов разворачивания ссылок: TTL 5 минут, не больше 100 записей,
    при переполнении удаляются самые старые.
    """

    def __init__(self, ttl: float = 300.0, max_size: int = 100):
        self.ttl = ttl
        self.max_size = max_size
        self.items: OrderedDict[str, tuple[float, str]] = OrderedDict()

    def get(self, key: str) -> str | None:
        item = self.items.get(key)
        if item is None:
            return None
        stored_at, value = item
        if time.monotonic() - stored_at >= self.ttl:
            del self.items[key]
            return None
        return value

    def set(self, key: str, value: str) -> None:
        self.items.pop(key, None)
        self.items[key] = (time.monotonic(), value)
        while len(self.items) > self.max_size:
            self.items.popitem(last=False)

    def __len__(self) -> int:
        return len(self.items)


class MapsClient:
    def __init__(self, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None,
                 log=None, cache: UrlCache | None = None):
        self._api_key = api_key
        self.transport = transport
        self.log = log
        self.cache = cache or UrlCache()

    @property
    def api_key(self) -> str:
        # ключ может прийти из Secrets Manager уже после создания клиента
        return self._api_key if self._api_key is not None else settings.GOOGLE_MAPS_API_KEY

    def http(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=timeout, follow_redirects=True)

    async def get_json(self, url: str, params: dict, timeout: float = API_TIMEOUT) -> dict:
        async with self.http(timeout) as client:
            response = await client.get(url, params={**params, "key": self.api_key})
            return response.json()

    async def warn(self, message: str, data: dict | None = None) -> None:
        if self.log:
            await self.log.log_warning("maps", message, data)

    # ────────────── геокодинг ──────────────
    async def geocode(self, location: str) -> str | None:
        """Адрес → "lat,lng". К адресу без страны и координат добавляется ", Bolivia"."""
        if not self.api_key or not location:
            return None

        query = location
        if not looks_like_url(location) and "bolivia" not in location.lower() and not HAS_COORDS_RE.search(location):
            query = f"{location}, Bolivia"

        try:
            data = await self.get_json(GEOCODE_URL, {"address": query})
        except (httpx.HTTPError, ValueError) as e:
            await self.warn(f"Ошибка геокодинга: {e}", {"location": location})
            return None
        return self.first_location(data)

    async def geocode_place_id(self, place_id: str) -> str | None:
        if not self.api_key:
            return None
        try:
            data = await self.get_json(GEOCODE_URL, {"place_id": place_id})
        except (httpx.HTTPError, ValueError) as e:
            await self.warn(f"Ошибка геокодинга place_id: {e}", {"placeId": place_id})
            return None
        return self.first_location(data)

    @staticmethod
    def first_location(data: dict) -> str | None:
        results = data.get("results") or []
        if data.get("status") != "OK" or not results:
            return None
        location = results[0]["geometry"]["location"]
        return f"{location['lat']},{location['lng']}"

    async def resolve_place(self, url: str) -> str | None:
        """
        URL вида /place/ без координат:
        0x..:0x.. → place_id:{cid}, ChIJ../Ei.. → геокодинг по place_id,
        иначе геокодинг названия места.
        """
        match = PLACE_ID_RE.search(url)
        if match:
            place_id = match.group(1)
            if place_id.startswith("0x"):
                cid = CID_RE.search(place_id)
                if cid:
                    return f"place_id:{int(cid.group(1), 16)}"
            elif place_id.startswith(("ChIJ", "Ei")):
                coords = await self.geocode_place_id(place_id)
                if coords:
                    return coords

        match = PLACE_NAME_RE.search(url)
        if match and match.group(1):
            coords = await self.geocode(unquote_plus(match.group(1)))
            if coords:
                return coords
        return None

    # ────────────── ссылки ──────────────
    async def expand_url_and_extract_coords(self, text: str) -> str:
        location = clean_location(text)
        original = location

        without_query = location.split("?")[0]
        glued = GLUED_SHORT_RE.search(without_query)
        location = glued.group(1) if glued else without_query

        if is_coords(location):
            return location
        coords = extract_coords(location)
        if coords:
            return coords

        if is_short_link(location):
            try:
                async with self.http(EXPAND_TIMEOUT) as client:
                    response = await client.get(location)
                expanded = str(response.url)
            except httpx.HTTPError as e:
                await self.warn(f"Не удалось развернуть ссылку: {e}", {"url": location})
                return original

            coords = extract_coords(expanded)
            if coords:
                return coords
            if not is_short_link(expanded):
                resolved = await self.resolve_place(expanded)
                if resolved:
                    return resolved
            return original

        if is_maps_url(location):
            # query string тоже может содержать координаты (q=, ll=, center=)
            coords = extract_coords(original)
            if coords:
                return coords
            resolved = await self.resolve_place(original)
            return resolved or location

        if not location.startswith(("http://", "https://")):
            coords = await self.geocode(location)
            if coords:
                return coords
        return location

    async def expand_cached(self, text: str) -> str:
        key = clean_location(text)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        result = await self.expand_url_and_extract_coords(key)
        self.cache.set(key, result)
        return result

    # ────────────── маршрут ──────────────
    async def directions_route(self, origin: str, destination: str) -> dict | None:
        params = {
            "origin": origin,
            "destination": destination,
            "mode": "driving",
            "alternatives": "true",
            "departure_time": "now",
            "traffic_model": "best_guess",
        }
        try:
            data = await self.get_json(DIRECTIONS_URL, params, timeout=DIRECTIONS_TIMEOUT)
        except (httpx.HTTPError, ValueError) as e:
            await self.warn(f"Directions API недоступен, используем Distance Matrix: {e}")
            return None

        routes = [r for r in data.get("routes") or [] if r.get("legs")]
        if data.get("status") != "OK" or not routes:
            return None

        best = min(routes, key=lambda r: r["legs"][0].get("distance", {}).get("value", float("inf")))
        leg = best["legs"][0]
        return {
            "source": "directions",
            "distance_meters": leg["distance"]["value"],
            "distance_text": leg["distance"]["text"],
            "duration_seconds": leg["duration"]["value"],
            "duration_text": leg["duration"]["text"],
            "origin_address": leg.get("start_address", ""),
            "destination_address": leg.get("end_address", ""),
            "raw_response": data,
        }

    async def shortest_route(self, origin: str, destination: str, context: str = "distance") -> dict:
        """
        Кратчайший автомобильный маршрут.
        Нет связи → MapsUnavailableError, маршрут не найден → RouteNotFoundError.
        """
        if not origin or not destination:
            raise ValueError("Origen y destino son requeridos para calcular la distancia")
        if not self.api_key:
            raise ValueError("Google Maps API key no configurada")

        if not (is_coords(origin) and is_coords(destination)):
            route = await self.directions_route(origin, destination)
            if route:
                return route

        params = {"origins": origin, "destinations": destination, "mode": "driving", "units": "metric"}
        try:
            data = await self.get_json(DISTANCE_MATRIX_URL, params)
        except httpx.TransportError as e:
            raise MapsUnavailableError("Sin conexión a internet. No se puede calcular la distancia.") from e
        except ValueError as e:
            # HTML портала авторизации или прокси вместо JSON
            raise MapsUnavailableError("Respuesta inválida de Google Maps. No se puede calcular la distancia.") from e
        if not isinstance(data, dict):
            raise MapsUnavailableError("Respuesta inválida de Google Maps. No se puede calcular la distancia.")

        elements = (data.get("rows") or [{}])[0].get("elements") or []
        element = elements[0] if elements else None

        if data.get("status") == "OK" and element and element.get("status") == "OK":
            return {
                "source": "distance-matrix",
                "distance_meters": element["distance"]["value"],
                "distance_text": element["distance"]["text"],
                "duration_seconds": element["duration"]["value"],
                "duration_text": element["duration"]["text"],
                "origin_address": (data.get("origin_addresses") or [""])[0],
                "destination_address": (data.get("destination_addresses") or [""])[0],
                "raw_response": data,
            }

        if data.get("status") != "OK" or not element:
            raise RouteNotFoundError(
                data.get("error_message") or f"No se pudo calcular la distancia. Status: {data.get('status')}"
            )

        status = element.get("status")
        if status == "ZERO_RESULTS":
            raise RouteNotFoundError(
                f'No se encontró ruta entre "{origin}" y "{destination}". '
                "Verifica que las direcciones sean correctas."
            )
        if status == "NOT_FOUND":
            return await self.retry_not_found(origin, destination, context)

        raise RouteNotFoundError(
            f"Distance Matrix no pudo calcular la ruta. Status del elemento: {status}. "
            f"{element.get('error_message', '')}".strip()
        )

    async def retry_not_found(self, origin: str, destination: str, context: str) -> dict:
        """NOT_FOUND: одно повторное разворачивание goo.gl, затем геокодинг обеих точек."""
        origin = clean_location(origin)
        destination = clean_location(destination)

        if "-reexpanded" not in context:
            new_origin, new_destination = origin, destination
            for name in ("origin", "destination"):
                value = origin if name == "origin" else destination
                if not is_short_link(value):
                    continue
                expanded = await self.expand_url_and_extract_coords(value)
                if expanded and expanded != value and not is_short_link(expanded):
                    if name == "origin":
                        new_origin = expanded
                    else:
                        new_destination = expanded
            if (new_origin, new_destination) != (origin, destination):
                return await self.shortest_route(new_origin, new_destination, f"{context}-reexpanded")

        if "-geocoded" not in context:
            geo_origin = await self.geocode(origin)
            geo_destination = await self.geocode(destination)
            if geo_origin and geo_destination:
                return await self.shortest_route(geo_origin, geo_destination, f"{context}-geocoded")

        raise RouteNotFoundError(
            f'Una de las direcciones no fue encontrada. Origen: "{origin}", Destino: "{destination}"'
        )

    # ────────────── проверки ──────────────
    async def validate_link(self, url: str) -> dict:
        url = url.strip()
        if not any(marker in url for marker in VALID_LINK_MARKERS):
            return {"valid": False, "error": "Formato de URL no válido"}

        if "maps.app.goo.gl" in url or "goo.gl/maps" in url:
            try:
                async with self.http(VALIDATE_TIMEOUT) as client:
                    await client.head(url)
            except httpx.HTTPError:
                return {"valid": True, "warning": "No se pudo verificar completamente, pero el formato es correcto"}
        return {"valid": True}

    async def urls_to_coordinates(self, urls: list) -> list[dict | None]:
        coordinates = []
        for url in urls:
            if not url or not str(url).strip() or url == "Cliente avisa":
                coordinates.append(None)
                continue
            url = str(url).strip()
            resolved = await self.expand_url_and_extract_coords(url)
            point = parse_coords(resolved)
            if point is None:
                point = parse_coords(await self.geocode(resolved or url) or "")
            coordinates.append(point)
        return coordinates


def distance_matrix_payload(route: dict, origin: str, destination: str) -> dict:
    """Ответ в формате Distance Matrix: сырой ответ DM или обёртка над Directions."""
    if route["source"] == "distance-matrix" and route.get("raw_response"):
        return route["raw_response"]
    return {
        "destination_addresses": [route.get("destination_address") or destination],
        "origin_addresses": [route.get("origin_address") or origin],
        "rows": [
            {
                "elements": [
                    {
                        "status": "OK",
                        "distance": {"text": route["distance_text"], "value": route["distance_meters"]},
                        "duration": {"text": route["duration_text"], "value": route["duration_seconds"]},
                    }
                ]
            }
        ],
        "status": "OK",
        "source": route["source"],
    }
