# pedidos/routes/maps.py

from fastapi import APIRouter, Depends, HTTPException, Request
from typing import Optional

from pedidos.routes.auth import staff_user
from pedidos.schemas.maps import CalculateDistanceRequest, UrlsToCoordinatesRequest
from pedidos.services.maps import clean_location, distance_matrix_payload

router = APIRouter()


# ────────────── DISTANCE ──────────────
@router.get(
    "/distance-proxy",
    summary="Расстояние между двумя точками (формат Distance Matrix)",
    responses={
        400: {"description": "Нет ключа Google Maps или параметров"},
        404: {"description": "Маршрут не найден"},
        503: {"description": "Нет связи с Google Maps"},
    },
)
async def distance_proxy(
    request: Request,
    origins: Optional[str] = None,
    destinations: Optional[str] = None,
    _=Depends(staff_user),
):
    maps = request.app.state.maps
    if not maps.api_key:
        raise HTTPException(status_code=400, detail="Google Maps API key no configurada en el backend")
    if not origins or not destinations:
        raise HTTPException(status_code=400, detail="Parámetros origins y destinations son requeridos")

    origin = await maps.expand_cached(clean_location(origins))
    destination = await maps.expand_cached(clean_location(destinations))

    try:
        route = await maps.shortest_route(origin, destination, context="distance-proxy")
    except Exception as e:
        await request.app.state.log.log_error(
            "maps", f"Ошибка при расчёте расстояния: {str(e)}", {"origin": origin, "destination": destination}
        )
        raise

    await request.app.state.log.log_info(
        "maps", f"Маршрут выбран ({route['source']}): {route['distance_text']} - {route['duration_text']}"
    )
    return distance_matrix_payload(route, origin, destination)


@router.post(
    "/calculate-distance",
    summary="Расстояние в км между адресами",
    responses={
        400: {"description": "Нет origen или destino"},
        404: {"description": "Маршрут не найден"},
        500: {"description": "Ключ Google Maps не настроен"},
    },
)
async def calculate_distance(request: Request, body: CalculateDistanceRequest, _=Depends(staff_user)):
    maps = request.app.state.maps
    if not body.origen or not body.destino:
        raise HTTPException(status_code=400, detail="Origen y destino son requeridos")
    if not maps.api_key:
        raise HTTPException(status_code=500, detail="Google Maps API key no configurada")

    try:
        route = await maps.shortest_route(
            f"{body.origen}, Bolivia", f"{body.destino}, Bolivia", context="calculate-distance"
        )
    except Exception as e:
        await request.app.state.log.log_error("maps", f"Ошибка при расчёте расстояния: {str(e)}")
        raise

    return {
        "success": True,
        "distance": f"{route['distance_meters'] / 1000:.2f}",
        "distanceText": route["distance_text"],
        "duration": route["duration_text"],
        "originAddress": route["origin_address"],
        "destinationAddress": route["destination_address"],
        "source": route["source"],
    }


# ────────────── LINKS ──────────────
@router.get(
    "/validate-maps-link",
    summary="Проверить ссылку Google Maps",
    responses={400: {"description": "Нет url"}},
)
async def validate_maps_link(request: Request, url: Optional[str] = None, _=Depends(staff_user)):
    if not url:
        raise HTTPException(status_code=400, detail="URL requerida")
    return await request.app.state.maps.validate_link(url)


@router.post(
    "/maps/urls-to-coordinates",
    summary="Ссылки Google Maps → координаты",
    response_description="{lat, lng} или null для каждой ссылки",
    responses={400: {"description": "urls не массив"}},
)
async def urls_to_coordinates(request: Request, body: UrlsToCoordinatesRequest, _=Depends(staff_user)):
    if not isinstance(body.urls, list):
        raise HTTPException(status_code=400, detail="Se requiere un array de URLs")
    coordinates = await request.app.state.maps.urls_to_coordinates(body.urls)
    await request.app.state.log.log_info(
        "maps", "Координаты получены", {"total": len(coordinates), "resolved": sum(1 for c in coordinates if c)}
    )
    return {"success": True, "coordinates": coordinates}


@router.get("/maps/api-key", summary="Ключ Google Maps для карты во фронтенде")
async def api_key(request: Request, _=Depends(staff_user)):
    return {"apiKey": request.app.state.maps.api_key}
