# pedidos/schemas/maps.py

from pydantic import BaseModel
from typing import Any, Optional


class CalculateDistanceRequest(BaseModel):
    origen: Optional[str] = None
    destino: Optional[str] = None


class UrlsToCoordinatesRequest(BaseModel):
    # не list: тип проверяется в роуте, чтобы вернуть 400
    urls: Optional[Any] = None


class SaveLogsRequest(BaseModel):
    logs: Optional[Any] = None
