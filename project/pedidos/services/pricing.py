# pedidos/services/pricing.py
# Тариф доставки по расстоянию и виду транспорта

import math
import re

from pedidos.utils.dates import format_currency

# вид транспорта → (цена первого километра, цена каждого следующего км)
TARIFFS = {
    "Bicicleta": (8.0, 2.5),
    "Beezero": (10.0, 3.0),
}
CARGO_SURCHARGE = 6.0

# ведущее число: "2.5 km" → 2.5
LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")


def parse_distance(value) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    text = str(value).strip().lstrip("'").strip().replace(",", ".", 1)
    match = LEADING_NUMBER_RE.match(text)
    if not match:
        return 0.0
    distance = float(match.group(0))
    return distance if distance > 0 and math.isfinite(distance) else 0.0


def calculate_price(distance, medio_transporte: str) -> float:
    """
    Цена в Bs: первый километр по базовой цене, остаток линейно.
    Scooter и неизвестные виды транспорта → 0 (цена вручную).
    """
    km = parse_distance(distance)
    if km <= 0:
        return 0.0

    mode = (medio_transporte or "").strip()
    if mode == "Cargo":
        return round(calculate_price(km, "Bicicleta") + CARGO_SURCHARGE, 2)
    if mode not in TARIFFS:
        return 0.0

    base, per_km = TARIFFS[mode]
    if km <= 1:
        return base
    return round(base + (km - 1) * per_km, 2)


def price_quote(distance, medio_transporte: str) -> dict:
    price = calculate_price(distance, medio_transporte)
    return {
        "success": True,
        "distance": parse_distance(distance),
        "medioTransporte": medio_transporte,
        "precio": price,
        "precioFormateado": format_currency(price),
    }
