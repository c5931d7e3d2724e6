from datetime import date, datetime

import pytest

from pedidos.services.pricing import calculate_price, parse_distance
from pedidos.utils.dates import (
    BOLIVIA_TZ,
    bolivia_date,
    bolivia_time,
    format_currency,
    is_ddmmyyyy,
    minutes_to_time,
    normalize_date_to_ddmmyyyy,
    parse_ddmmyyyy,
    to_minutes,
)


# ────────────── тарифы ──────────────
@pytest.mark.parametrize(
    "distance, mode, price",
    [
        (0.8, "Bicicleta", 8.0),
        (1, "Bicicleta", 8.0),
        (2.5, "Bicicleta", 11.75),
        ("3,2", "Bicicleta", 13.5),
        ("2.5 km", "Bicicleta", 11.75),
        (1.2, "Beezero", 10.6),
        (1, "Beezero", 10.0),
        (4, "Beezero", 19.0),
        (2.5, "Cargo", 17.75),
        (3, "Scooter", 0.0),
        (3, "", 0.0),
        (0, "Bicicleta", 0.0),
        ("abc", "Bicicleta", 0.0),
    ],
)
def test_calculate_price(distance, mode, price):
    assert calculate_price(distance, mode) == price


def test_parse_distance():
    assert parse_distance("'4,5") == 4.5
    assert parse_distance(None) == 0.0
    assert parse_distance(-2) == 0.0
    assert parse_distance("inf") == 0.0
    assert parse_distance("2.5 km") == 2.5
    assert parse_distance(".5") == 0.5


def test_calculate_price_endpoint(client, staff_headers):
    body = client.get(
        "/api/calculate-price", params={"distance": "2.5", "medio_transporte": "Bicicleta"}, headers=staff_headers
    ).json()
    assert body["precio"] == 11.75
    assert body["precioFormateado"] == "Bs. 11.75"
    assert body["distance"] == 2.5


# ────────────── даты ──────────────
def test_normalize_date_to_ddmmyyyy():
    assert normalize_date_to_ddmmyyyy("2025-02-03") == "03/02/2025"
    assert normalize_date_to_ddmmyyyy("2025-02-03T10:00:00Z") == "03/02/2025"
    assert normalize_date_to_ddmmyyyy("3/2/2025") == "03/02/2025"
    assert normalize_date_to_ddmmyyyy("'3/2/2025") == "03/02/2025"
    assert normalize_date_to_ddmmyyyy(date(2025, 2, 3)) == "03/02/2025"
    assert normalize_date_to_ddmmyyyy(1700000000000) == "14/11/2023"
    assert normalize_date_to_ddmmyyyy("31/02/2025") == ""
    assert normalize_date_to_ddmmyyyy("mañana") == ""
    assert normalize_date_to_ddmmyyyy(None) == ""


def test_bolivia_formats():
    now = datetime(2025, 3, 4, 9, 5, 7, tzinfo=BOLIVIA_TZ)
    assert bolivia_date(now) == "04/03/2025"
    assert bolivia_time(now) == "09:05:07"
    assert is_ddmmyyyy(bolivia_date())


def test_parse_ddmmyyyy():
    assert parse_ddmmyyyy("4/3/2025") == date(2025, 3, 4)
    assert parse_ddmmyyyy("'04/03/2025") == date(2025, 3, 4)
    assert parse_ddmmyyyy("2025-03-04") is None
    assert parse_ddmmyyyy("30/02/2025") is None
    assert parse_ddmmyyyy(None) is None


def test_time_helpers():
    assert to_minutes("09:30") == 570
    assert to_minutes("24:00") is None
    assert to_minutes("9") is None
    assert minutes_to_time(570) == "09:30"
    assert minutes_to_time(-1) == "00:00"
    assert format_currency(12.5) == "Bs. 12.50"
    assert format_currency("12") == "Bs. 0.00"
