# pedidos/utils/errors.py
# Доменные ошибки, которые main.py превращает в HTTP ответы


class ServiceUnavailableError(Exception):
    """Нет связи с внешним сервисом (→ 503)."""

    service = "external"
    label = "el servicio externo"


class SheetsUnavailableError(ServiceUnavailableError):
    service = "google-sheets"
    label = "Google Sheets"


class MapsUnavailableError(ServiceUnavailableError):
    service = "google-maps"
    label = "Google Maps API"


class UsersUnavailableError(ServiceUnavailableError):
    service = "dynamodb"
    label = "la base de usuarios"


class RouteNotFoundError(Exception):
    """Google Maps не нашёл маршрут между точками (→ 404)."""


class SecretsError(Exception):
    """Не удалось загрузить секреты из AWS Secrets Manager."""
