# pedidos/services/session.py

"""
Сессии поверх JWT.
Токен недействителен, если его jti в чёрном списке (logout)
или он выпущен до старта сервера (рестарт разлогинивает всех).
"""

import random
import string
import time

WEEK_MS = 7 * 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def to_base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    result = ""
    while number:
        number, rest = divmod(number, 36)
        result = digits[rest] + result
    return result or "0"


class SessionManager:
    def __init__(self, start_time_ms: int | None = None):
        self.server_start_time = start_time_ms if start_time_ms is not None else now_ms()
        self.logins = 0
        self.blacklisted_tokens: set[str] = set()

    def generate_token_id(self) -> str:
        return f"{now_ms()}-{to_base36(random.getrandbits(64))}"

    def register(self, token_id: str) -> None:
        self.logins += 1

    def invalidate(self, token_id: str) -> None:
        self.blacklisted_tokens.add(token_id)

    def is_token_valid(self, token_id: str | None, issued_at: int | float | None) -> bool:
        if token_id in self.blacklisted_tokens:
            return False
        if issued_at is None:
            return False
        # iat в секундах, сравниваем с началом секунды старта
        return int(issued_at) * 1000 >= self.server_start_time // 1000 * 1000

    def cleanup_expired(self, max_age_ms: int = WEEK_MS) -> None:
        # токены старше max_age уже истекли по exp
        if now_ms() - self.server_start_time > max_age_ms:
            self.blacklisted_tokens.clear()

    def uptime_ms(self) -> int:
        return now_ms() - self.server_start_time

    def stats(self) -> dict:
        return {
            "serverStartTime": self.server_start_time,
            "serverUptime": self.uptime_ms(),
            "logins": self.logins,
            "blacklistedTokens": len(self.blacklisted_tokens),
        }
