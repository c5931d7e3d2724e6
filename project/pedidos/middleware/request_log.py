# pedidos/middleware/request_log.py

import time

from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestLogMiddleware:
    """Одна строка лога api на каждый HTTP запрос: метод, путь, статус, время, пользователь, IP."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # get_current_user кладёт сюда username
        state = scope.setdefault("state", {})
        started = time.perf_counter()
        status_code = 500

        async def send_wrapper(message: Message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            log = getattr(scope["app"].state, "log", None) if "app" in scope else None
            if log is not None:
                client = scope.get("client")
                await log.log_info(
                    "api",
                    f"{scope['method']} {scope['path']} {status_code}",
                    {
                        "ms": round((time.perf_counter() - started) * 1000, 1),
                        "user": state.get("user"),
                        "ip": client[0] if client else None,
                    },
                    is_console=False,
                )
