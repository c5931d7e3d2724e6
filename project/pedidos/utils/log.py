# pedidos/utils/log.py
# Логирование событий

import os
import time
import datetime
import logging
from aiologger import Logger
from aiologger.handlers.files import AsyncFileHandler

from pedidos.config import settings


class Log:
    def __init__(self, log_dir: str | None = None):
        self.log_dir = log_dir or settings.LOG_DIR
        os.makedirs(self.log_dir, exist_ok=True)
        self.handlers = {}
        self.log_print = settings.LOG_PRINT.lower() in ("1", "true", "yes")
        # ключ ошибки -> время последней записи (для throttling)
        self.last_logged: dict[str, float] = {}

    def build_log_path(self, now: datetime.datetime) -> str:
        """
        Формируем путь к лог-файлу:
        pedidos/log/2025/10/04.log
        """
        base_dir = os.path.join(self.log_dir, f"{now.year}", f"{now:%m}")
        os.makedirs(base_dir, exist_ok=True)
        return os.path.join(base_dir, f"{now:%d}.log")

    async def get_logger(self, target: str, now: datetime.datetime) -> Logger:
        """Асинхронный логгер для target."""
        log_path = self.build_log_path(now)

        current = self.handlers.get(target)
        if current is None or current["path"] != log_path:
            handler = AsyncFileHandler(filename=log_path, mode="a", encoding="utf-8")
            target_logger = Logger(name=f"pedidos_{target}")
            target_logger.add_handler(handler)

            if current is not None:
                await current["logger"].shutdown()

            self.handlers[target] = {"path": log_path, "logger": target_logger}

        return self.handlers[target]["logger"]

    def format_line(self, target: str, message: str, data: dict | None, now: datetime.datetime) -> str:
        line = f"{now:%d.%m.%Y %H:%M:%S} {target}: {message}"
        if data:
            line += f": {self.safe_serialize(data)}"
        return line

    # Асинхронное
    async def log_info(
        self,
        target: str = "",
        message: str = "",
        data: dict | None = None,
        is_console: bool = None,
    ):
        now = datetime.datetime.now()
        line = self.format_line(target, message, data, now)

        target_logger = await self.get_logger(target, now)
        await target_logger.info(line)

        should_print = self.log_print if is_console is None else is_console
        if should_print:
            print(line)

    async def log_warning(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None):
        await self.log_info(target, f"WARNING: {message}", data, is_console)

    async def log_error(
        self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = True
    ):
        await self.log_info(target, f"ERROR: {message}", data, is_console)

    async def log_error_throttled(
        self, target: str, key: str, message: str, data: dict | None = None, interval: float = 60.0
    ) -> bool:
        """
        Пишет ошибку не чаще одного раза в interval секунд для ключа key.
        Возвращает True, если запись сделана.
        """
        now = time.monotonic()
        last = self.last_logged.get(key)
        if last is not None and now - last < interval:
            return False
        self.last_logged[key] = now
        await self.log_error(target, message, data)
        return True

    # Синхронное
    def log_info_sync(
        self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None
    ):
        now = datetime.datetime.now()
        log_path = self.build_log_path(now)
        line = self.format_line(target, message, data, now)

        logger = logging.getLogger(f"pedidos_sync_{target}")
        logger.setLevel(logging.INFO)
        logger.propagate = False

        # при смене дня переключаем файл
        for old in list(logger.handlers):
            if getattr(old, "baseFilename", None) != os.path.abspath(log_path):
                logger.removeHandler(old)
                old.close()
        if not logger.handlers:
            handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(handler)

        logger.info(line)

        should_print = self.log_print if is_console is None else is_console
        if should_print:
            print(line)

    def log_warning_sync(self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None):
        self.log_info_sync(target, f"WARNING: {message}", data, is_console)

    def log_error_sync(
        self, target: str = "", message: str = "", data: dict | None = None, is_console: bool = None
    ):
        self.log_info_sync(target, f"ERROR: {message}", data, is_console)

    def safe_serialize(self, obj):
        """
        Преобразуем объект в сериализуемый вид для лога:
        - dict, list, tuple рекурсивно
        - Pydantic модели через model_dump
        - любые несериализуемые объекты → строка с типом
        """
        if obj is None:
            return None
        elif isinstance(obj, (str, int, float, bool)):
            return obj
        elif isinstance(obj, dict):
            return {k: self.safe_serialize(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple, set)):
            return [self.safe_serialize(v) for v in obj]
        elif hasattr(obj, "model_dump"):  # Pydantic
            return self.safe_serialize(obj.model_dump())
        elif hasattr(obj, "__dict__"):
            return {k: self.safe_serialize(v) for k, v in vars(obj).items() if not k.startswith("_")}
        else:
            return f"<{type(obj).__name__}>"

    async def shutdown(self):
        for h in list(self.handlers.values()):
            await h["logger"].shutdown()
        self.handlers.clear()
