# pedidos/utils/dates.py
# Даты и время в часовом поясе Боливии (UTC-4)

import re
from datetime import date, datetime, timedelta, timezone

BOLIVIA_TZ = timezone(timedelta(hours=-4))

DDMMYYYY_RE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")


def bolivia_now() -> datetime:
    return datetime.now(BOLIVIA_TZ)


def bolivia_date(now: datetime | None = None) -> str:
    """Текущая дата DD/MM/YYYY."""
    return f"{(now or bolivia_now()):%d/%m/%Y}"


def bolivia_time(now: datetime | None = None) -> str:
    """Текущее время HH:MM:SS."""
    return f"{(now or bolivia_now()):%H:%M:%S}"


def bolivia_timestamp(now: datetime | None = None) -> str:
    return (now or bolivia_now()).isoformat(timespec="milliseconds")


def is_ddmmyyyy(value) -> bool:
    return bool(DDMMYYYY_RE.match(str(value).strip())) if value is not None else False


def normalize_date_to_ddmmyyyy(value) -> str:
    """
    Приводит дату к формату DD/MM/YYYY.
    Принимает datetime/date, epoch в миллисекундах, ISO строку (YYYY-MM-DD...) и D/M/YYYY.
    Нераспознанное значение → пустая строка.
    """
    if value is None or value == "":
        return ""

    if isinstance(value, datetime):
        return f"{value:%d/%m/%Y}"
    if isinstance(value, date):
        return f"{value:%d/%m/%Y}"
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=BOLIVIA_TZ)
        except (OverflowError, OSError, ValueError):
            return ""
        return f"{parsed:%d/%m/%Y}"

    text = str(value).strip()
    if text.startswith("'"):
        text = text[1:].strip()

    match = re.match(r"^(\d{1,2})/(\d{1,2})/(\d{4})$", text)
    if match:
        day, month, year = (int(x) for x in match.groups())
        try:
            return f"{date(year, month, day):%d/%m/%Y}"
        except ValueError:
            return ""

    match = re.match(r"^(\d{4})-(\d{1,2})-(\d{1,2})", text)
    if match:
        year, month, day = (int(x) for x in match.groups())
        try:
            return f"{date(year, month, day):%d/%m/%Y}"
        except ValueError:
            return ""

    return ""


def parse_ddmmyyyy(value) -> date | None:
    """Строгий разбор D/M/YYYY (допускается ведущий апостроф)."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip().lstrip("'").strip()
    if not DDMMYYYY_RE.match(text):
        return None
    day, month, year = (int(x) for x in text.split("/"))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_minutes(value) -> int | None:
    """'HH:MM' → минуты от полуночи."""
    if not value or not isinstance(value, str):
        return None
    parts = value.split(":")
    if len(parts) < 2:
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def minutes_to_time(minutes) -> str:
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)) or minutes != minutes or minutes < 0:
        return "00:00"
    hours = int(minutes // 60) % 24
    mins = int(minutes % 60)
    return f"{hours:02d}:{mins:02d}"


def format_currency(amount) -> str:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount != amount:
        return "Bs. 0.00"
    return f"Bs. {amount:.2f}"
