import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./schoolcup.db")
SQL_ECHO = _env_flag("SQL_ECHO", "false")

# Period boundaries are local hours; all stored timestamps are naive local time in this zone
TOURNAMENT_TIMEZONE = os.getenv("TOURNAMENT_TIMEZONE", "America/Sao_Paulo")

SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "true")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    CORS_ORIGINS.extend(o.strip() for o in _extra.split(",") if o.strip())


def get_timezone() -> ZoneInfo:
    return ZoneInfo(TOURNAMENT_TIMEZONE)
