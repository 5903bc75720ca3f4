import os
from dotenv import load_dotenv

load_dotenv()


def _int_list(raw: str) -> list[int]:
    return [int(part) for part in raw.split(",") if part.strip()]


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./marketplace.db")
    SUBSCRIBER_RADIUS_MILES: int = int(os.getenv("SUBSCRIBER_RADIUS_MILES", 50))
    SUBSCRIBER_RADIUS_TIERS: list[int] = _int_list(os.getenv("SUBSCRIBER_RADIUS_TIERS", "25,50,100"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    SEED_ON_STARTUP: bool = os.getenv("SEED_ON_STARTUP", "true").lower() == "true"

settings = Settings()
