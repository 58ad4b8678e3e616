import os
from dataclasses import dataclass


def _get_bool(env_name: str, default: bool = False) -> bool:
    val = os.getenv(env_name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    # App
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    INSTANCE_ID: str = os.getenv("INSTANCE_ID", "unknown")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database (SQLite by default in a Docker volume)
    DB_URL: str = os.getenv("DB_URL", "sqlite+aiosqlite:////data/orders.db")
    DB_ECHO: bool = _get_bool("DB_ECHO", False)

    # Redis (product/stock cache and stock change fan-out)
    REDIS_ENABLED: bool = _get_bool("REDIS_ENABLED", True)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "redis")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_USERNAME: str = os.getenv("REDIS_USERNAME", "")
    REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
    REDIS_SSL: bool = _get_bool("REDIS_SSL", False)
    REDIS_STOCK_CHANNEL: str = os.getenv("REDIS_STOCK_CHANNEL", "stock-updates")

    # Kafka (order lifecycle events)
    KAFKA_ENABLED: bool = _get_bool("KAFKA_ENABLED", True)
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
    ORDER_EVENTS_TOPIC: str = os.getenv("ORDER_EVENTS_TOPIC", "order-events")
    # seconds to wait after a failed producer start before trying again
    KAFKA_RETRY_COOLDOWN: float = float(os.getenv("KAFKA_RETRY_COOLDOWN", "30"))

    # Identity: caller id forwarded by the authenticating gateway
    IDENTITY_HEADER: str = os.getenv("IDENTITY_HEADER", "X-User-Id")

    # Defaults for seeding
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "admin@ecommerce.com")
    ADMIN_NAME: str = os.getenv("ADMIN_NAME", "Administrador")


settings = Settings()
