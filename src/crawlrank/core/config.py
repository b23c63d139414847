"""
Configuration

Environment-driven settings for the crawler, the index and the search server.
Values are read once at import time; components take their parameters
explicitly and only the CLI and the server read `settings`.
"""

import os
from enum import Enum
from pathlib import Path


class Environment(str, Enum):
    """Application environment"""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"


def _get_environment() -> Environment:
    """Get and validate ENVIRONMENT variable."""
    env_value = os.getenv("ENVIRONMENT", Environment.DEVELOPMENT.value)
    try:
        return Environment(env_value.lower())
    except ValueError:
        raise RuntimeError(
            f"Invalid ENVIRONMENT value: '{env_value}'. "
            "Must be 'production', 'development', or 'test'."
        )


def _get_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class InfrastructureSettings:
    """Infrastructure-level configuration (paths, database, logging)"""

    # Project Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"

    # Database
    DB_PATH: str = os.getenv("CRAWLRANK_DB", str(DATA_DIR / "crawlrank.db"))

    # Environment
    ENVIRONMENT: Environment = _get_environment()
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


class Settings(InfrastructureSettings):
    """Crawler, ranking and server configuration"""

    # Application
    APP_NAME: str = "crawlrank"
    APP_VERSION: str = "0.1.0"

    # Crawler Behavior
    CRAWL_MAX_DEPTH: int = int(os.getenv("CRAWL_MAX_DEPTH", "3"))
    CRAWL_LOOSE: bool = _get_bool("CRAWL_LOOSE")
    CRAWL_RELAX_TIME_MIN: float = float(os.getenv("CRAWL_RELAX_TIME_MIN", "10"))
    CRAWL_TIMEOUT_SEC: float = float(os.getenv("CRAWL_TIMEOUT_SEC", "15"))
    CRAWL_DNS_TIMEOUT_SEC: float = float(os.getenv("CRAWL_DNS_TIMEOUT_SEC", "5"))
    CRAWL_HIGH_WATER_MARK: int = int(os.getenv("CRAWL_HIGH_WATER_MARK", "64"))
    CRAWL_MAX_RESPONSE_BYTES: int = int(
        os.getenv("CRAWL_MAX_RESPONSE_BYTES", str(10 * 1024 * 1024))
    )
    CRAWL_IGNORE_NOFOLLOW: bool = _get_bool("CRAWL_IGNORE_NOFOLLOW")
    CRAWL_LINK_STEM_LIMIT: int = int(os.getenv("CRAWL_LINK_STEM_LIMIT", "10"))
    CRAWL_LANGUAGES: list[str] = [
        s.strip().lower()
        for s in os.getenv("CRAWL_LANGUAGES", "en,ru").split(",")
        if s.strip()
    ]
    CRAWL_INFO_INTERVAL: int = int(os.getenv("CRAWL_INFO_INTERVAL", "100"))
    CRAWL_SEEDS: list[str] = [
        s.strip() for s in os.getenv("CRAWL_SEEDS", "").split() if s.strip()
    ]

    # Authority
    PAGERANK_ITERATIONS: int = int(os.getenv("PAGERANK_ITERATIONS", "20"))

    # Search
    RESULTS_LIMIT: int = int(os.getenv("RESULTS_LIMIT", "10"))
    MAX_PER_PAGE: int = int(os.getenv("MAX_PER_PAGE", "50"))
    MAX_QUERY_LEN: int = int(os.getenv("MAX_QUERY_LEN", "200"))

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))


def validate_settings(settings: Settings) -> None:
    """Raise RuntimeError listing every malformed setting."""
    errors = []
    positive = [
        "CRAWL_MAX_DEPTH",
        "CRAWL_TIMEOUT_SEC",
        "CRAWL_HIGH_WATER_MARK",
        "CRAWL_MAX_RESPONSE_BYTES",
        "CRAWL_LINK_STEM_LIMIT",
        "CRAWL_INFO_INTERVAL",
        "PAGERANK_ITERATIONS",
        "RESULTS_LIMIT",
        "MAX_PER_PAGE",
    ]
    for name in positive:
        if getattr(settings, name) <= 0:
            errors.append(f"{name} must be positive")
    if settings.CRAWL_RELAX_TIME_MIN < 0:
        errors.append("CRAWL_RELAX_TIME_MIN must not be negative")
    if not settings.CRAWL_LANGUAGES:
        errors.append("CRAWL_LANGUAGES must name at least one language")

    if errors:
        raise RuntimeError("Invalid configuration: " + "; ".join(errors))


settings = Settings()
