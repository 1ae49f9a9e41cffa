from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "IP Diagnostics Center"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database
    database_url: str = "sqlite:///./diagnostics.db"

    # Tracking links
    base_url: str = "http://127.0.0.1:8000"
    link_code_strategy: str = "random_hex"  # Options: "random_hex", "base62"
    link_code_bytes: int = 8  # random_hex: 8 bytes -> 16 hex characters
    link_code_salt: int = 1256  # Salt for Base62 strategy
    link_code_max_length: int = 16
    max_retries: int = 5

    # Geolocation backend
    geo_backend: str = "ip_api"  # Options: "ip_api", "static"
    geo_api_url: str = "http://ip-api.com/batch"
    geo_api_fields: str = (
        "status,message,continent,continentCode,country,countryCode,region,"
        "regionName,city,district,zip,lat,lon,timezone,offset,currency,isp,"
        "org,as,asname,reverse,mobile,proxy,hosting,query"
    )
    geo_timeout: int = 10  # Seconds
    geo_batch_limit: int = 50  # Upstream batch cap

    # Cache settings
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 3600  # Cache TTL in seconds (1 hour)
    geo_cache_ttl: int = 86400  # Geolocation records (1 day)

    # Alerts
    alert_ttl_days: int = 7

    # Anomaly detection
    rapid_change_distance_km: float = 500.0
    rapid_change_window_minutes: int = 60

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
