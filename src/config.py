from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    app_name: str = "image-bridge"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    cors_origins: list[str] = ["*"]

    user_agent: str = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
    fetch_timeout: float = 30.0
    pool_max_idle: int = 5
    pool_idle_timeout: float = 30.0
    # Accepts invalid, self-signed and expired certificates when False.
    verify_tls: bool = False
    relay_cache_max_age: int = 86400


settings = Settings()
