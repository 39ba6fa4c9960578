from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Natours API"
    app_version: str = "0.1.0"
    node_env: str = "development"
    host: str = "0.0.0.0"
    port: int = 3000
    database: str = "sqlite:///./natours.db"
    database_password: str = ""
    redis_url: str | None = None
    log_level: str = "INFO"
    log_json: bool = False

    jwt_secret: str = "natours-local-development-secret-change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_in_days: int = 90
    jwt_cookie_expires_in_days: int = 90

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""

    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 60 * 60
    body_limit_bytes: int = 10 * 1024
    webhook_body_limit_bytes: int = 100 * 1024

    model_config = SettingsConfigDict(
        env_file=("config.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        return self.database.replace("<PASSWORD>", self.database_password)

    @property
    def is_development(self) -> bool:
        return self.node_env == "development"

    @property
    def rate_limit_storage_uri(self) -> str:
        return f"async+{self.redis_url}" if self.redis_url else "async+memory://"


settings = Settings()
