from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/docbox.db"

    # Auth
    secret_key: str = "dev-secret-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    refresh_token_expire_days: int = 7

    # Storage
    storage_path: str = "./data/files"
    max_upload_size: int = 10 * 1024 * 1024  # 10MB

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    # Thai tax defaults
    vat_rate: float = 7.0
    default_wht_rate: float = 3.0
    wht_due_days: int = 7

    # Export
    export_history_limit: int = 50
    export_max_boxes: int = 1000

    # Integrations
    webhook_timeout_seconds: float = 10.0
    line_notify_url: str = "https://notify-api.line.me/api/notify"
    line_push_url: str = "https://api.line.me/v2/bot/message/push"

    # SMTP defaults for e-mail integrations
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = ""
    smtp_from_name: str = "DocBox"
    smtp_use_tls: bool = True

    # Scheduler
    scheduler_enabled: bool = True
    sweep_hour: int = 9

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.database_url
