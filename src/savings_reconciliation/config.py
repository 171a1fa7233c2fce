from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    portal_env: str = "development"
    log_level: str = "INFO"

    supabase_url: str = ""
    supabase_service_role_key: str = ""

    max_upload_bytes: int = 10 * 1024 * 1024
    accepted_upload_types: list[str] = [
        "text/csv",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ]

    header_scan_rows: int = 5
    fuzzy_match_threshold: float = 0.7
    unit_match_bonus: float = 0.3
    min_token_length: int = 3

    notifications_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("accepted_upload_types", mode="before")
    @classmethod
    def _split_upload_types(cls, value: object) -> list[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if value is None:
            return []
        return list(value)


settings = Settings()
