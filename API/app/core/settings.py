from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]

    gemini_api_key: str = ""
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    llm_model: str = "gemini-1.5-flash"
    llm_temperature: float = 0.1
    # 0 disables the bound (the provider call may then run indefinitely).
    upstream_timeout_seconds: float = 120.0

    gateway_base_url: str = "http://localhost:8000"
    gateway_timeout_seconds: float = 0.0
    stream_max_chars: int = 1_000_000
    diary_file: str = "data/client/diary.json"
    image_max_width: int = 1024
    image_jpeg_quality: int = 60
    camera_jpeg_quality: int = 80
    camera_countdown_seconds: int = 3

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
