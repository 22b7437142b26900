from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Incident Triage API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    aws_region: str = "us-east-1"
    # Foundation model ID; some regions/accounts need an inference profile ID instead (e.g. `eu.amazon.nova-lite-v1:0`).
    bedrock_model_id: str = "amazon.nova-lite-v1:0"
    extraction_temperature: float = 0.2
    repair_temperature: float = 0.1
    extraction_max_tokens: int = 4096
    repair_on_schema_errors: bool = True

    ticket_max_chars: int = 10_000
    attachment_max_chars: int = 6_000
    normalize_concurrency: int = 4
    max_upload_files: int = 10
    max_upload_file_bytes: int = 10 * 1024 * 1024
    max_upload_batch_bytes: int = 25 * 1024 * 1024

    pdf_render_scale: int = 2

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
