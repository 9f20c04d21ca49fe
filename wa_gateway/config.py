from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Session
    session_path: str = "./auth_info"
    transport_factory: Optional[str] = None
    connect_retry_delay: float = 5.0
    session_reset_reconnect_delay: float = 2.0

    # Inbound messages
    message_age_threshold: int = 60
    message_buffer_size: int = 10

    # Webhook
    webhook_endpoint: str = "http://localhost:4600/api/webhook/whatsapp"
    webhook_timeout: float = 10.0
    webhook_retries: int = 3
    webhook_enabled: bool = True

    # Media upload
    upload_endpoint: str = "http://localhost:4500/api/media/upload"
    upload_api_key: str = ""
    upload_timeout: float = 30.0
    max_file_size: int = 10 * 1024 * 1024

    # AI
    openrouter_api_key: str = ""
    openrouter_endpoint: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_model: str = "anthropic/claude-3.5-sonnet"
    openrouter_timeout: float = 30.0
    openrouter_max_tokens: int = 4000
    openrouter_temperature: float = 0.7

    # Triggers
    triggers_path: Optional[str] = None
    report_default_category: str = "CM"

    # HTTP
    api_prefix: str = "/api"
    cors_allow_origins: str = "*"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
