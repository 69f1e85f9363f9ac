"""Application configuration via environment variables."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str

    # Anthropic
    anthropic_api_key: str

    # Auth (bearer JWT issued by the identity provider)
    jwt_secret: str
    jwt_algorithm: str = "HS256"

    # Image storage (S3-compatible bucket)
    s3_bucket: str = "diagnostic-images"
    s3_region: str = "eu-west-3"
    s3_endpoint_url: Optional[str] = None
    image_public_base_url: str = ""
    image_max_bytes: int = 5 * 1024 * 1024
    image_max_count: int = 10

    # CORS: extra origin on top of the built-in allow-list
    allowed_origin: str = ""

    # App
    log_level: str = "INFO"
    environment: str = "development"

    # LLM
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 2000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()  # type: ignore[call-arg]
