# capes/config.py
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/capes"
    env: Literal["dev", "stage", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"
    access_log: bool = True
    sql_echo: bool = False
    auto_init_db: bool = True

    # Resolution settings
    cape_types: list[str] = ["minecraft", "optifine", "labymod", "minecraftcapes"]
    freshness_seconds: int = 600  # Don't refetch capes confirmed within the last 10 minutes
    coalesce_requests: bool = True
    public_base_url: str = "http://localhost:8080"
    user_agent: str = "CapeResolver/1.0 (+https://github.com/capes-dev)"

    # Upstream timeouts (seconds)
    identity_timeout: float = 10.0
    provider_timeout: float = 15.0
    content_store_timeout: float = 30.0

    # Identity lookups
    mojang_api_url: str = "https://api.mojang.com"
    session_server_url: str = "https://sessionserver.mojang.com"

    # S3 storage settings
    s3_bucket_name: Optional[str] = None
    s3_region: str = "us-east-1"
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_public_url_base: Optional[str] = None
    image_storage_local: bool = False  # True = local filesystem (dev only)
    local_image_root: str = "capes/static/img"

    # Derived image settings
    transform_scale: int = 8  # Nearest-neighbour upscale factor for crops
    artifact_settle_seconds: float = 0.0

    @property
    def is_dev(self) -> bool:
        return self.env == "dev" or self.debug is True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
