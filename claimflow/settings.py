from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CLAIMFLOW_", env_file=".env", extra="ignore")

    app_name: str = "Claim Workflow Engine"
    log_level: str = "INFO"

    # Per-claim store lock; expiry surfaces as StorageError
    store_lock_timeout_sec: float = 5.0
    # Upper bound on a single subscriber send before it is dropped
    notification_send_timeout_sec: float = 2.0

    first_claim_id: int = 1001
    broadcast_topic: str = "All"
    cors_origins: List[str] = ["*"]


settings = Settings()  # reads from env
