from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for scheduler jobs that bypass RLS

    # AWS S3 photo storage (will read from uppercase env vars automatically)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "ap-northeast-2"
    s3_bucket_name: Optional[str] = None
    s3_public_base_url: Optional[str] = None  # e.g. CloudFront domain; defaults to the bucket URL

    # Firebase Cloud Messaging
    firebase_service_account_json: Optional[str] = None  # JSON key as string
    firebase_service_account_path: Optional[str] = None

    # Naver Cloud Platform SENS (SMS)
    ncp_access_key: Optional[str] = None
    ncp_secret_key: Optional[str] = None
    ncp_sms_service_id: Optional[str] = None  # ncp:sms:kr:<project>:<service>
    ncp_sms_from_number: Optional[str] = None
    sms_timeout_seconds: float = 10.0

    # Discovery
    discovery_default_radius_km: float = 10.0
    discovery_max_radius_km: float = 100.0

    # Tickets
    initial_free_tickets: int = 1
    ticket_history_retention_months: int = 6

    # Phone verification
    verification_code_ttl_minutes: int = 5
    verification_max_attempts: int = 5
    verified_phone_window_minutes: int = 10

    # App
    app_name: str = "otgit-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:3001,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    enable_schedulers: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
