from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Dispatch service settings loaded from environment."""

    # Service
    service_name: str = "sms-dispatch"
    log_level: str = "INFO"
    log_json: bool = True
    debug: bool = False

    # Dispatch policy
    default_provider: str = "twilio"
    fallback_enabled: bool = True
    fallback_providers: list[str] = ["vonage", "aws_sns"]
    provider_timeout: float = 15.0

    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""

    # Vonage
    vonage_api_key: str = ""
    vonage_api_secret: str = ""
    vonage_from_number: str = ""

    # AWS
    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_endpoint_url: str | None = None  # For LocalStack
    sns_sender_id: str = ""

    # Hardware gateway
    gateway_send_path: str = "/api/send_sms"
    gateway_login_path: str = "/api/login"
    gateway_status_paths: list[str] = [
        "/api/check_status",
        "/api/status",
        "/api/get_status",
        "/api/sms_status",
    ]
    gateway_inventory_paths: list[str] = [
        "/api/get_sim_status",
        "/api/sim_status",
        "/api/status",
        "/api/get_status",
    ]
    gateway_connect_timeout: float = 10.0
    gateway_auth_timeout: float = 15.0
    gateway_send_timeout: float = 30.0
    gateway_status_timeout: float = 15.0
    gateway_inventory_timeout: float = 10.0
    gateway_verify_tls: bool = True

    # Campaigns
    campaign_queue_backend: str = "memory"  # memory | kinesis
    kinesis_stream_name: str = "sms-campaigns"
    kinesis_batch_limit: int = 100
    kinesis_poll_interval: float = 1.0
    kinesis_retry_delay: float = 5.0
    campaign_ledger_ttl_seconds: int = 86400
    campaign_ledger_max_entries: int = 10000

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
