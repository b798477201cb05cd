"""Central environment-driven settings for the ordering/payment service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "foodpay-api"
    log_level: str = "INFO"
    database_dsn: str
    api_key: str
    redis_url: str = "redis://redis:6379/0"
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    tracing_enabled: bool = True
    gateway_base_url: str = "https://api.razorpay.com/v1"
    gateway_key_id: str = ""
    gateway_key_secret: str = ""
    gateway_webhook_secret: str = ""
    gateway_timeout_seconds: float = 10.0
    payment_currency: str = "INR"
    webhook_dedupe_ttl_seconds: int = 86400
    notification_queue_size: int = 100
    notification_send_timeout_seconds: float = 2.0
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def gateway_configured(self) -> bool:
        return bool(self.gateway_key_id and self.gateway_key_secret)


settings = CommonSettings()
