from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_AUTH_TOKEN_SECRET = "storefront-dev-auth-secret-change-me"
DEFAULT_GATEWAY_SERVER_KEY = "SB-Mid-server-dev-key"
DEFAULT_GATEWAY_CLIENT_KEY = "SB-Mid-client-dev-key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="SF_", extra="ignore")

    app_name: str = "Storefront Orders"
    env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./storefront.db"

    # Session tokens are minted by the auth provider and verified here.
    auth_token_secret: str = DEFAULT_AUTH_TOKEN_SECRET
    auth_token_ttl_seconds: int = 3600

    # Payment gateway: midtrans | fake
    gateway_mode: str = "midtrans"
    gateway_server_key: str = Field(
        default=DEFAULT_GATEWAY_SERVER_KEY,
        description="Server key used for snap auth and webhook signatures",
    )
    gateway_client_key: str = DEFAULT_GATEWAY_CLIENT_KEY
    gateway_is_production: bool = False
    gateway_sandbox_url: str = "https://app.sandbox.midtrans.com"
    gateway_production_url: str = "https://app.midtrans.com"
    gateway_timeout_seconds: int = 15
    site_url: str = "http://localhost:3000"

    # Flat shipping fees in the smallest currency unit.
    shipping_fee_standard: int = Field(default=20000, ge=0)
    shipping_fee_express: int = Field(default=50000, ge=0)

    order_poll_interval_seconds: float = 3.0
    channel_health_check_seconds: float = 5.0
    list_poll_interval_seconds: float = 15.0
    realtime_connect_timeout_seconds: float = 10.0
    realtime_reconnect_seconds: float = 5.0
    stale_pending_minutes: int = 60

    @property
    def gateway_base_url(self) -> str:
        if self.gateway_is_production:
            return self.gateway_production_url.rstrip("/")
        return self.gateway_sandbox_url.rstrip("/")

    def shipping_fee(self, method: str) -> int:
        if method == "express":
            return self.shipping_fee_express
        if method == "standard":
            return self.shipping_fee_standard
        raise ValueError(f"unknown shipping method: {method}")

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return

        insecure_items: list[str] = []
        if self.auth_token_secret == DEFAULT_AUTH_TOKEN_SECRET:
            insecure_items.append("SF_AUTH_TOKEN_SECRET")
        if self.gateway_mode == "midtrans":
            if self.gateway_server_key == DEFAULT_GATEWAY_SERVER_KEY:
                insecure_items.append("SF_GATEWAY_SERVER_KEY")
            if self.gateway_client_key == DEFAULT_GATEWAY_CLIENT_KEY:
                insecure_items.append("SF_GATEWAY_CLIENT_KEY")

        if insecure_items:
            raise ValueError(
                "insecure default secrets are not allowed outside dev mode; set env vars: "
                + ", ".join(sorted(insecure_items))
            )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
