"""Application settings and configuration.

This module defines all configuration options for the payout router.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RELAYS = [
    "wss://relay.damus.io",
    "wss://nos.lol",
    "wss://relay.primal.net",
]


class Settings(BaseSettings):
    """Payout router settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="ChainLinks Payouts", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Lightning address resolution
    fallback_domain: str = Field(default="npubx.cash", alias="PAYOUT_FALLBACK_DOMAIN")
    lnurl_http_timeout_seconds: float = Field(default=10.0, alias="LNURL_HTTP_TIMEOUT_SECONDS")

    # Batch settlement
    payout_interval_seconds: float = Field(default=0.5, alias="PAYOUT_INTERVAL_SECONDS")
    payout_comment: str = Field(default="ChainLinks payout", alias="PAYOUT_COMMENT")
    direct_comment_template: str = Field(
        default="ChainLinks payout to {name}",
        alias="PAYOUT_DIRECT_COMMENT_TEMPLATE",
    )
    dm_message_template: str = Field(
        default="You received {amount} sats from a ChainLinks round!",
        alias="PAYOUT_DM_MESSAGE_TEMPLATE",
    )

    # Gift wrap messaging (NIP-59)
    rumor_kind: int = Field(default=14, alias="GIFT_WRAP_RUMOR_KIND")
    timestamp_window_seconds: int = Field(
        default=24 * 60 * 60,
        alias="GIFT_WRAP_TIMESTAMP_WINDOW_SECONDS",
    )
    relays: list[str] = Field(default=DEFAULT_RELAYS, alias="NOSTR_RELAYS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("payout_interval_seconds")
    @classmethod
    def _non_negative_interval(cls, value: float) -> float:
        if value < 0:
            raise ValueError("payout interval must not be negative")
        return value

    @field_validator("timestamp_window_seconds")
    @classmethod
    def _positive_window(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("timestamp window must be positive")
        return value


settings = Settings()
