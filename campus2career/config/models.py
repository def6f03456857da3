"""Configuration schema models using Pydantic."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    JSON = "json"
    KEY_VALUE = "key-value"


class EmailConfig(BaseModel):
    """Mail transport delivery settings."""

    use_tls: bool = Field(True, description="Use STARTTLS (or implicit TLS on port 465)")
    timeout_seconds: float = Field(10.0, ge=1, le=60, description="SMTP socket timeout")
    max_retries: int = Field(2, ge=0, le=10, description="Extra attempts for retryable failures")
    retry_initial_delay: float = Field(1.0, ge=0, le=60, description="First retry delay in seconds")
    retry_backoff_multiplier: float = Field(2.0, ge=1.0, le=10.0, description="Backoff multiplier")
    retry_max_delay: float = Field(5.0, ge=0, le=300, description="Upper bound for a single delay")
    rate_limit_per_minute: int = Field(50, ge=1, le=10000, description="Sends allowed per 60s window")
    log_capacity: int = Field(1000, ge=1, le=100000, description="Delivery log entries kept in memory")

    @model_validator(mode="after")
    def check_delay_bounds(self) -> "EmailConfig":
        if self.retry_max_delay < self.retry_initial_delay:
            raise ValueError("retry_max_delay must be >= retry_initial_delay")
        return self


class MarketplaceConfig(BaseModel):
    """External transaction process settings."""

    timeout_seconds: float = Field(10.0, ge=1, le=60, description="HTTP request timeout")
    process_alias: str = Field("default-project-application/release-1", min_length=1)
    inquiry_transition: str = Field("transition/inquire-without-payment", min_length=1)
    accept_transition: str = Field("transition/accept", min_length=1)
    decline_transition: str = Field("transition/decline", min_length=1)
    user_agent: str = Field("Campus2Career/0.1 (+https://street2ivy.com)", min_length=1)

    @field_validator("inquiry_transition", "accept_transition", "decline_transition")
    @classmethod
    def require_transition_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("transition/"):
            raise ValueError("transition names must start with 'transition/'")
        return v


class ReconciliationConfig(BaseModel):
    """Periodic repair of applications drifting from the external process."""

    enabled: bool = True
    interval_minutes: int = Field(15, ge=1, le=1440)
    batch_size: int = Field(100, ge=1, le=1000)


class TasksConfig(BaseModel):
    max_workers: int = Field(4, ge=1, le=64, description="Background fan-out worker threads")


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(8000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root application configuration. Every section has working defaults."""

    email: EmailConfig = Field(default_factory=EmailConfig)
    marketplace: MarketplaceConfig = Field(default_factory=MarketplaceConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
