"""Configuration schema using Pydantic.

Single data model and defaults for the desktop shell, persisted to ~/.clawx/config.json.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayProcessConfig(BaseModel):
    """How to launch the gateway when none is already listening."""
    command: str = "openclaw"
    # "{port}" is replaced with gateway.port at launch time.
    args: list[str] = Field(default_factory=lambda: ["gateway", "run", "--port", "{port}"])
    env: dict[str, str] = Field(default_factory=dict)  # Extra env vars merged over os.environ
    cwd: str | None = None


class GatewayConfig(BaseModel):
    """Gateway supervision and transport configuration."""
    host: str = "localhost"
    port: int = Field(default=18789, ge=1, le=65535)
    health_path: str = "/health"
    ws_path: str = "/ws"
    auto_start: bool = True  # Start (or adopt) the gateway when the shell initializes

    probe_timeout_seconds: float = 2.0  # Adoption probe
    ready_probe_timeout_seconds: float = 1.0  # Each readiness poll after launch
    ready_max_attempts: int = 30
    ready_interval_seconds: float = 1.0

    connect_timeout_seconds: float = 10.0
    rpc_timeout_seconds: float = 30.0
    heartbeat_interval_seconds: float = 30.0
    # None keeps liveness passive; a value closes the socket when a pong is this late.
    pong_timeout_seconds: float | None = None
    reconnect_delay_seconds: float = 5.0

    terminate_timeout_seconds: float = 5.0

    process: GatewayProcessConfig = Field(default_factory=GatewayProcessConfig)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.port}{self.ws_path}"


class LoggingConfig(BaseModel):
    """Diagnostic log sink configuration."""
    level: str = "INFO"
    file_enabled: bool = True


class Config(BaseSettings):
    """Root configuration for clawx."""
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="CLAWX_",
        env_nested_delimiter="__",
    )
