"""Event forwarder configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via env vars.
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class GraphConfig(BaseSettings):
    """Microsoft Graph mailbox connection settings."""

    model_config = {"env_prefix": "GRAPH_"}

    tenant_id: str = Field(description="Azure AD tenant ID")
    client_id: str = Field(description="App registration client ID")
    client_secret: SecretStr = Field(description="App registration client secret")
    mailbox: str = Field(description="UPN or SMTP address of the watched mailbox")
    base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Graph API base URL",
    )
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        description="Identity platform authority host",
    )
    timeout_seconds: float = Field(default=30.0, description="HTTP request timeout")
    poll_interval_seconds: float = Field(
        default=10.0,
        description="Seconds between inbox delta polls",
    )

    @property
    def authority(self) -> str:
        return f"{self.authority_host.rstrip('/')}/{self.tenant_id}"


class ForwarderConfig(BaseSettings):
    """Timing and content settings for the forwarding pipeline."""

    model_config = {"env_prefix": "FORWARDER_"}

    quiescence_seconds: float = Field(
        default=1.5,
        ge=0.0,
        description="Delay before the authoritative discarded-folder re-check",
    )
    pause_minutes: float = Field(
        default=30.0,
        gt=0.0,
        description="Default length of the pause window",
    )
    event_lead_minutes: float = Field(
        default=10.0,
        description="Minutes from now at which the forwarded event starts",
    )
    event_duration_minutes: float = Field(
        default=30.0,
        gt=0.0,
        description="Length of the forwarded event",
    )
    subject_prefix: str = Field(
        default="FW: ",
        description="Prefix prepended to the original subject",
    )
    temp_dir: str | None = Field(
        default=None,
        description="Parent directory for transient attachment files (system temp if unset)",
    )


class TargetSettings(BaseSettings):
    """The forward target, re-read on every forwarding decision."""

    model_config = {"env_prefix": "FORWARDER_"}

    target_address: str = Field(
        default="",
        description="Address that receives forwarded events (empty disables forwarding)",
    )


class ServiceConfig(BaseSettings):
    """Root configuration for a forwarder service instance.

    Nested configs are populated from their own env-var prefixes.
    """

    model_config = {"env_prefix": "SERVICE_"}

    name: str = Field(default="event-forwarder", description="Service instance name")
    control_host: str = Field(
        default="127.0.0.1",
        description="Bind host for the control API (its routes are unauthenticated)",
    )
    control_port: int = Field(default=8080, description="Port for the control and health API")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level")

    forwarder: ForwarderConfig = Field(default_factory=ForwarderConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
