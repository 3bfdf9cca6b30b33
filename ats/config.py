"""ATS engine configuration via pydantic-settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_ROLE_WEIGHTS: dict[str, float] = {
    "sourcer": 40,
    "submitter": 30,
    "closer": 20,
    "support": 10,
}


class ATSSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///ats.db"
    echo_sql: bool = False
    app_title: str = "Recruiting ATS"
    service_name: str = "ats-service"
    log_level: str = "INFO"

    # Event bus (empty = log events locally instead of posting them)
    event_bus_url: str = ""
    event_publish_timeout_seconds: float = 5.0

    # Upstream recruiter directory (empty = use the local recruiter tables)
    network_service_url: str = ""
    network_service_timeout_seconds: float = 5.0

    # Engine defaults
    protection_window_days: int = 365
    guarantee_days: int = 90
    recruiter_share_ratio: float = 0.5
    proposal_response_hours: int = 72
    urgent_window_hours: int = 24
    role_weights: dict[str, float] = dict(DEFAULT_ROLE_WEIGHTS)

    model_config = {"env_prefix": "ATS_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = ATSSettings()


@dataclass(frozen=True)
class EnginePolicy:
    """Tunable business defaults handed to each engine service."""

    protection_window_days: int = 365
    guarantee_days: int = 90
    recruiter_share_ratio: float = 0.5
    proposal_response_hours: int = 72
    urgent_window_hours: int = 24
    role_weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ROLE_WEIGHTS))
    source_service: str = "ats-service"

    @classmethod
    def from_settings(cls, settings_obj: ATSSettings | None = None) -> EnginePolicy:
        s = settings_obj or settings
        return cls(
            protection_window_days=s.protection_window_days,
            guarantee_days=s.guarantee_days,
            recruiter_share_ratio=s.recruiter_share_ratio,
            proposal_response_hours=s.proposal_response_hours,
            urgent_window_hours=s.urgent_window_hours,
            role_weights={**DEFAULT_ROLE_WEIGHTS, **(s.role_weights or {})},
            source_service=s.service_name,
        )
