"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import List, Literal

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import AvailabilityPolicy, BusinessHours


def _parse_clock(value: str) -> time:
    try:
        hour, minute = (int(part) for part in value.split(":"))
        return time(hour=hour, minute=minute)
    except ValueError as exc:
        raise ValueError(f"Expected a time as HH:MM, got {value!r}") from exc


class BusinessHoursConfig(BaseModel):
    """Opening hours during which viewings may be offered."""
    open: str = "09:00"
    close: str = "18:00"
    closed_weekdays: List[int] = Field(default_factory=list)  # 0=Monday, 6=Sunday

    @field_validator("open", "close")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Validate HH:MM format."""
        _parse_clock(value)
        return value

    @field_validator("closed_weekdays")
    @classmethod
    def validate_closed_weekdays(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure the agency opens before it closes."""
        if _parse_clock(self.close) <= _parse_clock(self.open):
            raise ValueError("close must be later than open")
        return self

    def to_business_hours(self, timezone: str) -> BusinessHours:
        return BusinessHours(
            open_time=_parse_clock(self.open),
            close_time=_parse_clock(self.close),
            closed_weekdays=tuple(self.closed_weekdays),
            timezone=timezone,
        )


class BookingConfig(BaseModel):
    """Availability and slot rules."""
    minimum_free_gap_minutes: int = 30
    slot_duration_minutes: int = 60
    slot_step_minutes: int = 30
    all_day_means_fully_busy: bool = True

    @field_validator("slot_duration_minutes", "slot_step_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("slot length and step must be greater than zero")
        return value

    @field_validator("minimum_free_gap_minutes")
    @classmethod
    def validate_gap(cls, value: int) -> int:
        if value < 0:
            raise ValueError("minimum_free_gap_minutes must not be negative")
        return value

    def to_policy(self) -> AvailabilityPolicy:
        return AvailabilityPolicy(
            minimum_free_gap_minutes=self.minimum_free_gap_minutes,
            slot_duration_minutes=self.slot_duration_minutes,
            slot_step_minutes=self.slot_step_minutes,
            all_day_means_fully_busy=self.all_day_means_fully_busy,
        )


class GoogleConfig(BaseModel):
    """Google Calendar OAuth client and the agent's stored refresh token."""
    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""


class MicrosoftConfig(BaseModel):
    """Azure AD application used for Microsoft 365 calendars."""
    client_id: str = ""
    tenant_id: str = "common"

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"


class AppConfig(BaseModel):
    """Application configuration."""
    provider: Literal["google", "microsoft"] = "google"
    calendar_id: str = "primary"
    timezone: str = "Europe/Warsaw"
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    google: GoogleConfig = Field(default_factory=GoogleConfig)
    microsoft: MicrosoftConfig = Field(default_factory=MicrosoftConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def get_business_hours(self) -> BusinessHours:
        return self.business_hours.to_business_hours(self.timezone)

    def get_policy(self) -> AvailabilityPolicy:
        return self.booking.to_policy()

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
