"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import date
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.holidays import HolidayCalendar
from .domain.models import BusinessHours


class ScheduleConfig(BaseModel):
    """Business hours and booking horizon."""
    opening_hour: int = 9
    closing_hour: int = 18
    saturday_closing_hour: int = 14
    horizon_days: int = 30
    lead_time_minutes: int = 15

    @field_validator("opening_hour", "closing_hour", "saturday_closing_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("horizon_days")
    @classmethod
    def validate_horizon(cls, value: int) -> int:
        if value < 1:
            raise ValueError("horizon_days must be at least 1")
        return value

    @field_validator("lead_time_minutes")
    @classmethod
    def validate_lead_time(cls, value: int) -> int:
        if value < 0:
            raise ValueError("lead_time_minutes must not be negative")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "ScheduleConfig":
        """Ensure the day opens before it closes, Saturdays included."""
        if self.closing_hour <= self.opening_hour or self.saturday_closing_hour <= self.opening_hour:
            raise ValueError("closing hours must be later than opening_hour")
        return self


class FeeConfig(BaseModel):
    """Pricing settings."""
    service_fee_rate: float = 0.10

    @field_validator("service_fee_rate")
    @classmethod
    def validate_rate(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError(f"service_fee_rate must be between 0 and 1, got {value}")
        return value


class HoldConfig(BaseModel):
    """Provisional hold settings for the local booking store."""
    hold_minutes: int = 30
    database_path: str = "slotkeeper.db"
    checkout_url: str = "https://checkout.example.com/pay"

    @field_validator("hold_minutes")
    @classmethod
    def validate_hold_minutes(cls, value: int) -> int:
        if value < 1:
            raise ValueError("hold_minutes must be at least 1")
        return value


class ApiConfig(BaseModel):
    """Remote data and booking API."""
    base_url: str
    api_key: str = ""
    timeout_seconds: float = 10.0

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class ProviderProfile(BaseModel):
    """Provider shortcut for the CLI."""
    name: str  # Used as alias
    provider_id: str
    hourly_rate: int = 0

    def display_name(self) -> str:
        """Get display name."""
        return self.name


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Santiago"
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    fees: FeeConfig = Field(default_factory=FeeConfig)
    holds: HoldConfig = Field(default_factory=HoldConfig)
    api: Optional[ApiConfig] = None
    providers: List[ProviderProfile] = Field(default_factory=list)
    extra_holidays: List[date] = Field(default_factory=list)

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, value: List[ProviderProfile]) -> List[ProviderProfile]:
        """Ensure provider aliases and ids are unique."""
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for provider in value:
            name_key = provider.name.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate provider name detected: {provider.name}")
            if provider.provider_id in seen_ids:
                raise ValueError(f"Duplicate provider id detected: {provider.provider_id}")
            seen_names.add(name_key)
            seen_ids.add(provider.provider_id)
        return value

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

    def build_business_hours(self) -> BusinessHours:
        return BusinessHours(
            opening_hour=self.schedule.opening_hour,
            closing_hour=self.schedule.closing_hour,
            saturday_closing_hour=self.schedule.saturday_closing_hour,
        )

    def build_holiday_calendar(self) -> HolidayCalendar:
        return HolidayCalendar.chile(extra=self.extra_holidays)

    def find_provider(self, name: str) -> ProviderProfile | None:
        """Find a provider by alias or id."""
        for provider in self.providers:
            if provider.name.lower() == name.lower() or provider.provider_id == name:
                return provider
        return None

    def resolve_provider_id(self, identifier: str) -> str:
        """
        Resolve a provider alias to its id. Unknown identifiers are taken
        to be ids already.
        """
        provider = self.find_provider(identifier)
        if provider:
            return provider.provider_id
        return identifier


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
