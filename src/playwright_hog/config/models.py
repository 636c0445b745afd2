from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from playwright_hog.network.endpoints import DEFAULT_ENDPOINT_PATTERNS


class CaptureSettings(BaseModel):
    """
    Which outgoing requests are treated as analytics ingestion calls.

    Fields:
    - endpoint_patterns: URL path fragments of known ingestion routes
    - extra_endpoint_patterns: additional fragments (self-hosted or proxied ingestion)
    """

    endpoint_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_ENDPOINT_PATTERNS))
    extra_endpoint_patterns: list[str] = Field(default_factory=list)

    @property
    def all_patterns(self) -> list[str]:
        return [*self.endpoint_patterns, *self.extra_endpoint_patterns]


class MatchingSettings(BaseModel):
    """Default poll-wait parameters for event assertions (seconds)."""

    # How long to wait for an event before failing
    timeout: float = Field(2.0, allow_inf_nan=False)
    # Pause between two scans of the event log
    poll_interval: float = Field(0.1, allow_inf_nan=False)

    @field_validator("timeout")
    @classmethod
    def _non_negative_timeout(cls, v: float) -> float:
        if v < 0:
            raise ValueError("timeout must be >= 0")
        return v

    @field_validator("poll_interval")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("poll_interval must be > 0")
        return v


class ReportingSettings(BaseModel):
    """Configuration for Allure attachments."""

    attach_events_on_failure: bool = True  # Dump captured events when a test fails
    attach_diagnostics: bool = True  # Attach expected/actual/diff on failed assertions
    attach_logs_on_failure: bool = True  # Attach the test log tail (needs log_dir)


class Settings(BaseSettings):
    """
    Main configuration for analytics capture.

    Loads values from the following sources:
    - Environment variables (with prefix HOG_)
    - Initialization values (e.g., from YAML)
    - .env file
    - Secret files
    """

    model_config = SettingsConfigDict(env_prefix="HOG_", env_nested_delimiter="__")

    debug: bool = False  # Emit human-readable capture traces
    log_level: str = "WARNING"  # TRACE|DEBUG|INFO|WARNING|ERROR
    log_dir: str | None = None  # Duplicate log records into files under this directory
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug and self.log_level.upper() != "TRACE" else self.log_level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Configure the order of configuration sources.

        Loading priority:
        1. Environment variables
        2. Initialization values (e.g., from YAML)
        3. .env file
        4. Secret files
        """
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)
