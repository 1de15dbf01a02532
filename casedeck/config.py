"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and CASEDECK_* environment variables.  The
geometry, timing and producer settings are fixed for the life of a
process; nothing here is renegotiated at runtime.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from casedeck.models.geometry import PanelGeometry


class DeckSettings(BaseSettings):
    """Casedeck settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export CASEDECK_LOG_LEVEL=DEBUG
        export CASEDECK_TEE_PATH=/var/log/casedeck/cases.ndjson
        export CASEDECK_PRODUCER_COMMAND='["dotnet", "run", "--project", "listener"]'

    Or via .env file::

        CASEDECK_ENVIRONMENT=production
        CASEDECK_BRIGHTNESS=60
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CASEDECK_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Producer process
    producer_command: list[str] = ["dotnet", "run", "--project", "dotnet/ServiceBusListener"]
    tee_path: Path | None = None
    restart_base_seconds: float = 1.0
    restart_max_seconds: float = 30.0
    stop_grace_seconds: float = 5.0

    # Panel geometry (Stream Deck XL)
    grid_columns: int = 8
    grid_rows: int = 4
    key_size: int = 96
    slot_start: int = 0
    slot_count: int = 32

    # Presentation
    brightness: int = 80
    frame_delay_seconds: float = 0.12
    play_startup: bool = True
    splash_path: Path = Path("assets/splash.png")
    startup_title: str = "DATAVERSE COMMAND CENTER"

    # Opened on key press; "{case_id}" is replaced with the case identity.
    # Empty disables opening records.
    record_url_template: str = ""

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"

    def geometry(self) -> PanelGeometry:
        """Build the panel geometry from the grid settings."""
        return PanelGeometry(
            columns=self.grid_columns,
            rows=self.grid_rows,
            key_size=self.key_size,
            slot_start=self.slot_start,
            slot_count=self.slot_count,
        )

    def record_url(self, case_id: str) -> str | None:
        if not self.record_url_template:
            return None
        return self.record_url_template.format(case_id=case_id)


# Module-level instance: import as `from casedeck.config import config`
config = DeckSettings()
