"""Environment-backed settings primitives for :mod:`ledgeracio`."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ["LedgeracioSettings", "get_settings"]


class LedgeracioSettings(BaseSettings):
    """Expose environment-derived configuration knobs.

    Attributes:
        network: Default network name when ``--network`` is not given.
        config_path: Explicit path to a YAML or JSON configuration file.
        nonce_store: Path of the JSON nonce store used when signing.
        custody_dir: Directory of the file-backed key custody store.
        allow_custom_network: Accept custom network tags.
        log_level: Logging level name.
        log_json: Emit structured JSON logs instead of plain text.
    """

    network: str | None = Field(default=None, alias="LEDGERACIO_NETWORK")
    config_path: str | None = Field(default=None, alias="LEDGERACIO_CONFIG")
    nonce_store: str | None = Field(default=None, alias="LEDGERACIO_NONCE_STORE")
    custody_dir: str | None = Field(default=None, alias="LEDGERACIO_CUSTODY_DIR")
    allow_custom_network: bool | None = Field(
        default=None, alias="LEDGERACIO_ALLOW_CUSTOM_NETWORK"
    )
    log_level: str | None = Field(default=None, alias="LEDGERACIO_LOG_LEVEL")
    log_json: bool | None = Field(default=None, alias="LEDGERACIO_LOG_JSON")

    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    @field_validator("allow_custom_network", "log_json", mode="before")
    @classmethod
    def _parse_optional_bool(cls, value: object) -> bool | None:
        """Parse optional boolean flags while tolerating malformed input.

        Args:
            value: Raw environment value.

        Returns:
            Parsed boolean when recognised, otherwise ``None``.
        """

        if value is None or isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"1", "true", "yes", "on"}:
                return True
            if lowered in {"0", "false", "no", "off"}:
                return False
        return None

    @field_validator("network", "log_level", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


def get_settings() -> LedgeracioSettings:
    """Return a :class:`LedgeracioSettings` instance parsed from the environment."""

    return LedgeracioSettings()
