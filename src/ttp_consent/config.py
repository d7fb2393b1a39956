"""
Consent Configuration Module

Centralized configuration management using Pydantic Settings.
Supports environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TTP_CONSENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_json: bool = True


class GicsSettings(BaseSettings):
    """gICS (consent authority) connection and policy settings."""

    model_config = SettingsConfigDict(
        env_prefix="GICS_",
        env_file=".env",
        extra="ignore",
    )

    # e.g. http://localhost:8090/ttp-fhir/fhir/gics
    uri: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    person_identifier_system: str = "https://ths-greifswald.de/fhir/gics/identifiers/Patienten-ID"

    # Consent domains
    broad_consent_domain_name: str = "MII"
    genome_consent_domain_name: str = "GenomDE_MV"

    # Policies looked up in the returned documents
    broad_consent_policy_code: str = "2.16.840.1.113883.3.1937.777.24.5.3.8"
    broad_consent_policy_system: str = "urn:oid:2.16.840.1.113883.3.1937.777.24.5.3"
    genome_policy_code: str = "sequencing"
    genome_policy_system: str = "https://ths-greifswald.de/fhir/CodeSystem/gics/Policy/GenomDE_MV"
    genome_consent_version: str = "2025.0.1"

    @property
    def credentials(self) -> tuple[str, str] | None:
        """Basic auth credentials, only if both parts are non-blank."""
        if not self.username or not self.username.strip():
            return None
        if self.password is None or not self.password.get_secret_value().strip():
            return None
        return self.username, self.password.get_secret_value()


class ConsentSettings(BaseSettings):
    """Consent backend selection."""

    model_config = SettingsConfigDict(
        env_prefix="CONSENT_",
        env_file=".env",
        extra="ignore",
    )

    # gics: POST operations, gics-get: REST search, file: declared in data, none: disabled
    service: Literal["gics", "gics-get", "file", "none"] = "none"


class RetrySettings(BaseSettings):
    """Retry policy around trusted party requests."""

    model_config = SettingsConfigDict(
        env_prefix="TTP_RETRY_",
        env_file=".env",
        extra="ignore",
    )

    max_attempts: int = Field(default=3, ge=1)
    wait_min: float = 1.0
    wait_max: float = 10.0
    timeout: float = 10.0


class Settings:
    """
    Aggregated settings container.

    Usage:
        from ttp_consent.config import get_settings
        settings = get_settings()
        print(settings.gics.uri)
    """

    def __init__(
        self,
        app: AppSettings | None = None,
        gics: GicsSettings | None = None,
        consent: ConsentSettings | None = None,
        retry: RetrySettings | None = None,
    ):
        self.app = app or AppSettings()
        self.gics = gics or GicsSettings()
        self.consent = consent or ConsentSettings()
        self.retry = retry or RetrySettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: The application settings
    """
    return Settings()
