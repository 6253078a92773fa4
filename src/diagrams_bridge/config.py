"""Configuration management for the DiagRAMS bridge.

This module defines the ``BridgeConfig`` model, the helpers that load it from
environment variables, and the default environment-backed credential store.
"""

from __future__ import annotations

import os
import re
from typing import Any
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AnyUrl, BaseModel, Field, ValidationError, field_validator

# Load variables from a local .env file for development convenience
load_dotenv()

DEFAULT_BASE_URL = "https://api.diagrams.app/v0"
DEFAULT_CREDENTIALS_REFERENCE = "default"

_FALSY_VALUES = {"0", "false", "no", "off"}


def _normalize_base_url(value: str) -> str:
    """Validate an API base URL and strip any trailing slash."""
    cleaned = value.strip()
    if not cleaned:
        msg = "Base url is required"
        raise ValueError(msg)
    parsed = urlparse(cleaned)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        msg = f"Invalid base url: {value}"
        raise ValueError(msg)
    return cleaned.rstrip("/")


def _parse_bool(value: str | None) -> bool | None:
    """Parse a boolean environment flag, returning None when unset."""
    if value is None or not value.strip():
        return None
    return value.strip().lower() not in _FALSY_VALUES


def _credentials_env_prefix(reference: str) -> str:
    """Return the environment variable prefix for a credential reference."""
    slug = re.sub(r"[^A-Za-z0-9]+", "_", reference).strip("_").upper()
    return f"DIAGRAMS_{slug}" if slug else "DIAGRAMS"


class BridgeConfig(BaseModel):
    """Configuration values required to relay telemetry to a DiagRAMS project."""

    organisation_id: str = Field(min_length=1)
    project_code: str = Field(min_length=1)
    base_url: str | AnyUrl = DEFAULT_BASE_URL
    diagrams: str = DEFAULT_CREDENTIALS_REFERENCE
    verify_ssl: bool = True
    redact_diagnostics: bool = True
    timeout_ms: int = Field(default=10000, ge=1000, le=600000)

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: object) -> str:
        return _normalize_base_url(str(value))

    @property
    def base_url_str(self) -> str:
        """Return the resolved base URL as a plain string."""
        return str(self.base_url).rstrip("/")

    @property
    def token_url(self) -> str:
        """Return the OAuth2 token endpoint."""
        return f"{self.base_url_str}/oauth2/token"

    @property
    def data_url(self) -> str:
        """Return the telemetry ingestion endpoint for the configured project."""
        return f"{self.base_url_str}/organisations/{self.organisation_id}/data/{self.project_code}"

    @classmethod
    def from_env(cls) -> BridgeConfig:
        """Build a configuration object from environment variables."""
        raw_config: dict[str, Any] = {
            "organisation_id": os.getenv("DIAGRAMS_ORGANISATION_ID", ""),
            "project_code": os.getenv("DIAGRAMS_PROJECT_CODE", ""),
            "base_url": os.getenv("DIAGRAMS_BASE_URL") or DEFAULT_BASE_URL,
            "diagrams": os.getenv("DIAGRAMS_CREDENTIALS") or DEFAULT_CREDENTIALS_REFERENCE,
        }
        timeout_ms = os.getenv("DIAGRAMS_TIMEOUT_MS")
        if timeout_ms:
            raw_config["timeout_ms"] = timeout_ms
        for key, env_name in (
            ("verify_ssl", "DIAGRAMS_VERIFY_SSL"),
            ("redact_diagnostics", "DIAGRAMS_REDACT_DIAGNOSTICS"),
        ):
            flag = _parse_bool(os.getenv(env_name))
            if flag is not None:
                raw_config[key] = flag
        try:
            return cls(**raw_config)
        except ValidationError as exc:
            messages = "; ".join(err["msg"] for err in exc.errors())
            msg = f"Invalid DiagRAMS configuration: {messages}"
            raise RuntimeError(msg) from exc


def env_credentials_lookup(reference: str) -> dict[str, str] | None:
    """Resolve a credential reference from ``DIAGRAMS_<REF>_APPLICATION_*`` variables.

    Returns None when neither variable is set, and a partial mapping when only
    one of them is, so the credential holder can report what it found.
    """
    prefix = _credentials_env_prefix(reference)
    found: dict[str, str] = {}
    application_id = os.getenv(f"{prefix}_APPLICATION_ID")
    application_secret = os.getenv(f"{prefix}_APPLICATION_SECRET")
    if application_id is not None:
        found["applicationId"] = application_id
    if application_secret is not None:
        found["applicationSecret"] = application_secret
    return found or None


__all__ = ["DEFAULT_BASE_URL", "BridgeConfig", "env_credentials_lookup"]
