"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup
  - Keep the key password out of logs and reprs (SecretStr)

Architecture: Only IssuerSettings is a BaseSettings instance. Sub-settings are
plain BaseModel classes populated via env_nested_delimiter="__", so the env var
IDENTITY__SUBJECT maps to identity.subject, STORAGE__KEY_PATH maps to
storage.key_path, etc.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from cryptography.hazmat.primitives import hashes
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cert_issuer.domain.models import CipherKind

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


class IdentitySettings(BaseModel):
    """
    The TLS identity this service mints for itself.

    `subject` may be a hostname or an IP literal; it becomes the common
    name and the first SAN entry.
    """

    organization: str = Field(description="Subject organization (O=)")
    subject: str = Field(min_length=1, description="Hostname or IP literal (CN= and first SAN)")
    extra_sans: list[str] = Field(default_factory=list, description="Additional hostnames/IPs")
    validity_days: int = Field(default=365, ge=1, description="Lifetime of issued certificates")
    is_ca: bool = Field(default=True, description="Whether the identity may sign other certificates")

    @property
    def validity(self) -> timedelta:
        return timedelta(days=self.validity_days)


class StorageSettings(BaseModel):
    """
    Where the identity's PEM files live.

    When `key_password` is set, the private key is written and read
    encrypted with `cipher`.
    """

    key_path: Path = Field(default=Path("pki/key.pem"), description="Private key PEM file")
    certificate_path: Path = Field(default=Path("pki/cert.pem"), description="Certificate PEM file")
    key_password: SecretStr | None = Field(default=None, description="Private key encryption password")
    cipher: CipherKind = Field(default=CipherKind.BEST_AVAILABLE, description="Key encryption scheme")

    def password_bytes(self) -> bytes | None:
        """The password as raw UTF-8 bytes, or None. No normalization is applied."""
        if self.key_password is None or not self.key_password.get_secret_value():
            return None
        return self.key_password.get_secret_value().encode("utf-8")


class IssuerSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    identity: IdentitySettings
    storage: StorageSettings = Field(default_factory=lambda: StorageSettings())

    key_bits: int = Field(default=2048, ge=1024, le=16384)
    renew_before_days: int = Field(default=14, ge=0)
    signature_hash: str = Field(default="sha256")
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(
        default="console", description="console for development, json lines in production"
    )

    @field_validator("signature_hash")
    @classmethod
    def validate_signature_hash(cls, value: str) -> str:
        """Accept only the SHA-2 digests usable for RSA certificate signatures."""
        normalized = value.strip().lower()
        if normalized not in _HASHES:
            raise ValueError(
                f"signature_hash must be one of {sorted(_HASHES)}, got {value!r}"
            )
        return normalized

    @model_validator(mode="after")
    def validate_renewal_window(self) -> IssuerSettings:
        """A fresh certificate must not already fall inside the renewal window."""
        if self.identity.validity_days <= self.renew_before_days:
            raise ValueError(
                f"identity.validity_days ({self.identity.validity_days}) must be greater than "
                f"renew_before_days ({self.renew_before_days})"
            )
        return self

    @property
    def renew_before(self) -> timedelta:
        return timedelta(days=self.renew_before_days)

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        return _HASHES[self.signature_hash]()
