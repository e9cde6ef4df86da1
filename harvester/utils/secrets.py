"""Helper utilities for working with secret environment variables."""

from __future__ import annotations

from pydantic import SecretStr

from ..config import ConfigError


def secret_value(value: SecretStr | str | None) -> str | None:
    """Return the plaintext secret stripped of whitespace."""
    if value is None:
        return None
    raw = value.get_secret_value() if isinstance(value, SecretStr) else value
    stripped = raw.strip()
    return stripped or None


def require_secret(value: SecretStr | str | None, env_name: str) -> str:
    """Like :func:`secret_value` but raise :class:`ConfigError` when the secret is unset."""
    resolved = secret_value(value)
    if resolved is None:
        raise ConfigError(f"{env_name} is required. Set it in the environment or .env file.")
    return resolved
