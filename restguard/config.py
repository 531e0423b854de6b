"""
Environment-based configuration.

All settings are read from ``RESTGUARD_*`` environment variables by
:meth:`Settings.from_env`; explicit keyword arguments are used in tests.
"""

import os
from dataclasses import dataclass
from typing import List, Literal, Mapping, Optional, Union

_TRUE_VALUES = ('true', '1', 'yes', 'on')
_FALSE_VALUES = ('false', '0', 'no', 'off')

ENV_PREFIX = "RESTGUARD_"


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse a boolean environment value, falling back to ``default``."""
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_origins(value: Optional[str]) -> Union[List[str], Literal["*"], None]:
    """Parse a comma-separated origin list; ``*`` means any origin, empty means CORS off."""
    if value is None or not value.strip():
        return None
    if value.strip() == "*":
        return "*"
    return [origin.strip() for origin in value.split(",") if origin.strip()]


@dataclass
class Settings:
    """Runtime configuration for a restguard application."""

    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 3600
    cors_origins: Union[List[str], Literal["*"], None] = None
    cors_credentials: bool = False
    trust_forwarded_for: bool = False
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from ``RESTGUARD_*`` variables.

        Raises:
            ValueError: If a value cannot be parsed
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        defaults = cls()
        return cls(
            jwt_secret=get("JWT_SECRET") or None,
            jwt_algorithm=get("JWT_ALGORITHM") or defaults.jwt_algorithm,
            token_ttl_seconds=int(get("TOKEN_TTL_SECONDS") or defaults.token_ttl_seconds),
            cors_origins=parse_origins(get("CORS_ORIGINS")),
            cors_credentials=parse_bool(get("CORS_CREDENTIALS"), defaults.cors_credentials),
            trust_forwarded_for=parse_bool(get("TRUST_FORWARDED_FOR"), defaults.trust_forwarded_for),
            log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
            host=get("HOST") or defaults.host,
            port=int(get("PORT") or defaults.port),
        )
