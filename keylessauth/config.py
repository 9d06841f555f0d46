"""Runtime settings and logging setup."""

from __future__ import annotations

import logging
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import CREDENTIAL_SALT

ENV_PREFIX = "KEYLESS_"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class RegistrySettings(BaseModel):
    store_path: Optional[str] = None
    anchor_path: Optional[str] = None
    normalize_credentials: bool = True
    salt: str = CREDENTIAL_SALT.hex()
    publish_attempts: int = Field(default=3, ge=1)
    publish_backoff: float = Field(default=0.5, ge=0)
    publish_backoff_max: float = Field(default=8.0, ge=0)
    publish_timeout: Optional[float] = Field(default=30.0, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("salt")
    @classmethod
    def _salt_is_hex(cls, value: str) -> str:
        bytes.fromhex(value)
        return value.lower()

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @property
    def salt_bytes(self) -> bytes:
        return bytes.fromhex(self.salt)


_FALSE_VALUES = {"0", "false", "no", "off"}


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides: object) -> RegistrySettings:
    """Build settings from ``KEYLESS_*`` variables, then explicit overrides."""

    env = os.environ if environ is None else environ
    values: dict = {}
    for name in RegistrySettings.model_fields:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        if name == "normalize_credentials":
            values[name] = raw.strip().lower() not in _FALSE_VALUES
        elif name == "publish_timeout" and raw.strip().lower() in ("", "none"):
            values[name] = None
        else:
            values[name] = raw
    values.update({key: value for key, value in overrides.items() if value is not None})
    return RegistrySettings(**values)


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not any(getattr(handler, "_keyless", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._keyless = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    logging.getLogger("keylessauth").setLevel(level.upper())


__all__ = ["RegistrySettings", "configure_logging", "load_settings"]
