"""Server configuration, read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping

LOG = logging.getLogger(__name__)

ENV_SNCODE = "HUASI_SNCODE"
ENV_LOG_LEVEL = "HUASI_LOG_LEVEL"

DEFAULT_SNCODE = "000000"
DEFAULT_LOG_LEVEL = "INFO"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _log_level(value: Any, fallback: str) -> str:
    if value in (None, ""):
        return fallback
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        LOG.warning("Unknown log level %r, using %s", value, fallback)
        return fallback
    return level


@dataclass
class ServerConfig:
    """Settings for the MCP server.

    ``default_sncode`` is the collector serial number used when a tool call
    does not name one.
    """

    default_sncode: str = DEFAULT_SNCODE
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> ServerConfig:
        payload = payload or {}
        defaults = cls()
        sncode = str(payload.get("default_sncode") or defaults.default_sncode).strip()
        return cls(
            default_sncode=sncode or defaults.default_sncode,
            log_level=_log_level(payload.get("log_level"), defaults.log_level),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        environ = os.environ if environ is None else environ
        return cls.from_dict({
            "default_sncode": environ.get(ENV_SNCODE),
            "log_level": environ.get(ENV_LOG_LEVEL),
        })

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)
