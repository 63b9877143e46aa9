from __future__ import annotations

from typing import Callable, Dict, Literal, Union

from pydantic import BaseModel, StrictBool, StrictInt, StrictStr, field_validator

from hyperlease.logging import LoggingConfig

from .time_parser import TimeParser

PrimaryType = Union[str, int, float, bytes, bool]

DURATION_FIELDS = (
    "HYPERLEASE_REDIS_TIMEOUT",
    "HYPERLEASE_LEASE_TTL",
    "HYPERLEASE_QUANTUM_DURATION",
)


def parse_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Env(BaseModel):
    HYPERLEASE_STORE_TYPE: Literal["memory", "redis"] = "memory"
    HYPERLEASE_REDIS_HOST: StrictStr = "localhost"
    HYPERLEASE_REDIS_PORT: StrictInt = 6379
    HYPERLEASE_REDIS_DATABASE: StrictInt = 0
    HYPERLEASE_REDIS_USERNAME: StrictStr | None = None
    HYPERLEASE_REDIS_PASSWORD: StrictStr | None = None
    HYPERLEASE_REDIS_SECURE: StrictBool = False
    HYPERLEASE_REDIS_TIMEOUT: StrictStr = "5s"
    HYPERLEASE_LEASE_TTL: StrictStr = "120s"
    HYPERLEASE_QUANTUM_DURATION: StrictStr = "60s"
    HYPERLEASE_KEY_PREFIX: StrictStr = "lease"
    HYPERLEASE_LOG_LEVEL: Literal[
        "trace", "debug", "info", "warn", "error", "critical", "fatal"
    ] = "info"

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "HYPERLEASE_STORE_TYPE": str,
            "HYPERLEASE_REDIS_HOST": str,
            "HYPERLEASE_REDIS_PORT": int,
            "HYPERLEASE_REDIS_DATABASE": int,
            "HYPERLEASE_REDIS_USERNAME": str,
            "HYPERLEASE_REDIS_PASSWORD": str,
            "HYPERLEASE_REDIS_SECURE": parse_flag,
            "HYPERLEASE_REDIS_TIMEOUT": str,
            "HYPERLEASE_LEASE_TTL": str,
            "HYPERLEASE_QUANTUM_DURATION": str,
            "HYPERLEASE_KEY_PREFIX": str,
            "HYPERLEASE_LOG_LEVEL": str.lower,
        }

    @field_validator(*DURATION_FIELDS)
    @classmethod
    def validate_duration(cls, value: str) -> str:
        if TimeParser().parse(value) <= 0:
            raise ValueError(f"Expected a positive duration such as 30s or 2m, got {value!r}")

        return value

    @property
    def lease_ttl(self) -> float:
        return TimeParser().parse(self.HYPERLEASE_LEASE_TTL)

    @property
    def quantum_duration(self) -> float:
        return TimeParser().parse(self.HYPERLEASE_QUANTUM_DURATION)

    @property
    def redis_timeout(self) -> float:
        return TimeParser().parse(self.HYPERLEASE_REDIS_TIMEOUT)

    def configure_logging(self) -> None:
        LoggingConfig().update(log_level=self.HYPERLEASE_LOG_LEVEL)
