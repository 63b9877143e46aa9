from __future__ import annotations
from enum import Enum
from typing import Literal

LogLevelName = Literal[
    'trace',
    'debug',
    'info',
    'warn',
    'error',
    'critical',
    'fatal'
]


class LogLevel(Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    FATAL = 'FATAL'

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def at_least(self, threshold: LogLevel) -> bool:
        return self.severity >= threshold.severity

    @classmethod
    def to_level(cls, level_name: LogLevelName | str) -> LogLevel:
        try:
            return cls(level_name.upper())

        except ValueError:
            return cls.INFO


_SEVERITY: dict[LogLevel, int] = {
    level: severity for severity, level in enumerate(LogLevel)
}
