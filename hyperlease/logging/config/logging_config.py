"""
Process-wide logging settings shared by every LoggerStream.

Settings live in context variables, so asyncio tasks and threads started
after an update inherit it while an update made inside one task stays
local to that task.
"""

import contextvars
from typing import Iterable, Literal

from hyperlease.logging.models import LogLevel, LogLevelName

from .stream_type import StreamType


LogOutput = Literal['stdout', 'stderr']

_log_level = contextvars.ContextVar("hyperlease_log_level", default=LogLevel.INFO)
_log_output = contextvars.ContextVar("hyperlease_log_output", default=StreamType.STDOUT)
_disabled_loggers: contextvars.ContextVar[frozenset[str]] = contextvars.ContextVar(
    "hyperlease_disabled_loggers",
    default=frozenset(),
)


class LoggingConfig:

    def update(
        self,
        log_level: LogLevelName | None = None,
        log_output: LogOutput | None = None,
        disabled_loggers: Iterable[str] | None = None,
    ):
        if log_level:
            _log_level.set(LogLevel.to_level(log_level))

        if log_output:
            _log_output.set(StreamType(log_output))

        if disabled_loggers is not None:
            _disabled_loggers.set(frozenset(disabled_loggers))

    def disable(self, logger_name: str):
        _disabled_loggers.set(_disabled_loggers.get() | {logger_name})

    def enable(self, logger_name: str):
        _disabled_loggers.set(_disabled_loggers.get() - {logger_name})

    def enabled(self, logger_name: str, log_level: LogLevel) -> bool:
        if logger_name in _disabled_loggers.get():
            return False

        return log_level.at_least(_log_level.get())

    @property
    def level(self) -> LogLevel:
        return _log_level.get()

    @property
    def output(self) -> StreamType:
        return _log_output.get()

    @property
    def disabled_loggers(self) -> frozenset[str]:
        return _disabled_loggers.get()
