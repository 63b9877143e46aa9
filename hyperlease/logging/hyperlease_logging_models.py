from .models import Entry, LogLevel


class LeaseDebug(Entry, kw_only=True):
    resource_key: str
    holder_id: str | None = None
    ttl_seconds: float | None = None
    level: LogLevel = LogLevel.DEBUG

class LeaseInfo(Entry, kw_only=True):
    resource_key: str
    holder_id: str | None = None
    ttl_seconds: float | None = None
    level: LogLevel = LogLevel.INFO

class LeaseWarning(Entry, kw_only=True):
    resource_key: str
    holder_id: str | None = None
    level: LogLevel = LogLevel.WARN

class LeaseError(Entry, kw_only=True):
    resource_key: str
    holder_id: str | None = None
    error: str | None = None
    level: LogLevel = LogLevel.ERROR

class QuantumDebug(Entry, kw_only=True):
    task_id: str
    run_id: str
    state: str
    level: LogLevel = LogLevel.DEBUG

class QuantumInfo(Entry, kw_only=True):
    task_id: str
    run_id: str
    state: str
    elapsed: float = 0.0
    level: LogLevel = LogLevel.INFO

class QuantumWarning(Entry, kw_only=True):
    task_id: str
    run_id: str
    state: str
    level: LogLevel = LogLevel.WARN

class QuantumError(Entry, kw_only=True):
    task_id: str
    run_id: str
    state: str
    error: str | None = None
    level: LogLevel = LogLevel.ERROR
