"""
JSON-line logging for vault processes.

Every line carries the process identity (service, env, version), the
operation id bound by the running deposit/redeem, a stable `event_type`, and
whatever extra fields the call site attached. Integers wider than a JSON
double (share and asset amounts usually are) are written as decimal strings.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, Mapping, Optional

_OPERATION_ID: ContextVar[Optional[str]] = ContextVar("sharevault_operation_id", default=None)

# Attributes every LogRecord has; anything else on a record came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}
_ENVELOPE = ("timestamp", "severity", "service", "env", "version", "operation_id", "event_type", "logger")

_JSON_SAFE_INT = 2**53 - 1


def _short(v: Any, limit: int) -> str:
    s = " ".join(str(v if v is not None else "").split())
    return s if len(s) <= limit else s[: limit - 3] + "..."


def _first_env(env: Mapping[str, str], names: tuple[str, ...], default: str) -> str:
    for name in names:
        v = _short(env.get(name), 128)
        if v:
            return v
    return default


@dataclass(frozen=True)
class LogIdentity:
    service: str = "sharevault"
    env: str = "unknown"
    version: str = "unknown"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "LogIdentity":
        e = os.environ if env is None else env
        return cls(
            service=_first_env(e, ("SERVICE_NAME", "SERVICE"), "sharevault"),
            env=_first_env(e, ("ENVIRONMENT", "ENV"), "unknown"),
            version=_first_env(e, ("VAULT_VERSION", "GIT_SHA"), "unknown"),
        )


def get_operation_id() -> Optional[str]:
    return _OPERATION_ID.get()


@contextmanager
def bind_operation_id(*, operation_id: str | None = None) -> Iterator[str]:
    """
    Bind an operation id for the duration of the block.

    Without an explicit id an enclosing binding is reused, so a deposit run
    from `VaultService.execute` logs under the id of the execute call.
    """
    current = _OPERATION_ID.get()
    if current and not operation_id:
        yield current
        return
    token = _OPERATION_ID.set(_short(operation_id, 128) or uuid.uuid4().hex)
    try:
        yield _OPERATION_ID.get() or ""
    finally:
        _OPERATION_ID.reset(token)


def _json_safe(v: Any) -> Any:
    if isinstance(v, bool) or v is None:
        return v
    if isinstance(v, int):
        return v if abs(v) <= _JSON_SAFE_INT else str(v)
    if isinstance(v, dict):
        return {str(k): _json_safe(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_json_safe(x) for x in v]
    return v


class JsonLogFormatter(logging.Formatter):
    def __init__(self, identity: Optional[LogIdentity] = None) -> None:
        super().__init__()
        self.identity = identity or LogIdentity.from_env()

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        line: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "severity": logging.getLevelName(record.levelno),
            "service": self.identity.service,
            "env": self.identity.env,
            "version": self.identity.version,
            "operation_id": getattr(record, "operation_id", None) or get_operation_id(),
            "event_type": getattr(record, "event_type", None) or "log",
            "logger": record.name,
            "message": _short(record.getMessage(), 4000),
        }
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in _ENVELOPE or key.startswith("_"):
                continue
            line[key] = _json_safe(value)
        if record.exc_info:
            line["exception"] = "".join(traceback.format_exception(*record.exc_info))[-8000:]
        return json.dumps(line, separators=(",", ":"), ensure_ascii=False, default=str)


def init_structured_logging(
    *,
    service: str | None = None,
    env: str | None = None,
    version: str | None = None,
    level: str | int | None = None,
) -> None:
    """Route the root logger to stdout as JSON lines. Repeated calls replace the handler."""
    base = LogIdentity.from_env()
    identity = LogIdentity(
        service=service or base.service,
        env=env or base.env,
        version=version or base.version,
    )
    lvl = level or os.getenv("LOG_LEVEL", "INFO").upper()

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter(identity))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(lvl)


def log_event(
    logger: logging.Logger,
    event_type: str,
    *,
    severity: str = "INFO",
    message: str | None = None,
    **fields: Any,
) -> None:
    """Emit a semantic event; `fields` become top-level keys of the JSON line."""
    level = logging.getLevelName(str(severity).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.log(level, message or event_type, extra={"event_type": event_type, **fields})
