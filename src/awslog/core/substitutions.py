"""
Destination-name substitution tokens.

Names such as ``"app-{date}"`` or ``"{hostname}-{pid}"`` are resolved once,
when a writer initializes. Supported tokens:

- ``{date}``: UTC date, ``YYYYMMDD``
- ``{timestamp}``: UTC time of resolution, ``YYYYMMDDhhmmss``
- ``{hourlyTimestamp}``: as ``{timestamp}`` with minutes and seconds zeroed
- ``{startupTimestamp}``: UTC time the shipper was configured
- ``{pid}``, ``{hostname}``, ``{uuid}``
- ``{env:NAME}``: value of environment variable NAME

Unknown tokens, and ``{env:...}`` tokens naming an unset variable, are left
in place.
"""

from __future__ import annotations

import os
import re
import socket
import uuid
from datetime import datetime, timezone

_TOKEN = re.compile(r"\{([^{}]+)\}")


class Substitutions:
    def __init__(
        self,
        *,
        now: datetime | None = None,
        startup: datetime | None = None,
        hostname: str | None = None,
        pid: int | None = None,
    ) -> None:
        self._now = now or datetime.now(timezone.utc)
        self._startup = startup or self._now
        self._hostname = hostname
        self._pid = pid

    def apply(self, text: str | None) -> str | None:
        if not text:
            return text
        return _TOKEN.sub(self._replace, text)

    def _replace(self, match: re.Match[str]) -> str:
        token = match.group(1)
        value = self._lookup(token)
        return match.group(0) if value is None else value

    def _lookup(self, token: str) -> str | None:
        if token == "date":
            return self._now.strftime("%Y%m%d")
        if token == "timestamp":
            return self._now.strftime("%Y%m%d%H%M%S")
        if token == "hourlyTimestamp":
            return self._now.strftime("%Y%m%d%H0000")
        if token == "startupTimestamp":
            return self._startup.strftime("%Y%m%d%H%M%S")
        if token == "pid":
            return str(self._pid if self._pid is not None else os.getpid())
        if token == "hostname":
            return self._hostname or _short_hostname()
        if token == "uuid":
            return str(uuid.uuid4())
        if token.startswith("env:"):
            return os.environ.get(token[4:])
        return None


def _short_hostname() -> str:
    try:
        return socket.gethostname().split(".")[0] or "unknown"
    except OSError:
        return "unknown"
