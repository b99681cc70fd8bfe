"""Opt-in audit log of upstream calls.

When enabled (``EXA_LOG_REQUESTS=1`` or ``log_requests: true`` in the
config file) every upstream attempt appends one JSON line to
``requests.log`` in the config directory::

    {"ts": "2026-01-05T10:00:00+00:00", "key": "...xyz", "cmd": "search", "status": 200}

Keys are always masked. ``status`` is the HTTP status of the attempt, or
``0`` when the request never got a response. The file is rotated by
:class:`logging.handlers.RotatingFileHandler` at 5 MB, keeping a single
``requests.log.1`` backup.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from pathlib import Path
from typing import Callable, Optional

from exacli.config import get_log_path
from exacli.models import utcnow

logger = logging.getLogger(__name__)

MAX_LOG_BYTES = 5 * 1024 * 1024
_LOGGER_NAME = "exacli.requests"


class RequestLog:
    """Append-only JSON-lines log of upstream calls.

    A disabled log accepts :meth:`record` calls and does nothing. An
    enabled log opens its file lazily on the first record and must be
    :meth:`close`\\ d (or used as a context manager) to release it.

    Args:
        enabled: Whether to write anything at all.
        path: Log file location (default :func:`~exacli.config.get_log_path`).
        clock: Source of the timestamp written to each line.
    """

    def __init__(
        self,
        enabled: bool = False,
        path: Optional[Path] = None,
        clock: Callable = utcnow,
    ) -> None:
        self.enabled = enabled
        self._path = path
        self._clock = clock
        self._handler: Optional[logging.Handler] = None
        self._logger = logging.getLogger(_LOGGER_NAME)
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)

    def __enter__(self) -> RequestLog:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def path(self) -> Path:
        if self._path is None:
            self._path = get_log_path()
        return self._path

    def record(self, masked_key: str, command: str, status: int) -> None:
        """Append one entry. Failures to write are logged and swallowed."""
        if not self.enabled:
            return
        try:
            self._open()
        except OSError as exc:
            logger.warning("Cannot open request log %s: %s", self.path, exc)
            self.enabled = False
            return
        line = json.dumps(
            {
                "ts": self._clock().isoformat(),
                "key": masked_key,
                "cmd": command,
                "status": status,
            }
        )
        self._logger.info(line)

    def close(self) -> None:
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def _open(self) -> None:
        if self._handler is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            self.path,
            maxBytes=MAX_LOG_BYTES,
            backupCount=1,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(handler)
        self._handler = handler
