"""Durable storage for :class:`~exacli.models.RotationState`.

The state file is the sole source of truth between invocations: each run
loads it, mutates its own in-memory copy, and writes the whole record back.
Writes go through :func:`~exacli.config._atomic_write`, so a concurrent
invocation sees either the old or the new file, never a torn one. There is
no cross-process locking; the last writer wins.

A file that cannot be read or parsed is treated as absent and replaced by
a default state on the next save.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from exacli.config import _atomic_write, get_state_path
from exacli.models import RotationState

logger = logging.getLogger(__name__)


class RotationStateStore:
    """Load and save the rotation state file.

    Args:
        path: Location of ``state.json``. Defaults to
            :func:`~exacli.config.get_state_path`.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path if path is not None else get_state_path()

    @property
    def path(self) -> Path:
        """The filesystem path to the state file."""
        return self._path

    def load(self) -> RotationState:
        """Load the state from disk.

        Returns:
            The stored :class:`RotationState`, or a fresh default when the
            file is missing, unreadable, or corrupt.
        """
        if not self._path.is_file():
            return RotationState()
        try:
            text = self._path.read_text(encoding="utf-8")
            return RotationState.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError, ValueError, OSError) as exc:
            logger.warning(
                "Rotation state at %s is unreadable, starting fresh: %s",
                self._path,
                exc,
            )
            return RotationState()

    def save(self, state: RotationState) -> None:
        """Persist *state* atomically, replacing the whole file.

        Raises:
            OSError: If the file cannot be written.
        """
        data = state.model_dump(mode="json")
        _atomic_write(self._path, json.dumps(data, indent=2) + "\n")
