"""Typed access to VCHAN_* environment variables.

Tests pass a plain mapping to EnvReader instead of patching os.environ.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})


class EnvReader:
    """Read environment variables with type conversion.

    Unset variables yield the caller's default. Values that fail to parse
    are logged and also yield the default, so a typo in one variable never
    prevents startup.

    Example:
        reader = EnvReader(env={"VCHAN_SAVE_REPORTS": "true"})
        reader.get_bool("VCHAN_SAVE_REPORTS")  # True
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = os.environ if env is None else env

    def _convert(
        self, var: str, default: T | None, parse: Callable[[str], T], kind: str
    ) -> T | None:
        raw = self._env.get(var)
        if raw is None:
            return default
        try:
            return parse(raw)
        except ValueError:
            logger.warning("Invalid %s value for %s: %s", kind, var, raw)
            return default

    def get_str(self, var: str, default: str | None = None) -> str | None:
        return self._env.get(var, default)

    def get_int(self, var: str, default: int | None = None) -> int | None:
        return self._convert(var, default, int, "integer")

    def get_float(self, var: str, default: float | None = None) -> float | None:
        return self._convert(var, default, float, "float")

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Anything outside TRUE_VALUES (case-insensitive) reads as False."""
        return self._convert(
            var, default, lambda raw: raw.casefold() in TRUE_VALUES, "boolean"
        )

    def get_path(
        self, var: str, must_exist: bool = False, default: Path | None = None
    ) -> Path | None:
        """Get a path with ``~`` expanded.

        With must_exist, a path that does not exist is logged and the
        default returned instead.
        """
        path = self._convert(var, None, lambda raw: Path(raw).expanduser(), "path")
        if path is None:
            return default
        if must_exist and not path.exists():
            logger.warning("%s points to a path that does not exist: %s", var, path)
            return default
        return path
