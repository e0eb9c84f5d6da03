"""Layered settings: defaults and environment, then an operator file, then runtime overrides.

The operator file lets a deployment pin dispatch tunables (reminder window,
driver cap, display timezone) without touching the process environment.
Overrides are what tests and scripts push at runtime.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

logger = logging.getLogger(__name__)

_PARSERS: dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def load_operator_file(path: Optional[Path]) -> dict[str, Any]:
    """Parse the operator file; anything unusable is logged and treated as empty."""
    if path is None or not path.is_file():
        return {}
    parse = _PARSERS.get(path.suffix.lower())
    if parse is None:
        logger.warning("Ignoring operator config %s: unsupported extension", path)
        return {}
    try:
        loaded = parse(path.read_text())
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        logger.warning("Ignoring operator config %s: %s", path, e)
        return {}
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        logger.warning("Ignoring operator config %s: top level is %s, not a mapping", path, type(loaded).__name__)
        return {}
    return loaded


class ConfigStore:
    """Holds the live Settings object. Later layers win: overrides, operator file, env, defaults."""

    def __init__(self, settings_cls: type, config_file_path: Optional[str] = None):
        self._settings_cls = settings_cls
        self._path = Path(config_file_path).expanduser().resolve() if config_file_path else None
        self._overrides: dict[str, Any] = {}
        self._snapshot: Optional[Any] = None
        self._guard = threading.RLock()

    def _compose(self, overrides: dict[str, Any]) -> Any:
        layers = self._settings_cls().model_dump()
        operator = load_operator_file(self._path)
        if operator:
            logger.info("Operator config %s applied (%d keys)", self._path, len(operator))
            layers.update(operator)
        layers.update(overrides)
        return self._settings_cls(**layers)

    def get_settings(self) -> Any:
        with self._guard:
            if self._snapshot is None:
                self._snapshot = self._compose(self._overrides)
            return self._snapshot

    def update(self, overrides: dict[str, Any]) -> None:
        """Apply more overrides on top of the live snapshot.

        A value that fails validation raises pydantic.ValidationError and the
        live snapshot is left as it was.
        """
        with self._guard:
            pending = dict(self._overrides)
            pending.update(overrides)
            rebuilt = self._settings_cls(**{**self.get_settings().model_dump(), **pending})
            self._overrides, self._snapshot = pending, rebuilt

    def clear_overrides(self) -> None:
        with self._guard:
            self._overrides = {}
            self._snapshot = self._compose(self._overrides)
