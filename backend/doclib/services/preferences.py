"""Small key-value store for UI preferences such as the theme."""

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Preferences kept in memory and, when ``path`` is set, mirrored to a JSON file."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else None
        self._values: dict[str, Any] = {}
        if self.path is not None and self.path.exists():
            try:
                self._values = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                logger.warning("Ignoring unreadable preferences file %s", self.path, exc_info=True)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._values, indent=2), encoding="utf-8")
