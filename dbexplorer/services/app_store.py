"""JSON key/value store backing dashboards and recent databases"""
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import PersistenceError
from ..utils.json_encoder import json_dumps

logger = logging.getLogger(__name__)


class AppStore:
    """
    Whole-file JSON store.

    Values are kept in memory after the first read; every ``save`` rewrites
    the complete file through a temporary file so readers never see a
    partial write.
    """

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._data: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            if not self.path.exists():
                self._data = {}
            else:
                try:
                    with self.path.open("r", encoding="utf-8") as fh:
                        content = fh.read()
                    self._data = json.loads(content) if content.strip() else {}
                except (OSError, ValueError) as e:
                    logger.error(f"Failed to read store {self.path}: {e}")
                    raise PersistenceError(f"Failed to read store: {e}") from e
                if not isinstance(self._data, dict):
                    self._data = None
                    raise PersistenceError(f"Store {self.path} does not contain a JSON object")
                logger.info(f"Loaded store {self.path} with keys {sorted(self._data)}")
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Value stored under ``key`` or ``default``"""
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Replace the value under ``key`` (in memory until ``save``)"""
        with self._lock:
            self._load()[key] = value

    def save(self) -> None:
        """
        Write the whole store to disk.

        Raises:
            PersistenceError: If the file cannot be written
        """
        with self._lock:
            data = self._load()
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with tmp_path.open("w", encoding="utf-8") as fh:
                    fh.write(json_dumps(data, indent=2, ensure_ascii=False))
                os.replace(tmp_path, self.path)
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to write store {self.path}: {e}")
                raise PersistenceError(f"Failed to write store: {e}") from e
            logger.debug(f"Saved store {self.path}")

    def put(self, key: str, value: Any) -> None:
        """Set ``key`` and save immediately"""
        self.set(key, value)
        self.save()
