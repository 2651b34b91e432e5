from __future__ import annotations
import json
import os
import tempfile
from typing import Any, Dict

from .errors import IOCorruptionError, StorageError
from .logging_config import get_logger

log = get_logger(__name__)

FILE_SUFFIX = ".json"


class FileStorage:
    """
    One collection = one JSON object on disk, {id: document, ...}.
    Every persist() rewrites the whole file through a temp file and an
    atomic os.replace, so readers see either the old or the new state.
    """
    def __init__(self, directory: str, name: str, indent: int | None = 2, strict: bool = False) -> None:
        if not name.endswith(FILE_SUFFIX):
            name += FILE_SUFFIX
        self.directory = str(directory)
        self.name = name
        self.path = os.path.join(self.directory, name)
        self.indent = indent
        self.strict = strict
        self.prepare()

    def prepare(self) -> None:
        """Create the directory and an empty collection file if missing."""
        try:
            os.makedirs(self.directory, exist_ok=True)
            if not os.path.exists(self.path):
                self.persist({})
        except OSError as e:
            raise StorageError(f"cannot prepare storage at {self.path}: {e}") from e

    def load(self) -> Dict[str, Any]:
        """
        Read the whole mapping. A missing, empty or non-JSON file yields {}
        (or IOCorruptionError with strict=True); I/O failures raise StorageError.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"cannot read {self.path}: {e}") from e

        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except ValueError as e:
            return self._corrupt(f"invalid JSON: {e}")
        if not isinstance(data, dict):
            return self._corrupt(f"expected a JSON object, got {type(data).__name__}")
        return data

    def _corrupt(self, reason: str) -> Dict[str, Any]:
        if self.strict:
            raise IOCorruptionError(f"{self.path}: {reason}")
        log.warning("storage.corrupt_file", path=self.path, reason=reason)
        return {}

    def persist(self, data: Dict[str, Any]) -> None:
        try:
            payload = json.dumps(data, ensure_ascii=False, indent=self.indent)
        except (TypeError, ValueError) as e:
            raise StorageError(f"cannot serialize collection {self.name}: {e}") from e
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.name}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise StorageError(f"cannot write {self.path}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
