"""JSON-file key-value storage — one file per slot under a directory.

Writes go to a temporary file that is then renamed over the slot file, so a
crash mid-write leaves either the old value or the new one, never half of it.
"""

import os
import tempfile
from pathlib import Path
from urllib.parse import quote

from shopping.persistence.port import KeyValueStorage


class JsonFileStorage(KeyValueStorage):
    def __init__(self, directory) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        # Percent-encoding is reversible, so distinct keys never share a file
        safe_key = quote(key, safe="-_")
        return self.directory / f"{safe_key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str, origin: str | None = None) -> None:  # noqa: ARG002
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str, origin: str | None = None) -> None:  # noqa: ARG002
        self._path(key).unlink(missing_ok=True)
