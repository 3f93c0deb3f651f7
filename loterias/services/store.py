"""
JSON-backed durable store.

The whole document is read into memory before use and written back in full.
Writes go to a temporary file in the same directory which is fsynced and then
renamed over the target, so a reader always sees either the previous or the
new document. Reads never cache: each call parses the file again.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

from loterias.core.logging import get_logger

logger = get_logger(__name__)


class StoreReadError(Exception):
    """The durable document is missing or cannot be parsed."""


class JsonDocumentStore:
    """A single JSON document at a fixed path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Any:
        """
        Read and parse the document.

        Raises:
            StoreReadError: if the file is missing, unreadable or not valid JSON
        """
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise StoreReadError(f"{self.path} does not exist") from e
        except (OSError, ValueError) as e:
            raise StoreReadError(f"Cannot read {self.path}: {e}") from e

    def write(self, document: Any) -> None:
        """Atomically replace the document (pretty-printed, UTF-8)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            # Leave the committed document untouched on any failure
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug(f"Wrote {self.path}")


def _has_contest_number(record: dict) -> bool:
    numero = record.get("numero")
    return isinstance(numero, int) and not isinstance(numero, bool)


class WindowStore(JsonDocumentStore):
    """
    Store document mapping game identifier to its contest window.

    Shape: ``{game: [contest_record, ...]}`` with each record a JSON object
    carrying at least an integer ``numero``. Windows are persisted sorted
    ascending by contest number.
    """

    def read(self) -> Dict[str, List[dict]]:
        """
        Read the store document and check its shape.

        Raises:
            StoreReadError: if missing, unparseable or not shaped as game -> list of records
        """
        document = super().read()

        if not isinstance(document, dict):
            raise StoreReadError(f"{self.path} must hold a JSON object")

        for game, window in document.items():
            if not isinstance(window, list) or not all(isinstance(r, dict) for r in window):
                raise StoreReadError(f"{self.path}: window for '{game}' is not a list of contests")
            if not all(_has_contest_number(r) for r in window):
                raise StoreReadError(f"{self.path}: window for '{game}' has a contest without an integer 'numero'")

        return document
