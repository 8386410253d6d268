# -*- coding: utf-8 -*-
"""
Record Store - Blue Carbon Registry

Flat-file persistence: one JSON array per collection under a data
directory. ``load`` returns the whole collection; ``save`` replaces it.

Writes go to a temporary file in the same directory which is then
``os.replace``-d over the collection file, so a reader never observes a
partially written array. There is no locking between processes: two
processes writing the same collection are last-write-wins.

Example:
    >>> from bluecarbon.registry.store import RecordStore
    >>> store = RecordStore("./data")
    >>> projects = store.load("projects")
    >>> projects.append({"id": "p-1", "name": "Sundarbans"})
    >>> store.save("projects", projects)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from bluecarbon.exceptions import StorageError

logger = logging.getLogger(__name__)

PROJECTS = "projects"
STAKEHOLDERS = "stakeholders"
MRV_DATA = "mrv-data"
CREDITS = "credits"
TRANSACTIONS = "transactions"
NOTIFICATIONS = "notifications"

COLLECTIONS: Tuple[str, ...] = (
    PROJECTS,
    STAKEHOLDERS,
    MRV_DATA,
    CREDITS,
    TRANSACTIONS,
    NOTIFICATIONS,
)


class RecordStore:
    """Whole-collection JSON file store.

    Attributes:
        data_dir: Directory holding ``<collection>.json`` files.
    """

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self.data_dir = Path(data_dir)

    def path_for(self, collection: str) -> Path:
        """Return the file path backing ``collection``.

        Raises:
            StorageError: If the collection name is unknown.
        """
        if collection not in COLLECTIONS:
            raise StorageError(
                f"Unknown collection '{collection}'",
                collection=collection,
            )
        return self.data_dir / f"{collection}.json"

    def load(self, collection: str) -> List[Dict[str, Any]]:
        """Load every record of a collection, in stored order.

        A missing file is an empty collection.

        Raises:
            StorageError: If the file cannot be read or is not a JSON array.
        """
        path = self.path_for(collection)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read collection %s: %s", collection, exc)
            raise StorageError(
                f"Failed to read collection '{collection}'",
                collection=collection,
                operation="read",
                cause=exc,
            ) from exc

        if not isinstance(data, list):
            raise StorageError(
                f"Collection '{collection}' is not a JSON array",
                collection=collection,
                operation="read",
            )
        return data

    def _serialize(self, collection: str, records: List[Dict[str, Any]]) -> str:
        try:
            return json.dumps(records, indent=2, default=str)
        except (TypeError, ValueError) as exc:
            logger.error("Failed to serialize collection %s: %s", collection, exc)
            raise StorageError(
                f"Failed to write collection '{collection}'",
                collection=collection,
                operation="write",
                cause=exc,
            ) from exc

    def _write(self, collection: str, text: str) -> None:
        path = self.path_for(collection)
        tmp_name = None
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{collection}.", suffix=".tmp", dir=self.data_dir,
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Failed to write collection %s: %s", collection, exc)
            raise StorageError(
                f"Failed to write collection '{collection}'",
                collection=collection,
                operation="write",
                cause=exc,
            ) from exc

        logger.debug("Saved collection %s to %s", collection, path)

    def save(self, collection: str, records: List[Dict[str, Any]]) -> None:
        """Replace a collection with ``records``.

        Raises:
            StorageError: If the records cannot be serialized or the
                directory or file cannot be written.
        """
        self._write(collection, self._serialize(collection, records))

    def save_many(self, collections: Dict[str, List[Dict[str, Any]]]) -> None:
        """Save several collections computed from one in-memory change.

        Every collection is serialized before any file is written.
        """
        payloads = {
            collection: self._serialize(collection, records)
            for collection, records in collections.items()
        }
        for collection, text in payloads.items():
            self._write(collection, text)


__all__ = [
    "RecordStore",
    "COLLECTIONS",
    "PROJECTS",
    "STAKEHOLDERS",
    "MRV_DATA",
    "CREDITS",
    "TRANSACTIONS",
    "NOTIFICATIONS",
]
