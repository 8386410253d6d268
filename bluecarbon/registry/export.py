# -*- coding: utf-8 -*-
"""
Export Manager - Blue Carbon Registry

Exports the project and stakeholder collections as:
    - CSV: one row per record with a fixed header
    - JSON: ``{"<collection>": [...]}`` with the stored records

Exports are deterministic transformations of the stored records in
stored order.

Example:
    >>> from bluecarbon.registry.export import ExportManager
    >>> manager = ExportManager(registry=registry)
    >>> csv_text = manager.export("projects", "csv")
"""

from __future__ import annotations

import csv
import io
import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Sequence, Tuple

from bluecarbon.exceptions import ValidationError
from bluecarbon.registry.metrics import record_export, record_operation
from bluecarbon.registry.store import PROJECTS, STAKEHOLDERS

if TYPE_CHECKING:
    from bluecarbon.registry.registry import BlueCarbonRegistry

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")

Row = Callable[[Dict[str, Any]], List[Any]]


def _project_row(p: Dict[str, Any]) -> List[Any]:
    return [
        p.get("id"),
        p.get("name"),
        p.get("location"),
        p.get("area"),
        p.get("ecosystemType"),
        p.get("status"),
        p.get("createdAt"),
    ]


def _stakeholder_row(s: Dict[str, Any]) -> List[Any]:
    return [
        s.get("id"),
        s.get("name"),
        s.get("organization"),
        s.get("stakeholderType"),
        s.get("location"),
        "approved" if s.get("approved") else "pending_approval",
        s.get("registeredAt"),
    ]


# collection -> (CSV header, row builder)
_CSV_LAYOUTS: Dict[str, Tuple[Sequence[str], Row]] = {
    PROJECTS: (
        ("ID", "Name", "Location", "Area", "Ecosystem Type", "Status", "Created At"),
        _project_row,
    ),
    STAKEHOLDERS: (
        ("ID", "Name", "Organization", "Type", "Location", "Status", "Registered At"),
        _stakeholder_row,
    ),
}

EXPORTABLE_COLLECTIONS = tuple(_CSV_LAYOUTS)


class ExportManager:
    """Exports registry collections to CSV or JSON.

    Attributes:
        registry: BlueCarbonRegistry supplying the records.
    """

    def __init__(self, registry: BlueCarbonRegistry) -> None:
        self.registry = registry
        logger.info("ExportManager initialized")

    def _records(self, collection: str) -> List[Dict[str, Any]]:
        if collection not in _CSV_LAYOUTS:
            raise ValidationError(
                f"Collection '{collection}' cannot be exported",
                invalid_fields={
                    "collection": f"Must be one of: {', '.join(EXPORTABLE_COLLECTIONS)}",
                },
            )
        return self.registry.store.load(collection)

    def export_csv(self, collection: str) -> str:
        """Export a collection to CSV.

        Args:
            collection: ``projects`` or ``stakeholders``.

        Returns:
            CSV text with a header row.
        """
        start = time.monotonic()
        records = self._records(collection)
        header, row = _CSV_LAYOUTS[collection]

        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(header)
        for record in records:
            writer.writerow(row(record))

        record_export(collection, "csv")
        record_operation("export_csv", "success", time.monotonic() - start)
        logger.info("Exported %d %s to CSV", len(records), collection)
        return output.getvalue()

    def export_json(self, collection: str) -> str:
        """Export a collection to JSON (``{"<collection>": [...]}``)."""
        start = time.monotonic()
        records = self._records(collection)
        result = json.dumps({collection: records}, indent=2, default=str)

        record_export(collection, "json")
        record_operation("export_json", "success", time.monotonic() - start)
        logger.info("Exported %d %s to JSON", len(records), collection)
        return result

    def export(self, collection: str, export_format: str = "json") -> str:
        """Export ``collection`` in ``export_format`` (``csv`` or ``json``).

        Raises:
            ValidationError: Unknown collection or format.
        """
        fmt = (export_format or "json").lower()
        if fmt == "csv":
            return self.export_csv(collection)
        if fmt == "json":
            return self.export_json(collection)
        raise ValidationError(
            f"Unsupported export format '{export_format}'",
            invalid_fields={"format": f"Must be one of: {', '.join(EXPORT_FORMATS)}"},
        )


__all__ = [
    "ExportManager",
    "EXPORT_FORMATS",
    "EXPORTABLE_COLLECTIONS",
]
