"""Tests for the CSV / JSON export manager."""

import csv
import io
import json

import pytest

from bluecarbon.exceptions import ValidationError
from bluecarbon.registry.export import ExportManager

from conftest import project_payload, stakeholder_payload


@pytest.fixture
def exporter(registry):
    return ExportManager(registry)


class TestExportManager:

    def test_empty_csv_has_header_only(self, exporter):
        assert exporter.export("stakeholders", "csv") == (
            "ID,Name,Organization,Type,Location,Status,Registered At\n"
        )

    def test_csv_quotes_commas(self, registry, exporter):
        project = registry.register_project(
            project_payload(name='Pichavaram "North", Phase 2'),
        )

        rows = list(csv.reader(io.StringIO(exporter.export_csv("projects"))))
        assert rows[1][:6] == [
            project["id"],
            'Pichavaram "North", Phase 2',
            "West Bengal, India",
            "250.5",
            "mangrove",
            "pending",
        ]

    def test_stakeholder_status_column(self, registry, exporter, collector):
        registry.register_stakeholder(stakeholder_payload(name="Second Member", address=None))
        registry.approve_stakeholder(collector["id"], role="admin")

        rows = list(csv.reader(io.StringIO(exporter.export_csv("stakeholders"))))
        assert [r[5] for r in rows[1:]] == ["approved", "pending_approval"]
        assert rows[1][3] == "NGO"

    def test_json_keeps_stored_order(self, registry, exporter):
        ids = [
            registry.register_project(project_payload(name=f"Project {n}"))["id"]
            for n in ("one", "two")
        ]
        body = json.loads(exporter.export_json("projects"))
        assert [p["id"] for p in body["projects"]] == ids

    def test_unknown_collection(self, exporter):
        with pytest.raises(ValidationError) as exc_info:
            exporter.export("mrv-data", "json")
        assert "collection" in exc_info.value.invalid_fields

    def test_unknown_format(self, exporter):
        with pytest.raises(ValidationError) as exc_info:
            exporter.export("projects", "xlsx")
        assert "format" in exc_info.value.invalid_fields
