"""Tests for the RegistryService facade and FastAPI wiring."""

import pytest
from fastapi import FastAPI

from bluecarbon.exceptions import StorageError
from bluecarbon.registry.config import RegistryConfig
from bluecarbon.registry.setup import (
    RegistryService,
    configure_registry,
    get_registry_service,
    get_service,
)

from conftest import project_payload


class TestRegistryService:

    def test_startup_creates_data_dir(self, config, data_dir):
        service = RegistryService(config)
        assert not data_dir.exists()

        service.startup()
        service.startup()
        assert data_dir.is_dir()
        assert service.get_metrics()["started"] is True

    def test_metrics_count_records(self, config):
        service = RegistryService(config)
        service.registry.register_project(project_payload())

        metrics = service.get_metrics()
        assert metrics["records"]["projects"] == 1
        assert metrics["records"]["notifications"] == 0

    def test_startup_fails_on_blocked_dir(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        service = RegistryService(RegistryConfig(data_dir=str(blocker)))

        with pytest.raises(StorageError):
            service.startup()

    def test_shutdown(self, config):
        service = RegistryService(config)
        service.startup()
        service.shutdown()
        assert service.get_metrics()["started"] is False


class TestFastAPIWiring:

    def test_unconfigured_app(self):
        with pytest.raises(RuntimeError):
            get_registry_service(FastAPI())

    def test_configure_registry(self, config):
        app = FastAPI()
        service = configure_registry(app, config=config)

        assert get_registry_service(app) is service
        assert get_service() is service
        assert any(getattr(r, "path", "") == "/api/projects" for r in app.routes)
