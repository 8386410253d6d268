# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from bluecarbon.registry.api.app import create_app
from bluecarbon.registry.config import RegistryConfig, reset_config, set_config
from bluecarbon.registry.registry import BlueCarbonRegistry

ADMIN = "0x" + "a" * 40
VERIFIER = "0x" + "b" * 40
COLLECTOR = "0x" + "c" * 40
OWNER = "0x" + "d" * 40
OUTSIDER = "0x" + "e" * 40


@pytest.fixture(autouse=True)
def _isolated_config():
    """Never leak the config singleton between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def config(data_dir) -> RegistryConfig:
    cfg = RegistryConfig(
        data_dir=str(data_dir),
        admin_addresses=frozenset({ADMIN}),
        verifier_addresses=frozenset({VERIFIER}),
        rate_limit_enabled=False,
    )
    set_config(cfg)
    return cfg


@pytest.fixture
def registry(config) -> BlueCarbonRegistry:
    return BlueCarbonRegistry(config=config)


@pytest.fixture
def api_client(config):
    """TestClient over a freshly created app."""
    with TestClient(create_app(config)) as client:
        yield client


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def project_payload(**overrides: Any) -> Dict[str, Any]:
    payload = {
        "name": "Sundarbans Mangrove Restoration",
        "location": "West Bengal, India",
        "area": 250.5,
        "ecosystemType": "mangrove",
        "description": "Replanting degraded mangrove fringe",
        "estimatedCredits": 1000,
        "coordinates": "21.9497,88.8509",
        "ownerAddress": OWNER,
    }
    payload.update(overrides)
    return payload


def stakeholder_payload(**overrides: Any) -> Dict[str, Any]:
    payload = {
        "name": "Field Team Lead",
        "organization": "Coastal Communities Trust",
        "stakeholderType": "NGO",
        "location": "Sundarbans, India",
        "address": COLLECTOR,
    }
    payload.update(overrides)
    return payload


def mrv_payload(project_id: str, carbon: float, **overrides: Any) -> Dict[str, Any]:
    payload = {
        "projectId": project_id,
        "collectorAddress": COLLECTOR,
        "dataHash": "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o",
        "coordinates": "21.9497,88.8509",
        "carbonSequestration": carbon,
        "measurements": {"treeCount": 120, "avgHeight": 2.4, "healthScore": 8},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def collector(registry) -> Dict[str, Any]:
    """Registered stakeholder whose address submits MRV data."""
    return registry.register_stakeholder(stakeholder_payload())


@pytest.fixture
def active_project(registry) -> Dict[str, Any]:
    project = registry.register_project(project_payload())
    return registry.transition_project(project["id"], "approve", role="admin", actor=ADMIN)
