# -*- coding: utf-8 -*-
"""
Blue Carbon Registry

Registry of blue-carbon restoration projects, stakeholders and MRV
(Monitoring, Reporting, Verification) data, persisted as flat JSON
collections.

Components:
    - store: whole-collection JSON record store
    - transitions: canonical status transition tables
    - statistics: registry statistics by pure recomputation
    - registry: BlueCarbonRegistry service
    - export: CSV / JSON export
    - setup: RegistryService facade and FastAPI wiring
    - api: FastAPI router and app factory
    - client: HTTP client with a per-session TTL cache
"""

from bluecarbon.registry.config import RegistryConfig, get_config, reset_config, set_config
from bluecarbon.registry.models import (
    ActorRole,
    EcosystemType,
    MRVAction,
    MRVStatus,
    ProjectAction,
    ProjectStatus,
    RegistryStatistics,
    StakeholderType,
)
from bluecarbon.registry.registry import BlueCarbonRegistry
from bluecarbon.registry.statistics import compute_overview, compute_statistics
from bluecarbon.registry.store import RecordStore
from bluecarbon.registry.transitions import (
    MRV_TRANSITIONS,
    PROJECT_TRANSITIONS,
    STAKEHOLDER_TRANSITIONS,
)

__all__ = [
    "RegistryConfig",
    "get_config",
    "set_config",
    "reset_config",
    "ActorRole",
    "EcosystemType",
    "MRVAction",
    "MRVStatus",
    "ProjectAction",
    "ProjectStatus",
    "RegistryStatistics",
    "StakeholderType",
    "BlueCarbonRegistry",
    "compute_statistics",
    "compute_overview",
    "RecordStore",
    "PROJECT_TRANSITIONS",
    "MRV_TRANSITIONS",
    "STAKEHOLDER_TRANSITIONS",
]
