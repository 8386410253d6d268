# -*- coding: utf-8 -*-
"""
Registry Service Setup - Blue Carbon Registry

Provides ``configure_registry(app)`` which wires up the registry
(config, record store, registry service, export manager) and mounts the
REST API under ``/api``.

Also exposes ``get_registry_service(app)`` for request handlers,
``get_service()`` for programmatic (CLI) access and the
``RegistryService`` facade class.

Usage:
    >>> from fastapi import FastAPI
    >>> from bluecarbon.registry.setup import configure_registry
    >>> app = FastAPI()
    >>> configure_registry(app)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from fastapi import FastAPI

from bluecarbon.exceptions import StorageError
from bluecarbon.registry.config import RegistryConfig, get_config
from bluecarbon.registry.export import ExportManager
from bluecarbon.registry.metrics import update_record_count
from bluecarbon.registry.registry import BlueCarbonRegistry
from bluecarbon.registry.store import COLLECTIONS, RecordStore

logger = logging.getLogger(__name__)


# ===================================================================
# RegistryService facade
# ===================================================================

_singleton_lock = threading.Lock()
_singleton_instance: Optional["RegistryService"] = None


class RegistryService:
    """Unified facade over the registry components.

    Attributes:
        config: RegistryConfig instance.
        store: RecordStore over ``config.data_dir``.
        registry: BlueCarbonRegistry instance.
        exporter: ExportManager instance.

    Example:
        >>> service = RegistryService()
        >>> service.startup()
        >>> service.registry.get_statistics().total_projects
        0
    """

    def __init__(self, config: Optional[RegistryConfig] = None) -> None:
        """Initialize the facade.

        Args:
            config: Optional config. Uses global config if None.
        """
        self.config = config or get_config()
        self.store = RecordStore(self.config.data_dir)
        self.registry = BlueCarbonRegistry(config=self.config, store=self.store)
        self.exporter = ExportManager(registry=self.registry)
        self._started = False

        logger.info("RegistryService facade created")

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_metrics(self) -> Dict[str, Any]:
        """Service summary: lifecycle flag and record counts per collection."""
        counts = {name: len(self.store.load(name)) for name in COLLECTIONS}
        return {
            "started": self._started,
            "data_dir": str(self.store.data_dir),
            "records": counts,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Create the data directory and publish record-count gauges.

        Safe to call multiple times.

        Raises:
            StorageError: If the data directory cannot be created or a
                collection file is unreadable.
        """
        if self._started:
            logger.debug("RegistryService already started; skipping")
            return

        logger.info("RegistryService starting up (data_dir=%s)...", self.store.data_dir)
        try:
            self.store.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Cannot create data directory '{self.store.data_dir}'",
                operation="startup",
                cause=exc,
            ) from exc

        for name in COLLECTIONS:
            update_record_count(name, len(self.store.load(name)))

        self._started = True
        logger.info("RegistryService startup complete")

    def shutdown(self) -> None:
        if not self._started:
            return
        self._started = False
        logger.info("RegistryService shut down")


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def get_service() -> RegistryService:
    """Get or create the process-wide RegistryService.

    Returns:
        The singleton RegistryService built from ``get_config()``.
    """
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = RegistryService()
    return _singleton_instance


# ===================================================================
# FastAPI integration
# ===================================================================


def configure_registry(
    app: FastAPI,
    config: Optional[RegistryConfig] = None,
) -> RegistryService:
    """Configure the registry on a FastAPI application.

    Creates the RegistryService, stores it in app.state, mounts the
    registry API router and starts the service.

    Args:
        app: FastAPI application instance.
        config: Optional registry config.

    Returns:
        RegistryService instance.
    """
    from bluecarbon.registry.api.router import router

    global _singleton_instance

    service = RegistryService(config=config)
    with _singleton_lock:
        _singleton_instance = service

    app.state.registry_service = service
    app.include_router(router)
    logger.info("Registry API router mounted")

    service.startup()
    logger.info("Registry service configured on app")
    return service


def get_registry_service(app: FastAPI) -> RegistryService:
    """Get the RegistryService instance from app state.

    Raises:
        RuntimeError: If the registry has not been configured.
    """
    service = getattr(app.state, "registry_service", None)
    if service is None:
        raise RuntimeError(
            "Registry service not configured. "
            "Call configure_registry(app) first."
        )
    return service


__all__ = [
    "RegistryService",
    "configure_registry",
    "get_registry_service",
    "get_service",
]
