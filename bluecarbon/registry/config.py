# -*- coding: utf-8 -*-
"""
Registry Configuration - Blue Carbon Registry

Centralized configuration for the registry service covering:
- Data directory holding the JSON collections
- Admin and verifier address allowlists (actor role resolution)
- Reputation scoring (initial score, ceiling, MRV deltas)
- Pagination limits
- Rate limiting and CORS for the REST API
- Client-side cache TTL
- Log level

All settings can be overridden via environment variables with the
``BC_REGISTRY_`` prefix (e.g. ``BC_REGISTRY_DATA_DIR``).

Example:
    >>> from bluecarbon.registry.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.data_dir, cfg.verified_reputation_delta)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "BC_REGISTRY_"


def _normalize_addresses(addresses: Any) -> FrozenSet[str]:
    """Lower-case and de-duplicate a collection of wallet addresses."""
    return frozenset(
        a.strip().lower() for a in (addresses or ()) if a and a.strip()
    )


# ---------------------------------------------------------------------------
# RegistryConfig
# ---------------------------------------------------------------------------


@dataclass
class RegistryConfig:
    """Complete configuration for the Blue Carbon Registry.

    Attributes:
        data_dir: Directory holding one JSON array file per collection.
        admin_addresses: Addresses holding the admin role.
        verifier_addresses: Addresses holding the verifier role.
        initial_reputation: Reputation score of a newly registered stakeholder.
        max_reputation: Reputation ceiling (floor is always 0).
        verified_reputation_delta: Reputation added when MRV data is verified.
        rejected_reputation_delta: Reputation removed when MRV data is rejected.
        default_page_size: Page size used when ``limit`` is omitted.
        max_page_size: Largest accepted ``limit``.
        rate_limit: slowapi limit string applied to every route.
        rate_limit_enabled: Whether rate limiting is active.
        cors_origins: Allowed CORS origins.
        client_cache_ttl_seconds: TTL of the RegistryClient session cache.
        log_level: Root log level for the app and CLI.
    """

    # -- Storage -------------------------------------------------------------
    data_dir: str = "./data"

    # -- Roles ---------------------------------------------------------------
    admin_addresses: FrozenSet[str] = field(default_factory=frozenset)
    verifier_addresses: FrozenSet[str] = field(default_factory=frozenset)

    # -- Reputation ----------------------------------------------------------
    initial_reputation: int = 100
    max_reputation: int = 1000
    verified_reputation_delta: int = 10
    rejected_reputation_delta: int = 20

    # -- Pagination ----------------------------------------------------------
    default_page_size: int = 10
    max_page_size: int = 100

    # -- API -----------------------------------------------------------------
    rate_limit: str = "100/15minutes"
    rate_limit_enabled: bool = True
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5000"],
    )

    # -- Client --------------------------------------------------------------
    client_cache_ttl_seconds: int = 300

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.admin_addresses = _normalize_addresses(self.admin_addresses)
        self.verifier_addresses = _normalize_addresses(self.verifier_addresses)

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> RegistryConfig:
        """Build a RegistryConfig from environment variables.

        Every field can be overridden via ``BC_REGISTRY_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        List values are comma-separated.

        Returns:
            Populated RegistryConfig instance.
        """
        prefix = _ENV_PREFIX
        defaults = cls()

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _list(name: str, default: List[str]) -> List[str]:
            val = _env(name)
            if val is None:
                return list(default)
            return [item.strip() for item in val.split(",") if item.strip()]

        config = cls(
            data_dir=_env("DATA_DIR", defaults.data_dir),
            admin_addresses=frozenset(_list("ADMIN_ADDRESSES", [])),
            verifier_addresses=frozenset(_list("VERIFIER_ADDRESSES", [])),
            initial_reputation=_int(
                "INITIAL_REPUTATION", defaults.initial_reputation,
            ),
            max_reputation=_int("MAX_REPUTATION", defaults.max_reputation),
            verified_reputation_delta=_int(
                "VERIFIED_REPUTATION_DELTA", defaults.verified_reputation_delta,
            ),
            rejected_reputation_delta=_int(
                "REJECTED_REPUTATION_DELTA", defaults.rejected_reputation_delta,
            ),
            default_page_size=_int(
                "DEFAULT_PAGE_SIZE", defaults.default_page_size,
            ),
            max_page_size=_int("MAX_PAGE_SIZE", defaults.max_page_size),
            rate_limit=_env("RATE_LIMIT", defaults.rate_limit),
            rate_limit_enabled=_bool(
                "RATE_LIMIT_ENABLED", defaults.rate_limit_enabled,
            ),
            cors_origins=_list("CORS_ORIGINS", defaults.cors_origins),
            client_cache_ttl_seconds=_int(
                "CLIENT_CACHE_TTL_SECONDS", defaults.client_cache_ttl_seconds,
            ),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
        )

        logger.info(
            "RegistryConfig loaded: data_dir=%s, admins=%d, verifiers=%d, "
            "rate_limit=%s (enabled=%s)",
            config.data_dir,
            len(config.admin_addresses),
            len(config.verifier_addresses),
            config.rate_limit,
            config.rate_limit_enabled,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[RegistryConfig] = None
_config_lock = threading.Lock()


def get_config() -> RegistryConfig:
    """Return the singleton RegistryConfig, creating from env if needed.

    Returns:
        RegistryConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = RegistryConfig.from_env()
    return _config_instance


def set_config(config: RegistryConfig) -> None:
    """Replace the singleton RegistryConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("RegistryConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "RegistryConfig",
    "get_config",
    "set_config",
    "reset_config",
]
